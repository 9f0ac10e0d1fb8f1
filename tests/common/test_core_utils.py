import logging

from common.core_utils import (
    REDACTED,
    SecretRedactingFilter,
    SymbolFormatter,
)


def _record(message, *args, **extra):
    record = logging.LogRecord("test", logging.INFO, __file__, 1, message, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_redaction_filter_masks_registered_secret():
    redaction = SecretRedactingFilter(["hunter2-password"])
    record = _record("connecting with hunter2-password now")

    assert redaction.filter(record) is True
    assert record.getMessage() == f"connecting with {REDACTED} now"


def test_redaction_filter_masks_secret_in_format_args():
    redaction = SecretRedactingFilter(["hunter2-password"])
    record = _record("stdout: %s", "pw=hunter2-password")

    redaction.filter(record)

    assert "hunter2-password" not in record.getMessage()
    assert REDACTED in record.getMessage()


def test_redaction_filter_reveal_secrets_passes_through():
    redaction = SecretRedactingFilter(["hunter2-password"])
    record = _record("Master key: hunter2-password", reveal_secrets=True)

    redaction.filter(record)

    assert record.getMessage() == "Master key: hunter2-password"


def test_redaction_filter_ignores_very_short_values():
    redaction = SecretRedactingFilter()
    redaction.add_secret("ab")
    redaction.add_secret("")
    redaction.add_secret(None)

    assert redaction.redact("abc ab") == "abc ab"


def test_redaction_prefers_longest_secret():
    redaction = SecretRedactingFilter(["secret", "secret-longer"])

    assert redaction.redact("x secret-longer y") == f"x {REDACTED} y"


def test_symbol_formatter_adds_symbol_and_colour():
    formatter = SymbolFormatter(
        fmt="%(levelname)s %(symbol)s %(message)s",
        symbols={"warning": "W!"},
        use_colour=True,
    )
    record = logging.LogRecord("test", logging.WARNING, __file__, 1, "careful", None, None)

    output = formatter.format(record)

    assert "W!" in output
    assert "\033[1;33mWARNING\033[0m" in output


def test_symbol_formatter_plain_without_colour():
    formatter = SymbolFormatter(fmt="%(levelname)s %(symbol)s %(message)s")
    record = logging.LogRecord("test", logging.ERROR, __file__, 1, "broken", None, None)

    assert formatter.format(record) == "ERROR ❌ broken"
