import os
import time

import pytest

from janitor.cache_janitor import is_expired, main, parse_args, sweep_cache

NOW = 1_700_000_000.0


def _cached(path, age_seconds):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("<html></html>")
    mtime = NOW - age_seconds
    os.utime(path, (mtime, mtime))
    return path


@pytest.mark.parametrize(
    "age, expected",
    [(0, False), (299, False), (300, False), (301, True), (3600, True)],
)
def test_is_expired_strictly_older(age, expected):
    assert is_expired(NOW - age, NOW, 300) is expected


def test_sweep_removes_only_expired(tmp_path):
    old = _cached(tmp_path / "cache" / "index.html", 600)
    nested = _cached(tmp_path / "cache" / "t" / "ruby.html", 301)
    young = _cached(tmp_path / "cache" / "newest.html", 10)

    result = sweep_cache(str(tmp_path / "cache"), 300, now=NOW)

    assert not old.exists()
    assert not nested.exists()
    assert young.exists()
    assert (result.removed, result.kept, result.errors) == (2, 1, 0)


def test_sweep_leaves_directories_in_place(tmp_path):
    _cached(tmp_path / "cache" / "t" / "ruby.html", 600)

    sweep_cache(str(tmp_path / "cache"), 300, now=NOW)

    assert (tmp_path / "cache" / "t").is_dir()


def test_sweep_missing_directory(tmp_path):
    result = sweep_cache(str(tmp_path / "absent"), 300, now=NOW)

    assert (result.removed, result.kept, result.errors) == (0, 0, 0)


def test_sweep_ignores_vanished_files(mocker, tmp_path):
    _cached(tmp_path / "cache" / "gone.html", 600)
    mocker.patch("janitor.cache_janitor.os.remove", side_effect=FileNotFoundError)

    result = sweep_cache(str(tmp_path / "cache"), 300, now=NOW)

    assert result.removed == 0
    assert result.errors == 1


def test_sweep_defaults_to_current_time(tmp_path):
    fresh = tmp_path / "cache" / "fresh.html"
    fresh.parent.mkdir()
    fresh.write_text("x")

    result = sweep_cache(str(tmp_path / "cache"))

    assert fresh.exists()
    assert result.kept == 1


def test_parse_args_defaults():
    args = parse_args(["--cache-dir", "/srv/lobsters/public/cache"])

    assert args.cache_dir == "/srv/lobsters/public/cache"
    assert args.max_age_seconds == 300
    assert args.verbose is False


def test_parse_args_requires_cache_dir():
    with pytest.raises(SystemExit):
        parse_args([])


def test_main_sweeps_and_returns_zero(tmp_path):
    stale = tmp_path / "cache" / "stale.html"
    stale.parent.mkdir()
    stale.write_text("x")
    past = time.time() - 3600
    os.utime(stale, (past, past))

    assert main(["--cache-dir", str(tmp_path / "cache"), "--max-age-seconds", "60"]) == 0
    assert not stale.exists()
