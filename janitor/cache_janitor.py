#!/usr/bin/env python3
# janitor/cache_janitor.py
# -*- coding: utf-8 -*-
"""
Expires the application's page cache.

Deletes regular files under the cache directory whose modification time is
more than ``--max-age-seconds`` in the past. Files younger than that are
never touched. Installed as a standalone script and run by cron once a
minute, so it depends on the standard library only.
"""

import argparse
import logging
import os
import stat
import sys
import time
from dataclasses import dataclass
from typing import List, Optional

DEFAULT_MAX_AGE_SECONDS = 300

module_logger = logging.getLogger("lobsters.cache_janitor")


@dataclass
class SweepResult:
    removed: int = 0
    kept: int = 0
    errors: int = 0


def is_expired(mtime: float, now: float, max_age_seconds: int) -> bool:
    return now - mtime > max_age_seconds


def sweep_cache(
    directory: str,
    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
    now: Optional[float] = None,
) -> SweepResult:
    """
    Remove expired files below ``directory``.

    Files that disappear between listing and removal, or that cannot be
    removed, are counted in ``errors`` and otherwise ignored; the next run
    picks them up again. A missing cache directory is an empty sweep.
    """
    result = SweepResult()
    if now is None:
        now = time.time()
    if not os.path.isdir(directory):
        module_logger.debug(f"Cache directory {directory} does not exist.")
        return result

    for root, _dirs, files in os.walk(directory):
        for name in files:
            path = os.path.join(root, name)
            try:
                info = os.lstat(path)
            except FileNotFoundError:
                result.errors += 1
                continue
            if not stat.S_ISREG(info.st_mode):
                continue
            if not is_expired(info.st_mtime, now, max_age_seconds):
                result.kept += 1
                continue
            try:
                os.remove(path)
            except OSError as e:
                module_logger.debug(f"Could not remove {path}: {e}")
                result.errors += 1
                continue
            result.removed += 1
    return result


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Delete cached pages older than a maximum age."
    )
    parser.add_argument(
        "--cache-dir",
        required=True,
        help="Directory holding the cached pages.",
    )
    parser.add_argument(
        "--max-age-seconds",
        type=int,
        default=DEFAULT_MAX_AGE_SECONDS,
        help=f"Age after which a cached page is removed (default: {DEFAULT_MAX_AGE_SECONDS}).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every sweep, not only failures.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    result = sweep_cache(args.cache_dir, args.max_age_seconds)
    level = logging.WARNING if result.errors else logging.INFO
    module_logger.log(
        level,
        f"Swept {args.cache_dir}: removed {result.removed}, kept {result.kept}, "
        f"errors {result.errors}",
    )
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
