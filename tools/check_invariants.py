#!/usr/bin/env python3
"""Round state consistency checks against a persisted data directory.

Usage:
    python tools/check_invariants.py [data_dir]

``data_dir`` defaults to QFROUND_DATA_DIR (or ``data/``).
"""

import sys

from qfround.cli import main


def check(argv: list[str]) -> int:
    if argv:
        return main(["--data-dir", argv[0], "check-invariants"])
    return main(["check-invariants"])


if __name__ == "__main__":
    raise SystemExit(check(sys.argv[1:]))
