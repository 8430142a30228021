#!/usr/bin/env python3
"""
mbqe CLI entry point for `python -m mbqe`.

Usage:
    python -m mbqe project problem.smt2 --vars x y
    python -m mbqe maximize problem.smt2 --objective x
"""

import sys
from mbqe.cli import main

if __name__ == "__main__":
    sys.exit(main())
