#!/usr/bin/env python3
"""
Enable running specforge commands via: python -m specforge

Usage:
    python -m specforge synthesize requirements.txt
    python -m specforge gaps requirements.txt
"""

import sys

from specforge.cli import main

if __name__ == "__main__":
    sys.exit(main())
