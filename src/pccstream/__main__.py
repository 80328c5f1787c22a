"""
Entry point for running pccstream as a module.

Usage:
    python -m pccstream data.csv --columns a b c
"""

import sys
from .cli import main

if __name__ == "__main__":
    sys.exit(main())
