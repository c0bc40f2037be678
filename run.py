#!/usr/bin/env python
"""
Launcher script for the Bakery Operations command-line interface.

This script ensures the src/ directory is on the Python path before
running the CLI, so it works from a plain checkout.
"""

import sys
from pathlib import Path

# Add src/ to the Python path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from bakery_ops.cli import main

if __name__ == "__main__":
    sys.exit(main())
