#!/usr/bin/env python3
"""Thread Harvester main entry point."""

import sys

from harvester.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
