#!/usr/bin/env python3
"""
Actuary

Main executable entry point for the CIS Docker benchmark audit tool.
This script runs the CLI and exits with appropriate status codes.

Usage:
    ./run_actuary.py [options] [hash]
    python3 run_actuary.py [options] [hash]

Exit Codes:
    0 - Success, no check reported WARN
    1 - Error occurred during execution (bad profile, daemon unreachable)
    2 - Warnings present (failed checks, or running without sudo)

Examples:
    # Run every bundled check
    sudo ./run_actuary.py

    # Run a local profile and write an XML report
    sudo ./run_actuary.py -f profile.toml -o report.xml -t xml

    # Fetch a profile from the profile server by hash
    ./run_actuary.py --profile-server https://profiles.example.org 3f2a9c

    # Run each category on four threads
    sudo ./run_actuary.py --workers 4 --check-timeout 30
"""

import sys
from actuary.cli import main

if __name__ == "__main__":
    sys.exit(main())
