#!/usr/bin/env python
"""
Simple wrapper script to run the dahua_nvr event monitor.
"""

import os
import sys
import asyncio

# Add the current directory to the Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dahua_nvr.__main__ import main

if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
