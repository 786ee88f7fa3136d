#!/usr/bin/env python3
"""
Run a launcher script filter through the coalescing layer.

Usage:
    python script_filter.py search -w wiki-search --command wiki-cli \
        --arg search --arg --query --arg "{query}" -- "rust"
    python script_filter.py clear-cache -w wiki-search
"""

import sys
from pathlib import Path

# Add project to path
sys.path.insert(0, str(Path(__file__).parent))

from coalesce.cli import main

if __name__ == "__main__":
    main()
