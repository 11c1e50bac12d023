#!/usr/bin/env python3
"""
Weekly Allocator CLI entry point

Allows running the allocator as a module:
    python -m allocator --once
"""

from .cli import main

if __name__ == "__main__":
    main()
