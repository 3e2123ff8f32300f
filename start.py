#!/usr/bin/env python3
"""
Start script - runs the listing watcher until the process is killed
"""
import sys

if __name__ == "__main__":
    from app.main import main

    sys.exit(main())
