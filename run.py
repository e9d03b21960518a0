#!/usr/bin/env python3
"""
Run the runner dashboard.

Usage:
    sudo python run.py --config /etc/gitlab-runner/config.toml
"""

from src.cli import main

if __name__ == "__main__":
    main()
