#!/usr/bin/env python3
# install.py
# -*- coding: utf-8 -*-
"""
Entry point for the Docker Engine provisioner.

Usage: sudo ./install.py install [--yes] [--data-root PATH] [--user NAME]
"""

import sys

from provisioner.cli import main

if __name__ == "__main__":
    sys.exit(main())
