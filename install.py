#!/usr/bin/env python3
# filename: lobsters-provision/install.py
# -*- coding: utf-8 -*-
"""
Entry point for the Lobsters single-host provisioner.

    sudo ./install.py --domain news.example.com --admin-user alice
"""

import sys

from provision.main_installer import main

if __name__ == "__main__":
    sys.exit(main())
