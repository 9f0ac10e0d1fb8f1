# janitor/__init__.py
# -*- coding: utf-8 -*-
"""Standalone page-cache expiry job run from cron."""
