# provision/__init__.py
# -*- coding: utf-8 -*-
"""
Configuration, phase orchestration and reporting of the Lobsters
provisioner.
"""
