# settings/__init__.py
# -*- coding: utf-8 -*-
"""Configuration models, loader, constants and file templates."""
