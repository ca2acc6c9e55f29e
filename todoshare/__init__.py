# -*- coding: utf-8 -*-
"""Shared tasks with per-user permissions and deduplicated reminders."""

__version__ = "0.1.0"
