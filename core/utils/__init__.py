"""
Core Utilities Package

This package contains utility functions and helpers used throughout the application.

Modules:
    - time: UTC datetime helpers
"""

from core.utils.time import current_utc_datetime, ensure_utc

__all__ = ["current_utc_datetime", "ensure_utc"]
