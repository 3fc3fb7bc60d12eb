"""Wigle Explorer - analysis backend for WiGLE Android SQLite exports"""

__version__ = "1.0.0"
