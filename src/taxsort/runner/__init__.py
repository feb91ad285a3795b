"""
CLI runner module.

Provides commands:
- parse: Extract transactions from a statement PDF
- classify: Parse and assign tax categories, with review items
- institutions: List institutions with dedicated parsers
- init-config: Write a default config file
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
