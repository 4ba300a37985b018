"""
memongo CLI module.

This module provides the command-line interface for memongo.
"""

from .parser import CLI, main

__all__ = ["CLI", "main"]
