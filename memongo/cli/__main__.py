"""
Entry point for running the memongo CLI as a module.

Usage: python -m memongo.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
