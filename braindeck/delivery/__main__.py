"""
Entry point for running BrainDeck as a module.

Usage:
    python -m braindeck.delivery study
    python -m braindeck.delivery stats
    python -m braindeck.delivery --help
"""
from .cli import main

if __name__ == "__main__":
    main()
