"""BrainDeck: personal Leitner-system flashcard scheduler."""

__version__ = "1.0.0"
