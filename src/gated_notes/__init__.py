"""gated-notes: unlock note paragraphs as their flashcards are learned."""

from gated_notes.consts import VERSION

__version__ = VERSION
