# Domain Package
from .exceptions import (
    CardNotFoundError,
    DeckWriteError,
    GatedNotesError,
    NoteAccessError,
    NoteAlreadyFinalizedError,
    NoteNotFinalizedError,
)
from .interfaces import DeckStore, ImageResolver, NoteSource
from .models import (
    Card,
    CardStatus,
    Deck,
    Paragraph,
    PoolEntry,
    Rating,
    ReviewLogEntry,
    SchedulerConfig,
    StudyMode,
)

__all__ = [
    "Card",
    "CardNotFoundError",
    "CardStatus",
    "Deck",
    "DeckStore",
    "DeckWriteError",
    "GatedNotesError",
    "ImageResolver",
    "NoteAccessError",
    "NoteAlreadyFinalizedError",
    "NoteNotFinalizedError",
    "NoteSource",
    "Paragraph",
    "PoolEntry",
    "Rating",
    "ReviewLogEntry",
    "SchedulerConfig",
    "StudyMode",
]
