class GatedNotesError(Exception):
    """Base class for errors raised by gated-notes."""


class CardNotFoundError(GatedNotesError):
    """The card is not present in the latest read of its deck."""

    def __init__(self, card_id: str, deck_path: str):
        self.card_id = card_id
        self.deck_path = deck_path
        super().__init__(f"Card {card_id} not found in {deck_path}")


class DeckWriteError(GatedNotesError):
    """The deck could not be persisted."""


class NoteNotFinalizedError(GatedNotesError):
    """The note carries no paragraph spans."""


class NoteAlreadyFinalizedError(GatedNotesError):
    """The note already carries paragraph spans."""


class NoteAccessError(GatedNotesError):
    """The note could not be read or written."""

    def __init__(self, chapter_path: str, reason: str):
        self.chapter_path = chapter_path
        super().__init__(f"Cannot access note {chapter_path}: {reason}")
