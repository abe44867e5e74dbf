"""
Ports (interfaces) for the collaborators the core consumes.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod

from .models import Deck


class DeckStore(ABC):
    """
    Port for loading and replacing whole decks.

    Implementations:
        - JsonDeckStore: one `_flashcards.json` file per vault folder.
    """

    @abstractmethod
    async def load(self, deck_path: str) -> Deck:
        """
        Read the deck at `deck_path`.

        A missing or unreadable deck yields an empty mapping; it never raises
        for content problems.
        """
        pass

    @abstractmethod
    async def save(self, deck_path: str, deck: Deck) -> None:
        """
        Replace the deck at `deck_path` with `deck` (last writer wins).

        Raises:
            DeckWriteError: if the deck cannot be persisted.
        """
        pass

    @abstractmethod
    async def list_deck_paths(self) -> list[str]:
        """Return the vault-relative paths of every deck."""
        pass


class NoteSource(ABC):
    """Port for reading and rewriting chapter notes."""

    @abstractmethod
    async def read_note(self, chapter_path: str) -> str:
        """
        Raises:
            NoteAccessError: if the note is missing or unreadable.
        """
        pass

    @abstractmethod
    async def write_note(self, chapter_path: str, content: str) -> None:
        pass

    @abstractmethod
    async def list_notes(self) -> list[str]:
        """Return the vault-relative paths of every markdown note."""
        pass


class ImageResolver(ABC):
    """Port for the image collaborator that fingerprints embedded images."""

    @abstractmethod
    async def hash_for_embed(self, link: str, chapter_path: str) -> str | None:
        """
        Resolve an `![[link]]` embed in `chapter_path` to the SHA-256 hex
        digest of the image file, or None if the link does not resolve.
        """
        pass
