# Infrastructure Adapters Package
from .json_deck_store import JsonDeckStore
from .vault import FileImageResolver, VaultNoteSource

__all__ = ["JsonDeckStore", "VaultNoteSource", "FileImageResolver"]
