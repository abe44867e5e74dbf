"""
Service Factory
Centralizes wiring of the filesystem adapters behind the application services.
"""

from dataclasses import dataclass

from gated_notes.application.config import AppConfig
from gated_notes.application.deck_service import DeckService
from gated_notes.domain.interfaces import DeckStore, ImageResolver, NoteSource
from gated_notes.infrastructure.adapters import FileImageResolver, JsonDeckStore, VaultNoteSource


@dataclass
class Services:
    store: DeckStore
    notes: NoteSource
    images: ImageResolver
    decks: DeckService


def build_services(config: AppConfig) -> Services:
    """
    Returns the adapters and services for the configured vault.
    """
    if config.vault_root is None:
        raise ValueError("vault_root must be resolved before building services")

    store = JsonDeckStore(config.vault_root)
    return Services(
        store=store,
        notes=VaultNoteSource(config.vault_root),
        images=FileImageResolver(config.vault_root),
        decks=DeckService(store),
    )
