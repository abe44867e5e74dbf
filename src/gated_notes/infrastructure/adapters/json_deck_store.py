"""
JSON Deck Store: infrastructure adapter for per-folder `_flashcards.json` files.

Implements DeckStore. Every load goes back to disk; there is no in-memory
cache, so concurrent readers never diverge from the persisted form.
"""

import json
import logging
from pathlib import Path

from gated_notes.domain.exceptions import DeckWriteError
from gated_notes.domain.interfaces import DeckStore
from gated_notes.domain.models import Card, Deck
from gated_notes.infrastructure.utils.fs import iter_deck_files, to_vault_path

logger = logging.getLogger(__name__)


class JsonDeckStore(DeckStore):
    """
    Reads and replaces whole deck files under a vault root.

    A malformed deck is reported with a warning and read as empty. A single
    malformed card record is skipped, keeping the rest of the deck.
    """

    def __init__(self, vault_root: Path):
        self.vault_root = vault_root

    def _resolve(self, deck_path: str) -> Path:
        return self.vault_root / deck_path

    async def load(self, deck_path: str) -> Deck:
        path = self._resolve(deck_path)
        if not path.exists():
            return {}

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(
                f"Could not read flashcard file at {deck_path}. File may be corrupt: {e}"
            )
            return {}

        if not isinstance(raw, dict):
            logger.warning(f"Flashcard file at {deck_path} is not a JSON object; ignoring it")
            return {}

        deck: Deck = {}
        for card_id, record in raw.items():
            if not isinstance(record, dict):
                logger.warning(f"[deck] {deck_path}: skipping non-object card {card_id}")
                continue
            try:
                card = Card.from_dict({"id": card_id, **record})
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"[deck] {deck_path}: skipping malformed card {card_id}: {e}")
                continue
            deck[card_id] = card
        return deck

    async def save(self, deck_path: str, deck: Deck) -> None:
        path = self._resolve(deck_path)
        if path.is_dir():
            raise DeckWriteError(f"Deck path is a folder, cannot write file: {deck_path}")

        content = json.dumps(
            {card_id: card.to_dict() for card_id, card in deck.items()},
            indent=2,
            ensure_ascii=False,
        )
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise DeckWriteError(f"Failed to write deck to {deck_path}: {e}") from e
        logger.debug(f"[write] {deck_path}: {len(deck)} cards")

    async def list_deck_paths(self) -> list[str]:
        return [to_vault_path(p, self.vault_root) for p in iter_deck_files(self.vault_root)]
