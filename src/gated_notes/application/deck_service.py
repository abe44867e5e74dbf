"""
Deck Service: application layer orchestrator for card mutations.

Every mutation is a read-modify-write of one whole deck through the
DeckStore port. Decks are re-read before each action so a card deleted in
the meantime is detected instead of resurrected.
"""

import logging
from dataclasses import dataclass

from gated_notes.application.aligner import align_tag
from gated_notes.application.gate_resolver import chapter_boundary
from gated_notes.application.review_pool import build_review_pool, due_counts
from gated_notes.application.scheduler import (
    apply_rating,
    bury_card,
    create_card,
    now_ms,
    reset_card_progress,
)
from gated_notes.application.utils.paths import deck_path_for_chapter
from gated_notes.domain.exceptions import CardNotFoundError
from gated_notes.domain.interfaces import DeckStore
from gated_notes.domain.models import (
    Card,
    Deck,
    Paragraph,
    PoolEntry,
    Rating,
    SchedulerConfig,
    StudyMode,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatingOutcome:
    """
    Result of rating a card.

    `boundary_changed` tells the caller whether the chapter's gated view has
    to be re-rendered at all.
    """

    card: Card
    boundary_before: float
    boundary_after: float

    @property
    def boundary_changed(self) -> bool:
        return self.boundary_before != self.boundary_after


@dataclass(frozen=True)
class NewCard:
    front: str
    back: str
    tag: str


class DeckService:
    """
    Card operations over the deck store.

    Follows Dependency Inversion: depends on the DeckStore abstraction,
    not a concrete file format.
    """

    def __init__(self, store: DeckStore):
        self._store = store

    async def load_deck(self, deck_path: str) -> Deck:
        return await self._store.load(deck_path)

    async def load_chapter_deck(self, chapter_path: str) -> Deck:
        return await self._store.load(deck_path_for_chapter(chapter_path))

    async def load_all_decks(self) -> dict[str, Deck]:
        decks: dict[str, Deck] = {}
        for deck_path in await self._store.list_deck_paths():
            decks[deck_path] = await self._store.load(deck_path)
        return decks

    async def _load_card(self, deck_path: str, card_id: str) -> tuple[Deck, Card]:
        deck = await self._store.load(deck_path)
        card = deck.get(card_id)
        if card is None:
            raise CardNotFoundError(card_id, deck_path)
        return deck, card

    async def rate_card(
        self,
        deck_path: str,
        card_id: str,
        rating: Rating,
        config: SchedulerConfig,
        now: int | None = None,
    ) -> RatingOutcome:
        """
        Apply a rating to a card and persist its deck.

        The chapter boundary is computed on the freshly read deck before and
        after the rating.

        Raises:
            CardNotFoundError: if the card is gone from the latest deck.
        """
        deck, card = await self._load_card(deck_path, card_id)
        before = chapter_boundary(deck.values(), card.chapter)

        apply_rating(card, rating, config, now=now)

        after = chapter_boundary(deck.values(), card.chapter)
        await self._store.save(deck_path, deck)

        logger.info(
            f"Rated {card_id} {rating.value}: status={card.status.value} "
            f"boundary {before} -> {after}"
        )
        return RatingOutcome(card=card, boundary_before=before, boundary_after=after)

    async def add_cards(
        self,
        chapter_path: str,
        new_cards: list[NewCard],
        paragraphs: list[Paragraph],
        image_index: dict[str, int] | None = None,
        now: int | None = None,
    ) -> list[Card]:
        """
        Create cards for a chapter, aligning each tag to its paragraph.

        Cards whose tag does not align are still stored, unaligned, so they
        can be fixed by hand or by a later recalculation.
        """
        deck_path = deck_path_for_chapter(chapter_path)
        deck = await self._store.load(deck_path)
        created: list[Card] = []
        for item in new_cards:
            para_idx = align_tag(item.tag, paragraphs, image_index)
            card = create_card(
                front=item.front,
                back=item.back,
                tag=item.tag,
                chapter=chapter_path,
                para_idx=para_idx,
                now=now,
            )
            if para_idx is None:
                logger.warning(
                    f"Could not locate paragraph for card: \"{item.front}\" in {chapter_path}"
                )
            deck[card.id] = card
            created.append(card)
        await self._store.save(deck_path, deck)
        return created

    async def update_tag(
        self,
        deck_path: str,
        card_id: str,
        tag: str,
        paragraphs: list[Paragraph],
        image_index: dict[str, int] | None = None,
    ) -> Card:
        """Replace a card's tag and realign it; an unmatched tag unaligns the card."""
        deck, card = await self._load_card(deck_path, card_id)
        card.tag = tag
        card.para_idx = align_tag(tag, paragraphs, image_index)
        await self._store.save(deck_path, deck)
        return card

    async def delete_card(self, deck_path: str, card_id: str) -> None:
        deck, _ = await self._load_card(deck_path, card_id)
        del deck[card_id]
        await self._store.save(deck_path, deck)

    async def bury(
        self, deck_path: str, card_id: str, delay_hours: float, now: int | None = None
    ) -> Card:
        deck, card = await self._load_card(deck_path, card_id)
        bury_card(card, delay_hours, now=now)
        await self._store.save(deck_path, deck)
        return card

    async def reset(self, deck_path: str, card_id: str, now: int | None = None) -> Card:
        deck, card = await self._load_card(deck_path, card_id)
        reset_card_progress(card, now=now)
        await self._store.save(deck_path, deck)
        return card

    async def toggle_suspended(self, deck_path: str, card_id: str) -> Card:
        deck, card = await self._load_card(deck_path, card_id)
        card.suspended = not card.suspended
        await self._store.save(deck_path, deck)
        return card

    async def toggle_flagged(self, deck_path: str, card_id: str) -> Card:
        deck, card = await self._load_card(deck_path, card_id)
        card.flagged = not card.flagged
        await self._store.save(deck_path, deck)
        return card

    async def review_pool(
        self,
        mode: StudyMode,
        active_path: str,
        now: int | None = None,
        new_cards_first: bool = False,
    ) -> list[PoolEntry]:
        decks = await self.load_all_decks()
        return build_review_pool(
            mode,
            active_path,
            decks,
            now if now is not None else now_ms(),
            new_cards_first=new_cards_first,
        )

    async def chapter_boundary(self, chapter_path: str) -> float:
        deck = await self.load_chapter_deck(chapter_path)
        return chapter_boundary(deck.values(), chapter_path)

    async def due_counts(self, now: int | None = None) -> tuple[int, int]:
        decks = await self.load_all_decks()
        return due_counts(decks, now if now is not None else now_ms())

    async def cards_missing_para_idx(self) -> list[PoolEntry]:
        """Cards that cannot gate because they have no paragraph index."""
        missing: list[PoolEntry] = []
        for deck_path, deck in (await self.load_all_decks()).items():
            missing.extend(
                PoolEntry(card=c, deck_path=deck_path) for c in deck.values() if c.para_idx is None
            )
        return missing
