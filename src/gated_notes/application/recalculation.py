"""
Paragraph index recalculation after notes are edited or re-finalized.

Re-runs the aligner for every card of a chapter and writes the deck back only
when an index actually moved. The vault-wide sweep runs chapters one after
another; a failing chapter is logged and the sweep carries on.
"""

import logging
from dataclasses import dataclass, field

from gated_notes.application.aligner import align_tag
from gated_notes.application.utils.paths import deck_path_for_chapter
from gated_notes.domain.interfaces import DeckStore, ImageResolver, NoteSource
from gated_notes.domain.models import Paragraph
from gated_notes.infrastructure.utils.note_format import extract_paragraphs, image_embeds

logger = logging.getLogger(__name__)

# Guards recalculate_all against re-entry.
_recalculating_all = False


@dataclass
class RecalculationResult:
    chapter: str
    finalized: bool = True
    updated: int = 0
    not_found: list[str] = field(default_factory=list)


@dataclass
class BulkRecalculationResult:
    chapters: list[RecalculationResult] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def updated(self) -> int:
        return sum(r.updated for r in self.chapters)


def is_recalculating() -> bool:
    return _recalculating_all


async def build_image_index(
    paragraphs: list[Paragraph],
    chapter_path: str,
    images: ImageResolver | None,
) -> dict[str, int]:
    """Map image hash -> id of the paragraph that embeds it."""
    index: dict[str, int] = {}
    if images is None:
        return index
    for para in paragraphs:
        for link in image_embeds(para.markdown):
            digest = await images.hash_for_embed(link, chapter_path)
            if digest:
                index[digest] = para.id
    return index


async def recalculate_chapter(
    chapter_path: str,
    store: DeckStore,
    notes: NoteSource,
    images: ImageResolver | None = None,
) -> RecalculationResult:
    """
    Realign the cards of one chapter against its current paragraphs.

    Cards that no longer align keep their old index and are reported in
    `not_found` for manual correction.
    """
    result = RecalculationResult(chapter=chapter_path)

    paragraphs = extract_paragraphs(await notes.read_note(chapter_path))
    if not paragraphs:
        result.finalized = False
        return result

    deck_path = deck_path_for_chapter(chapter_path)
    deck = await store.load(deck_path)
    if not deck:
        return result

    image_index = await build_image_index(paragraphs, chapter_path, images)

    for card in deck.values():
        if card.chapter != chapter_path:
            continue
        new_idx = align_tag(card.tag, paragraphs, image_index)
        if new_idx is None:
            result.not_found.append(card.id)
            logger.warning(
                f"Could not locate paragraph for card: \"{card.front}\" in file {chapter_path}."
            )
            continue
        if card.para_idx != new_idx:
            card.para_idx = new_idx
            result.updated += 1

    if result.updated:
        await store.save(deck_path, deck)
    logger.info(
        f"[recalc] {chapter_path}: {result.updated} updated, "
        f"{len(result.not_found)} not found"
    )
    return result


async def recalculate_all(
    store: DeckStore,
    notes: NoteSource,
    images: ImageResolver | None = None,
) -> BulkRecalculationResult | None:
    """
    Recalculate every note in the vault, one at a time.

    Returns None without doing anything when a sweep is already running.
    There is no cancellation; each note either completes or is recorded in
    `failed`.
    """
    global _recalculating_all
    if _recalculating_all:
        logger.warning("Recalculation for all notes is already in progress.")
        return None

    _recalculating_all = True
    bulk = BulkRecalculationResult()
    try:
        chapters = await notes.list_notes()
        logger.info(f"Starting paragraph index recalculation for {len(chapters)} notes...")
        for chapter_path in chapters:
            try:
                bulk.chapters.append(
                    await recalculate_chapter(chapter_path, store, notes, images)
                )
            except Exception as e:
                logger.error(f"[recalc] {chapter_path} failed: {e}", exc_info=True)
                bulk.failed[chapter_path] = str(e)
    finally:
        _recalculating_all = False
    return bulk
