"""
Gate resolver: reduces a card set to the unlock boundary of a chapter.

The boundary is the lowest paragraph index still held by a blocking card.
Every paragraph past it renders obscured. Results are never cached; any
single rating can move the boundary.
"""

import math
from collections.abc import Iterable, Sequence
from typing import Literal

from gated_notes.domain.models import Card, Paragraph

ChapterState = Literal["blocked", "due", "done"]


def first_blocked_index(cards: Iterable[Card]) -> float:
    """
    Return the lowest `para_idx` among blocking, non-suspended cards.

    Cards without a paragraph index count as infinity. Returns `math.inf`
    when nothing blocks, i.e. the whole chapter is visible.
    """
    boundary = math.inf
    for card in cards:
        if not card.blocked or card.suspended:
            continue
        idx = card.para_idx if card.para_idx is not None else math.inf
        if idx < boundary:
            boundary = idx
    return boundary


def chapter_cards(cards: Iterable[Card], chapter_path: str) -> list[Card]:
    return [c for c in cards if c.chapter == chapter_path]


def chapter_boundary(cards: Iterable[Card], chapter_path: str) -> float:
    """Unlock boundary of one chapter, ignoring cards of its sibling notes."""
    return first_blocked_index(chapter_cards(cards, chapter_path))


def is_obscured(para_id: int, boundary: float) -> bool:
    return para_id > boundary


def split_visible(
    paragraphs: Sequence[Paragraph], boundary: float
) -> tuple[list[Paragraph], list[Paragraph]]:
    """Partition paragraphs into (visible, obscured) for a boundary."""
    visible: list[Paragraph] = []
    obscured: list[Paragraph] = []
    for para in paragraphs:
        (obscured if is_obscured(para.id, boundary) else visible).append(para)
    return visible, obscured


def chapter_state(cards: Iterable[Card], now: int) -> ChapterState | None:
    """
    Summarize a chapter for explorer decoration.

    "blocked" if any card blocks, else "due" if any card is due, else "done".
    Suspended cards are ignored. None when the chapter has no active cards.
    """
    cards = [c for c in cards if not c.suspended]
    if not cards:
        return None
    if any(c.blocked for c in cards):
        return "blocked"
    if any(c.due <= now for c in cards):
        return "due"
    return "done"
