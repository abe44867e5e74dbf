"""
Review pool builder for cross-deck study sessions.

Builds ordered study queues by:
1. Filtering each deck to the cards in scope for the study mode
2. Dropping suspended and not-yet-due cards
3. Admitting unseen cards only up to the chapter's unlock boundary
4. Ordering reviews before unseen cards, then by reading order or due time
"""

import logging
import math
from collections.abc import Mapping
from functools import cmp_to_key

from gated_notes.application.gate_resolver import first_blocked_index
from gated_notes.domain.models import Card, CardStatus, Deck, PoolEntry, StudyMode

logger = logging.getLogger(__name__)


def is_unseen(card: Card) -> bool:
    """
    True for cards that have never entered a learning step.

    A card sitting on its first learning step still reads as unseen; any
    later step does not.
    """
    return card.status == CardStatus.NEW and card.learning_step_index in (None, 0)


def subject_of(path: str) -> str:
    """Top-level folder of a vault path. A root-level note is its own subject."""
    return path.split("/")[0]


def _cards_in_scope(deck: Deck, mode: StudyMode, active_path: str) -> list[Card]:
    if mode == StudyMode.CHAPTER:
        return [c for c in deck.values() if c.chapter == active_path]
    if mode == StudyMode.SUBJECT:
        subject = subject_of(active_path)
        return [c for c in deck.values() if subject_of(c.chapter) == subject]
    return list(deck.values())


def _para_key(card: Card) -> float:
    return card.para_idx if card.para_idx is not None else math.inf


def _compare(a: PoolEntry, b: PoolEntry, new_cards_first: bool) -> int:
    a_new = is_unseen(a.card)
    b_new = is_unseen(b.card)
    if a_new != b_new:
        first = -1 if new_cards_first else 1
        return first if a_new else -first
    if a.card.chapter == b.card.chapter:
        pa, pb = _para_key(a.card), _para_key(b.card)
        return (pa > pb) - (pa < pb)
    return (a.card.due > b.card.due) - (a.card.due < b.card.due)


def build_review_pool(
    mode: StudyMode,
    active_path: str,
    decks: Mapping[str, Deck],
    now: int,
    new_cards_first: bool = False,
) -> list[PoolEntry]:
    """
    Assemble the ordered queue of cards due for review.

    Args:
        mode: Chapter, subject or whole-vault scope.
        active_path: Vault path of the note the learner is reading.
        decks: Deck path -> freshly loaded deck.
        now: Epoch milliseconds used to decide what is due.
        new_cards_first: Put unseen cards ahead of due reviews.

    Returns:
        PoolEntry list in study order.
    """
    pool: list[PoolEntry] = []

    for deck_path, deck in decks.items():
        in_scope = _cards_in_scope(deck, mode, active_path)

        boundary = math.inf
        if mode == StudyMode.CHAPTER:
            boundary = first_blocked_index(in_scope)

        for card in in_scope:
            if card.suspended or card.due > now:
                continue
            if is_unseen(card):
                if mode != StudyMode.CHAPTER:
                    continue
                if _para_key(card) > boundary:
                    continue
            pool.append(PoolEntry(card=card, deck_path=deck_path))

    pool.sort(key=cmp_to_key(lambda a, b: _compare(a, b, new_cards_first)))
    logger.debug(f"[pool] mode={mode.value} active={active_path} size={len(pool)}")
    return pool


def due_counts(decks: Mapping[str, Deck], now: int) -> tuple[int, int]:
    """
    Count due cards as (learning, review) across all decks.

    New, learning and relearn cards count as learning. Suspended cards are
    never due.
    """
    learning = 0
    review = 0
    for deck in decks.values():
        for card in deck.values():
            if card.suspended or card.due > now:
                continue
            if card.status == CardStatus.REVIEW:
                review += 1
            else:
                learning += 1
    return learning, review
