"""
Spaced-repetition state machine for a single card.

States run new -> learning -> review, with review -> relearn -> review when a
mature card is failed. This is a pure computation module with no I/O: the
step tables arrive through SchedulerConfig and the clock through `now`.
"""

import math
import time
from datetime import datetime, timezone
from typing import assert_never

from ulid import ULID

from gated_notes.domain.constants import (
    AGAIN_EASE_PENALTY,
    DEFAULT_EASE_FACTOR,
    EASY_EASE_BONUS,
    EASY_GRADUATING_INTERVAL_DAYS,
    GRADUATING_INTERVAL_DAYS,
    HARD_EASE_PENALTY,
    HARD_INTERVAL_MULTIPLIER,
    MIN_EASE_FACTOR,
    ONE_DAY_MS,
    ONE_HOUR_MS,
    ONE_MINUTE_MS,
)
from gated_notes.domain.models import Card, CardStatus, Rating, ReviewLogEntry, SchedulerConfig


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def iso_timestamp(epoch_ms: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC string ending in 'Z'."""
    dt = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def apply_rating(
    card: Card,
    rating: Rating,
    config: SchedulerConfig,
    now: int | None = None,
) -> None:
    """
    Apply a rating to `card` in place.

    A snapshot of the card's prior status, interval and ease factor is
    appended to `review_history` before anything changes. `Again` re-blocks
    the card and makes it due immediately; every other rating clears
    `blocked`.

    Args:
        card: The card to update.
        rating: Button pressed by the learner.
        config: Learning and relearning step tables (minutes).
        now: Epoch milliseconds to treat as the current time.
    """
    if now is None:
        now = now_ms()

    original_status = card.status
    card.review_history.append(
        ReviewLogEntry(
            timestamp=now,
            rating=rating.value,
            state=original_status,
            interval=card.interval,
            ease_factor=card.ease_factor,
        )
    )
    card.last_reviewed = iso_timestamp(now)

    if original_status == CardStatus.NEW:
        card.status = CardStatus.LEARNING

    if rating == Rating.AGAIN:
        if original_status == CardStatus.REVIEW:
            card.status = CardStatus.RELEARN
        card.learning_step_index = 0
        card.interval = 0
        card.ease_factor = max(MIN_EASE_FACTOR, card.ease_factor - AGAIN_EASE_PENALTY)
        card.due = now
        card.blocked = True
        return

    card.blocked = False

    status = card.status
    if status == CardStatus.LEARNING or status == CardStatus.RELEARN:
        _advance_step(card, rating, config, now)
    elif status == CardStatus.REVIEW:
        _grow_interval(card, rating)
        card.due = now + int(card.interval * ONE_DAY_MS)
    elif status == CardStatus.NEW:
        # Unreachable: new cards were moved to learning above.
        raise AssertionError("new card was not promoted to learning")
    else:
        assert_never(status)


def _advance_step(card: Card, rating: Rating, config: SchedulerConfig, now: int) -> None:
    steps = config.relearn_steps if card.status == CardStatus.RELEARN else config.learning_steps
    increment = 2 if rating == Rating.EASY else 1
    current = card.learning_step_index if card.learning_step_index is not None else -1
    index = current + increment

    if index < len(steps):
        card.learning_step_index = index
        card.due = now + int(steps[index] * ONE_MINUTE_MS)
        return

    # Graduate
    card.status = CardStatus.REVIEW
    card.interval = (
        EASY_GRADUATING_INTERVAL_DAYS if rating == Rating.EASY else GRADUATING_INTERVAL_DAYS
    )
    card.due = now + int(card.interval * ONE_DAY_MS)
    card.learning_step_index = None


def _grow_interval(card: Card, rating: Rating) -> None:
    if rating == Rating.HARD:
        card.interval = max(1, card.interval * HARD_INTERVAL_MULTIPLIER)
        card.ease_factor = max(MIN_EASE_FACTOR, card.ease_factor - HARD_EASE_PENALTY)
    elif rating == Rating.GOOD or rating == Rating.EASY:
        if rating == Rating.EASY:
            card.ease_factor += EASY_EASE_BONUS
        card.interval = _round_half_up(card.interval * card.ease_factor)
    elif rating == Rating.AGAIN:
        raise AssertionError("Again is handled before interval growth")
    else:
        assert_never(rating)


def create_card(
    front: str,
    back: str,
    tag: str,
    chapter: str,
    para_idx: int | None = None,
    now: int | None = None,
) -> Card:
    """Create a never-rated card that blocks from the moment it exists."""
    if now is None:
        now = now_ms()
    return Card(
        id=f"c_{ULID()}",
        front=front,
        back=back,
        tag=tag,
        chapter=chapter,
        para_idx=para_idx,
        status=CardStatus.NEW,
        interval=0,
        ease_factor=DEFAULT_EASE_FACTOR,
        due=now,
        blocked=True,
    )


def reset_card_progress(card: Card, now: int | None = None) -> None:
    """Return a card to the new state, dropping its history."""
    if now is None:
        now = now_ms()
    card.status = CardStatus.NEW
    card.last_reviewed = None
    card.interval = 0
    card.ease_factor = DEFAULT_EASE_FACTOR
    card.due = now
    card.blocked = True
    card.review_history = []
    card.learning_step_index = None


def bury_card(card: Card, delay_hours: float, now: int | None = None) -> None:
    """Push a card's due time `delay_hours` into the future."""
    if now is None:
        now = now_ms()
    card.due = now + int(delay_hours * ONE_HOUR_MS)
