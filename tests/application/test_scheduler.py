"""Tests for the card scheduler state machine."""

import pytest

from gated_notes.application.scheduler import (
    apply_rating,
    bury_card,
    create_card,
    iso_timestamp,
    reset_card_progress,
)
from gated_notes.domain.constants import ONE_DAY_MS, ONE_HOUR_MS, ONE_MINUTE_MS
from gated_notes.domain.models import CardStatus, Rating, SchedulerConfig

NOW = 1_700_000_000_000


class TestLearningPhase:
    def test_good_walks_learning_steps_then_graduates(self, make_card, scheduler_config):
        card = make_card()

        apply_rating(card, Rating.GOOD, scheduler_config, now=NOW)
        assert card.status == CardStatus.LEARNING
        assert card.learning_step_index == 0
        assert card.due == NOW + 1 * ONE_MINUTE_MS

        apply_rating(card, Rating.GOOD, scheduler_config, now=NOW)
        assert card.status == CardStatus.LEARNING
        assert card.learning_step_index == 1
        assert card.due == NOW + 10 * ONE_MINUTE_MS

        apply_rating(card, Rating.GOOD, scheduler_config, now=NOW)
        assert card.status == CardStatus.REVIEW
        assert card.interval == 1
        assert card.learning_step_index is None
        assert card.due == NOW + ONE_DAY_MS

    def test_easy_skips_a_step(self, make_card, scheduler_config):
        card = make_card()
        apply_rating(card, Rating.EASY, scheduler_config, now=NOW)
        # -1 + 2 = 1, still inside [1, 10]
        assert card.status == CardStatus.LEARNING
        assert card.learning_step_index == 1
        assert card.due == NOW + 10 * ONE_MINUTE_MS

    def test_easy_graduates_with_four_days(self, make_card, scheduler_config):
        card = make_card(status=CardStatus.LEARNING, learning_step_index=0)
        apply_rating(card, Rating.EASY, scheduler_config, now=NOW)
        assert card.status == CardStatus.REVIEW
        assert card.interval == 4
        assert card.due == NOW + 4 * ONE_DAY_MS
        assert card.learning_step_index is None

    def test_relearn_uses_relearn_steps(self, make_card):
        config = SchedulerConfig(learning_steps=(1, 10), relearn_steps=(5, 30))
        card = make_card(status=CardStatus.RELEARN, learning_step_index=0, blocked=True)
        apply_rating(card, Rating.GOOD, config, now=NOW)
        assert card.status == CardStatus.RELEARN
        assert card.learning_step_index == 1
        assert card.due == NOW + 30 * ONE_MINUTE_MS
        assert card.blocked is False

    def test_hard_in_learning_advances_one_step(self, make_card, scheduler_config):
        card = make_card(status=CardStatus.LEARNING, learning_step_index=0)
        apply_rating(card, Rating.HARD, scheduler_config, now=NOW)
        assert card.learning_step_index == 1


class TestReviewPhase:
    def test_hard_on_mature_card(self, make_card, scheduler_config):
        card = make_card(status=CardStatus.REVIEW, interval=10, ease_factor=2.0, blocked=False)
        apply_rating(card, Rating.HARD, scheduler_config, now=NOW)
        assert card.interval == pytest.approx(12)
        assert card.ease_factor == pytest.approx(1.85)
        assert card.due == NOW + 12 * ONE_DAY_MS

    def test_hard_interval_never_below_one_day(self, make_card, scheduler_config):
        card = make_card(status=CardStatus.REVIEW, interval=0.5, ease_factor=2.5)
        apply_rating(card, Rating.HARD, scheduler_config, now=NOW)
        assert card.interval == 1

    def test_good_multiplies_by_ease(self, make_card, scheduler_config):
        card = make_card(status=CardStatus.REVIEW, interval=4, ease_factor=2.5)
        apply_rating(card, Rating.GOOD, scheduler_config, now=NOW)
        assert card.interval == 10
        assert card.ease_factor == pytest.approx(2.5)

    def test_easy_raises_ease_before_multiplying(self, make_card, scheduler_config):
        card = make_card(status=CardStatus.REVIEW, interval=4, ease_factor=2.0)
        apply_rating(card, Rating.EASY, scheduler_config, now=NOW)
        assert card.ease_factor == pytest.approx(2.15)
        assert card.interval == 9  # round(8.6)

    def test_ease_floor_on_hard(self, make_card, scheduler_config):
        card = make_card(status=CardStatus.REVIEW, interval=3, ease_factor=1.35)
        apply_rating(card, Rating.HARD, scheduler_config, now=NOW)
        assert card.ease_factor == pytest.approx(1.3)


class TestAgain:
    def test_again_on_review_moves_to_relearn(self, make_card, scheduler_config):
        card = make_card(status=CardStatus.REVIEW, interval=10, ease_factor=2.5, blocked=False)
        apply_rating(card, Rating.AGAIN, scheduler_config, now=NOW)
        assert card.status == CardStatus.RELEARN
        assert card.learning_step_index == 0
        assert card.interval == 0
        assert card.ease_factor == pytest.approx(2.3)
        assert card.due == NOW
        assert card.blocked is True

    def test_again_on_new_card_enters_learning(self, make_card, scheduler_config):
        card = make_card()
        apply_rating(card, Rating.AGAIN, scheduler_config, now=NOW)
        assert card.status == CardStatus.LEARNING
        assert card.learning_step_index == 0
        assert card.blocked is True

    def test_again_then_good_restarts_at_second_step(self, make_card, scheduler_config):
        card = make_card(status=CardStatus.LEARNING, learning_step_index=1)
        apply_rating(card, Rating.AGAIN, scheduler_config, now=NOW)
        apply_rating(card, Rating.GOOD, scheduler_config, now=NOW)
        assert card.learning_step_index == 1

    def test_again_ease_floor(self, make_card, scheduler_config):
        card = make_card(status=CardStatus.REVIEW, interval=2, ease_factor=1.4)
        apply_rating(card, Rating.AGAIN, scheduler_config, now=NOW)
        assert card.ease_factor == pytest.approx(1.3)


@pytest.mark.parametrize("rating", list(Rating))
@pytest.mark.parametrize(
    "status,interval,ease,step",
    [
        (CardStatus.NEW, 0, 2.5, None),
        (CardStatus.LEARNING, 0, 1.3, 0),
        (CardStatus.RELEARN, 0, 1.31, 0),
        (CardStatus.REVIEW, 1, 1.3, None),
        (CardStatus.REVIEW, 30, 1.4, None),
    ],
)
def test_invariants_hold_for_every_rating(make_card, scheduler_config, rating, status, interval, ease, step):
    card = make_card(status=status, interval=interval, ease_factor=ease, learning_step_index=step)
    apply_rating(card, rating, scheduler_config, now=NOW)

    assert card.ease_factor >= 1.3
    assert card.interval >= 0
    if rating == Rating.AGAIN:
        assert card.blocked is True
        assert card.due == NOW
    else:
        assert card.blocked is False


def test_history_snapshot_is_taken_before_rating(make_card, scheduler_config):
    card = make_card(status=CardStatus.REVIEW, interval=10, ease_factor=2.0)
    apply_rating(card, Rating.HARD, scheduler_config, now=NOW)

    assert len(card.review_history) == 1
    entry = card.review_history[0]
    assert entry.timestamp == NOW
    assert entry.rating == "Hard"
    assert entry.state == CardStatus.REVIEW
    assert entry.interval == 10
    assert entry.ease_factor == 2.0


def test_last_reviewed_is_set(make_card, scheduler_config):
    card = make_card()
    apply_rating(card, Rating.AGAIN, scheduler_config, now=NOW)
    assert card.last_reviewed == iso_timestamp(NOW)
    assert card.last_reviewed.endswith("Z")


def test_scheduler_config_rejects_empty_steps():
    with pytest.raises(ValueError):
        SchedulerConfig(learning_steps=(), relearn_steps=(10,))
    with pytest.raises(ValueError):
        SchedulerConfig(learning_steps=(1,), relearn_steps=(0,))


def test_create_card_defaults():
    card = create_card("Q", "A", "some quote", "Bio/Cells.md", para_idx=3, now=NOW)
    assert card.id.startswith("c_")
    assert card.status == CardStatus.NEW
    assert card.blocked is True
    assert card.ease_factor == 2.5
    assert card.interval == 0
    assert card.due == NOW
    assert card.para_idx == 3


def test_create_card_ids_are_unique():
    ids = {create_card("Q", "A", "t", "c.md", now=NOW).id for _ in range(20)}
    assert len(ids) == 20


def test_reset_card_progress(make_card, scheduler_config):
    card = make_card(status=CardStatus.REVIEW, interval=20, ease_factor=1.8, blocked=False)
    apply_rating(card, Rating.GOOD, scheduler_config, now=NOW)

    reset_card_progress(card, now=NOW + 5)

    assert card.status == CardStatus.NEW
    assert card.blocked is True
    assert card.interval == 0
    assert card.ease_factor == 2.5
    assert card.review_history == []
    assert card.last_reviewed is None
    assert card.due == NOW + 5


def test_bury_card(make_card):
    card = make_card()
    bury_card(card, 24, now=NOW)
    assert card.due == NOW + 24 * ONE_HOUR_MS
