import math

from gated_notes.application.gate_resolver import (
    chapter_boundary,
    chapter_state,
    first_blocked_index,
    is_obscured,
    split_visible,
)
from gated_notes.domain.models import CardStatus, Paragraph

NOW = 1_700_000_000_000


def test_lowest_blocking_index_wins(make_card):
    cards = [
        make_card("a", para_idx=3, blocked=True),
        make_card("b", para_idx=7, blocked=True),
        make_card("c", para_idx=1, blocked=False),
    ]
    assert first_blocked_index(cards) == 3


def test_no_cards_leaves_everything_visible():
    assert first_blocked_index([]) == math.inf


def test_unblocking_moves_boundary(make_card):
    a = make_card("a", para_idx=3, blocked=True)
    b = make_card("b", para_idx=7, blocked=True)
    assert first_blocked_index([a, b]) == 3

    a.blocked = False
    assert first_blocked_index([a, b]) == 7

    b.blocked = False
    assert first_blocked_index([a, b]) == math.inf


def test_suspended_cards_do_not_block(make_card):
    cards = [make_card("a", para_idx=2, suspended=True), make_card("b", para_idx=5)]
    assert first_blocked_index(cards) == 5


def test_unaligned_cards_count_as_infinity(make_card):
    cards = [make_card("a", para_idx=None), make_card("b", para_idx=4)]
    assert first_blocked_index(cards) == 4
    assert first_blocked_index([make_card("a", para_idx=None)]) == math.inf


def test_boundary_is_recomputed_not_cached(make_card):
    cards = [make_card("a", para_idx=2)]
    assert first_blocked_index(cards) == first_blocked_index(cards)
    cards[0].para_idx = 6
    assert first_blocked_index(cards) == 6


def test_chapter_boundary_ignores_sibling_notes(make_card):
    cards = [
        make_card("a", para_idx=1, chapter="Bio/Genes.md"),
        make_card("b", para_idx=4, chapter="Bio/Cells.md"),
    ]
    assert chapter_boundary(cards, "Bio/Cells.md") == 4
    assert chapter_boundary(cards, "Bio/Other.md") == math.inf


def test_paragraph_at_boundary_stays_visible():
    assert not is_obscured(3, 3)
    assert is_obscured(4, 3)
    assert not is_obscured(1000, math.inf)


def test_split_visible():
    paragraphs = [Paragraph(id=i, markdown=f"p{i}") for i in range(1, 6)]
    visible, obscured = split_visible(paragraphs, 3)
    assert [p.id for p in visible] == [1, 2, 3]
    assert [p.id for p in obscured] == [4, 5]


class TestChapterState:
    def test_empty_chapter(self):
        assert chapter_state([], NOW) is None

    def test_blocked_takes_priority(self, make_card):
        cards = [make_card("a", blocked=True), make_card("b", blocked=False, due=NOW - 1)]
        assert chapter_state(cards, NOW) == "blocked"

    def test_due(self, make_card):
        cards = [make_card("a", blocked=False, due=NOW), make_card("b", blocked=False, due=NOW + 1)]
        assert chapter_state(cards, NOW) == "due"

    def test_done(self, make_card):
        cards = [make_card("a", blocked=False, due=NOW + 1)]
        assert chapter_state(cards, NOW) == "done"

    def test_suspended_cards_are_ignored(self, make_card):
        cards = [
            make_card("a", status=CardStatus.REVIEW, blocked=True, suspended=True, due=NOW - 1),
            make_card("b", blocked=False, due=NOW + 1),
        ]
        assert first_blocked_index(cards) == math.inf
        assert chapter_state(cards, NOW) == "done"

    def test_only_suspended_cards(self, make_card):
        assert chapter_state([make_card("a", suspended=True)], NOW) is None
