"""
Domain models for cards, decks and paragraphs.

These are pure data structures with no I/O. Cards carry their own JSON
mapping because the deck file format is the persisted form of this model.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from gated_notes.domain.constants import (
    DEFAULT_LEARNING_STEPS,
    DEFAULT_RELEARN_STEPS,
)


class CardStatus(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARN = "relearn"

    @classmethod
    def parse(cls, value: str) -> "CardStatus":
        # Older decks marked mature cards as "graduated".
        if value == "graduated":
            return cls.REVIEW
        return cls(value)


class Rating(str, Enum):
    AGAIN = "Again"
    HARD = "Hard"
    GOOD = "Good"
    EASY = "Easy"


class StudyMode(str, Enum):
    """Breadth of cards considered for a review session."""

    CHAPTER = "chapter"
    SUBJECT = "subject"
    REVIEW = "review"


@dataclass(frozen=True)
class ReviewLogEntry:
    """
    Snapshot of a card taken right before a rating is applied.

    Attributes:
        timestamp: Epoch milliseconds of the rating.
        rating: Button pressed ("Again", "Hard", "Good", "Easy").
        state: Status the card had before the rating.
        interval: Interval in days before the rating.
        ease_factor: Ease factor before the rating.
    """

    timestamp: int
    rating: str
    state: CardStatus | None
    interval: float
    ease_factor: float

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp,
            "rating": self.rating,
            "interval": self.interval,
            "ease_factor": self.ease_factor,
        }
        if self.state is not None:
            data["state"] = self.state.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReviewLogEntry":
        state = data.get("state")
        return cls(
            timestamp=int(data.get("timestamp") or 0),
            rating=str(data.get("rating", "")),
            state=CardStatus.parse(state) if state else None,
            interval=float(data.get("interval", 0)),
            ease_factor=float(data.get("ease_factor", 0)),
        )


@dataclass
class Card:
    """
    A flashcard anchored to one paragraph of a chapter note.

    `para_idx` is a weak, index-based reference into the chapter's paragraph
    sequence. None means the card is unaligned and cannot gate anything.
    """

    id: str
    front: str
    back: str
    tag: str
    chapter: str
    due: int
    para_idx: int | None = None
    status: CardStatus = CardStatus.NEW
    interval: float = 0
    ease_factor: float = 2.5
    learning_step_index: int | None = None
    blocked: bool = True
    suspended: bool = False
    flagged: bool = False
    last_reviewed: str | None = None
    review_history: list[ReviewLogEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "front": self.front,
            "back": self.back,
            "tag": self.tag,
            "chapter": self.chapter,
        }
        if self.para_idx is not None:
            data["paraIdx"] = self.para_idx
        data.update(
            {
                "status": self.status.value,
                "last_reviewed": self.last_reviewed,
                "interval": self.interval,
                "ease_factor": self.ease_factor,
                "due": self.due,
            }
        )
        if self.learning_step_index is not None:
            data["learning_step_index"] = self.learning_step_index
        data.update(
            {
                "blocked": self.blocked,
                "review_history": [entry.to_dict() for entry in self.review_history],
                "flagged": self.flagged,
                "suspended": self.suspended,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Card":
        """
        Build a card from its deck-file record.

        Raises KeyError/ValueError/TypeError on records that are missing
        identity fields or carry an unknown status.
        """
        para_idx = data.get("paraIdx")
        step = data.get("learning_step_index")
        return cls(
            id=str(data["id"]),
            front=str(data.get("front", "")),
            back=str(data.get("back", "")),
            tag=str(data.get("tag", "")),
            chapter=str(data["chapter"]),
            para_idx=int(para_idx) if para_idx is not None else None,
            status=CardStatus.parse(data.get("status", "new")),
            interval=float(data.get("interval", 0)),
            ease_factor=float(data.get("ease_factor", 2.5)),
            due=int(data.get("due", 0)),
            learning_step_index=int(step) if step is not None else None,
            blocked=bool(data.get("blocked", True)),
            suspended=bool(data.get("suspended", False)),
            flagged=bool(data.get("flagged", False)),
            last_reviewed=data.get("last_reviewed"),
            review_history=[
                ReviewLogEntry.from_dict(entry)
                for entry in data.get("review_history") or []
                if isinstance(entry, dict)
            ],
        )


# A deck maps card id -> card; one deck per chapter folder.
Deck = dict[str, Card]


@dataclass(frozen=True)
class Paragraph:
    """One finalized paragraph of a note. `id` is 1-based in reading order."""

    id: int
    markdown: str


@dataclass(frozen=True)
class SchedulerConfig:
    """
    Step tables for the learning and relearning phases, in minutes.

    Passed explicitly into the scheduler so the state machine never reads
    ambient settings.
    """

    learning_steps: tuple[float, ...] = DEFAULT_LEARNING_STEPS
    relearn_steps: tuple[float, ...] = DEFAULT_RELEARN_STEPS

    def __post_init__(self):
        for name in ("learning_steps", "relearn_steps"):
            steps = tuple(getattr(self, name))
            if not steps:
                raise ValueError(f"{name} must not be empty")
            if any(s <= 0 for s in steps):
                raise ValueError(f"{name} must contain positive minutes, got {steps}")
            object.__setattr__(self, name, steps)


@dataclass(frozen=True)
class PoolEntry:
    """A card queued for review together with the deck file it lives in."""

    card: Card
    deck_path: str
