"""
Fuzzy paragraph aligner.

Maps a quoted snippet ("tag") onto the paragraph it was drawn from by
combining a bag-of-words score with a longest-contiguous-run score. This is a
heuristic scorer, not semantic search: a tag that falls below the threshold
is reported as unaligned and left for manual correction.
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from gated_notes.domain.constants import (
    ALIGN_SCORE_THRESHOLD,
    BOW_WEIGHT,
    IMAGE_TAG_PREFIX,
    LONGEST_RUN_WEIGHT,
)
from gated_notes.domain.models import Paragraph

_PUNCT_RE = re.compile(r"[^\w\s]")
_SPACE_RE = re.compile(r"\s+")
IMAGE_TAG_RE = re.compile(r"\[\[IMAGE HASH=([a-f0-9]{64})\]\]")


@dataclass(frozen=True)
class AlignmentScore:
    bag_of_words: float
    longest_run: float

    @property
    def combined(self) -> float:
        return self.bag_of_words * BOW_WEIGHT + self.longest_run * LONGEST_RUN_WEIGHT


@dataclass(frozen=True)
class Alignment:
    """Best-scoring paragraph for a tag, accepted or not."""

    para_id: int
    score: AlignmentScore

    @property
    def accepted(self) -> bool:
        return self.score.combined >= ALIGN_SCORE_THRESHOLD


def normalize(text: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    text = _PUNCT_RE.sub("", text.lower())
    return _SPACE_RE.sub(" ", text).strip()


def is_image_tag(tag: str) -> bool:
    return tag.startswith(IMAGE_TAG_PREFIX)


def image_hash(tag: str) -> str | None:
    """Extract the SHA-256 hex digest from an image reference tag."""
    m = IMAGE_TAG_RE.search(tag)
    return m.group(1) if m else None


def score_paragraph(tag_words: Sequence[str], normalized_para: str) -> AlignmentScore:
    """
    Score one normalized paragraph against the tag's words.

    Containment is substring-based on the normalized paragraph. The run search
    checks every contiguous slice of the tag, which is quadratic in tag length
    and fine for short quotes.
    """
    unique_words = set(tag_words)
    found = sum(1 for word in unique_words if word in normalized_para)
    bow = found / len(unique_words)

    longest = 0
    n = len(tag_words)
    for i in range(n):
        # Only slices longer than the current best can improve it.
        for j in range(i + longest + 1, n + 1):
            if " ".join(tag_words[i:j]) in normalized_para:
                longest = j - i
            else:
                break
    return AlignmentScore(bag_of_words=bow, longest_run=longest / n)


def best_alignment(tag: str, paragraphs: Sequence[Paragraph]) -> Alignment | None:
    """
    Return the highest-scoring paragraph for a text tag, thresholded or not.

    The first paragraph wins ties. Paragraphs that normalize to nothing are
    skipped. Returns None for an empty tag or when nothing scores above zero.
    """
    normalized_tag = normalize(tag)
    if not normalized_tag:
        return None
    tag_words = normalized_tag.split(" ")

    best: Alignment | None = None
    for para in paragraphs:
        normalized_para = normalize(para.markdown)
        if not normalized_para:
            continue
        score = score_paragraph(tag_words, normalized_para)
        if score.combined > (best.score.combined if best else 0):
            best = Alignment(para_id=para.id, score=score)
    return best


def align_tag(
    tag: str,
    paragraphs: Sequence[Paragraph],
    image_index: Mapping[str, int] | None = None,
) -> int | None:
    """
    Map a card's tag to a paragraph id.

    Image reference tags resolve through `image_index` (hash -> paragraph id)
    and never go through text scoring. Text tags align to the best-scoring
    paragraph when its combined score reaches the threshold.

    Returns:
        The paragraph id, or None when there is no acceptable match.
    """
    if not tag:
        return None

    if is_image_tag(tag):
        digest = image_hash(tag)
        if digest is None or image_index is None:
            return None
        return image_index.get(digest)

    best = best_alignment(tag, paragraphs)
    if best is None or not best.accepted:
        return None
    return best.para_id
