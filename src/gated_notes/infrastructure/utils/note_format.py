"""Finalized-note format: paragraph spans carrying percent-encoded markdown."""

import re
from urllib.parse import quote, unquote

from gated_notes.domain.constants import (
    PARA_CLASS,
    PARA_ID_ATTR,
    PARA_MD_ATTR,
    SENTINEL_HTML,
    SPLIT_TAG,
)
from gated_notes.domain.exceptions import NoteAlreadyFinalizedError, NoteNotFinalizedError
from gated_notes.domain.models import Paragraph

# Characters encodeURIComponent leaves untouched beyond quote()'s defaults.
_URI_COMPONENT_SAFE = "!*'()"

PARAGRAPH_RE = re.compile(rf'{PARA_ID_ATTR}="(\d+)"\s*{PARA_MD_ATTR}="([^"]*)"')
_IMAGE_EMBED_RE = re.compile(r"!\[\[([^\]]+)\]\]")


def md_to_attr(md: str) -> str:
    return quote(md, safe=_URI_COMPONENT_SAFE)


def attr_to_md(attr: str) -> str:
    return unquote(attr)


def is_finalized(content: str) -> bool:
    return PARA_CLASS in content


def extract_paragraphs(content: str) -> list[Paragraph]:
    """Return the paragraphs of a finalized note in document order."""
    return [
        Paragraph(id=int(m.group(1)), markdown=attr_to_md(m.group(2)))
        for m in PARAGRAPH_RE.finditer(content)
    ]


def image_embeds(markdown: str) -> list[str]:
    """Link targets of every `![[...]]` embed in a paragraph."""
    return _IMAGE_EMBED_RE.findall(markdown)


def _wrap(chunks: list[str]) -> str:
    return "\n\n".join(
        f'{SENTINEL_HTML}<div class="{PARA_CLASS}" {PARA_ID_ATTR}="{i}" '
        f'{PARA_MD_ATTR}="{md_to_attr(md)}"></div>'
        for i, md in enumerate(chunks, start=1)
    )


def split_paragraphs(content: str) -> list[str]:
    """
    Split markdown into paragraphs on blank lines.

    Blank lines inside ``` fences do not split, so code blocks stay whole.
    """
    paragraphs: list[str] = []
    in_fence = False
    buffer: list[str] = []

    for line in content.split("\n"):
        if line.strip().startswith("```"):
            in_fence = not in_fence
        buffer.append(line)
        if not in_fence and line.strip() == "":
            paragraph = "\n".join(buffer).strip()
            if paragraph:
                paragraphs.append(paragraph)
            buffer = []

    if buffer:
        paragraph = "\n".join(buffer).strip()
        if paragraph:
            paragraphs.append(paragraph)
    return paragraphs


def auto_finalize(content: str) -> str:
    """
    Wrap every paragraph of a plain note in a gating span.

    Split markers, if any, are dropped first.

    Raises:
        NoteAlreadyFinalizedError: if the note already carries spans.
    """
    if is_finalized(content):
        raise NoteAlreadyFinalizedError("Note is already finalized.")
    content = content.replace(SPLIT_TAG, "")
    return _wrap(split_paragraphs(content))


def _normalize_split_content(content: str) -> str:
    normalized = content.replace("\r\n", "\n").replace("\r", "\n")
    normalized = re.sub(r"\n{3,}", "\n\n", normalized)
    normalized = re.sub(rf"\s*{re.escape(SPLIT_TAG)}\s*", f"\n{SPLIT_TAG}\n", normalized)
    return re.sub(r"\n{3,}", "\n\n", normalized)


def manual_finalize(content: str) -> str:
    """
    Wrap the chunks between split markers in gating spans.

    Raises:
        NoteAlreadyFinalizedError: if the note already carries spans.
        NoteNotFinalizedError: if the note has no split markers to honor.
    """
    if is_finalized(content):
        raise NoteAlreadyFinalizedError("Note is already finalized.")
    if SPLIT_TAG not in content:
        raise NoteNotFinalizedError("No split markers found in the note.")
    chunks = _normalize_split_content(content).split(SPLIT_TAG)
    return _wrap([chunk.strip() for chunk in chunks])


def unfinalize(content: str) -> str:
    """
    Turn a finalized note back into plain markdown.

    Raises:
        NoteNotFinalizedError: if the note carries no paragraph spans.
    """
    paragraphs = extract_paragraphs(content)
    if not paragraphs:
        raise NoteNotFinalizedError("This note does not appear to be finalized.")
    plain = "\n\n".join(p.markdown for p in paragraphs)
    plain = re.sub(r"\n{3,}", "\n\n", plain.replace("\r\n", "\n").replace("\r", "\n"))
    return plain.strip("\n")


def paragraph_line(content: str, para_idx: int) -> int:
    """
    0-based line where paragraph `para_idx` starts.

    Works on finalized notes (counting span lines) and falls back to blank-line
    splitting for plain notes. Returns 0 when the index is out of range.
    """
    if is_finalized(content):
        count = 0
        for i, line in enumerate(content.split("\n")):
            if PARA_CLASS in line:
                count += 1
                if count == para_idx:
                    return i

    paragraphs = re.split(r"\n\s*\n", content)
    if 0 < para_idx <= len(paragraphs):
        if para_idx == 1:
            return 0
        before = "\n\n".join(paragraphs[: para_idx - 1])
        # Skip the blank separator line.
        return len(before.split("\n")) + 1
    return 0
