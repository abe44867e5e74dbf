from collections.abc import Iterator
from pathlib import Path

from gated_notes.domain.constants import DECK_FILE_NAME


def _is_hidden(path: Path, root: Path) -> bool:
    return any(part.startswith(".") for part in path.relative_to(root).parts)


def iter_markdown_files(root: Path) -> Iterator[Path]:
    """Yield every markdown note under `root`, skipping dot-directories."""
    for p in sorted(root.rglob("*.md")):
        if p.is_file() and not _is_hidden(p, root):
            yield p


def iter_deck_files(root: Path) -> Iterator[Path]:
    for p in sorted(root.rglob(DECK_FILE_NAME)):
        if p.is_file() and not _is_hidden(p, root):
            yield p


def to_vault_path(path: Path, root: Path) -> str:
    """Vault-relative path with forward slashes, as cards store it."""
    return path.relative_to(root).as_posix()
