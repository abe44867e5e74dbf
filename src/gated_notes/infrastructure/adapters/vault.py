"""
Vault adapters: markdown notes and embedded images on the local filesystem.
"""

import hashlib
import logging
from pathlib import Path

from gated_notes.domain.exceptions import NoteAccessError
from gated_notes.domain.interfaces import ImageResolver, NoteSource
from gated_notes.infrastructure.utils.fs import iter_markdown_files, to_vault_path

logger = logging.getLogger(__name__)


class VaultNoteSource(NoteSource):
    def __init__(self, vault_root: Path):
        self.vault_root = vault_root

    async def read_note(self, chapter_path: str) -> str:
        try:
            return (self.vault_root / chapter_path).read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise NoteAccessError(chapter_path, "no such note") from e
        except (OSError, UnicodeDecodeError) as e:
            raise NoteAccessError(chapter_path, str(e)) from e

    async def write_note(self, chapter_path: str, content: str) -> None:
        try:
            (self.vault_root / chapter_path).write_text(content, encoding="utf-8")
        except OSError as e:
            raise NoteAccessError(chapter_path, str(e)) from e

    async def list_notes(self) -> list[str]:
        return [to_vault_path(p, self.vault_root) for p in iter_markdown_files(self.vault_root)]


class FileImageResolver(ImageResolver):
    """
    Resolves `![[link]]` embeds the way Obsidian does for bare names:
    next to the note first, then from the vault root, then anywhere by file name.
    """

    def __init__(self, vault_root: Path):
        self.vault_root = vault_root

    def _find(self, link: str, chapter_path: str) -> Path | None:
        # Drop Obsidian's "|size" and "#anchor" suffixes.
        target = link.split("|")[0].split("#")[0].strip()
        if not target:
            return None

        folder = (self.vault_root / chapter_path).parent
        for candidate in (folder / target, self.vault_root / target):
            if candidate.is_file():
                return candidate

        name = Path(target).name
        for candidate in sorted(self.vault_root.rglob(name)):
            if candidate.is_file():
                return candidate
        return None

    async def hash_for_embed(self, link: str, chapter_path: str) -> str | None:
        path = self._find(link, chapter_path)
        if path is None:
            logger.debug(f"[image] {chapter_path}: unresolved embed {link}")
            return None
        return hashlib.sha256(path.read_bytes()).hexdigest()
