from gated_notes.domain.constants import DECK_FILE_NAME


def deck_path_for_chapter(chapter_path: str) -> str:
    """Deck file holding the cards of `chapter_path` (its folder's deck)."""
    parts = chapter_path.split("/")
    folder = "/".join(parts[:-1])
    return f"{folder}/{DECK_FILE_NAME}" if folder else DECK_FILE_NAME
