from gated_notes.application.utils.paths import deck_path_for_chapter


def test_deck_lives_next_to_chapter():
    assert deck_path_for_chapter("Bio/Cells.md") == "Bio/_flashcards.json"
    assert deck_path_for_chapter("Bio/Sub/Deep.md") == "Bio/Sub/_flashcards.json"


def test_root_level_note():
    assert deck_path_for_chapter("Readme.md") == "_flashcards.json"
