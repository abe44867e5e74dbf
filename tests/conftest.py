import pytest

from gated_notes.domain.models import Card, CardStatus, SchedulerConfig

NOW = 1_700_000_000_000


@pytest.fixture
def mock_vault(tmp_path):
    """Creates a temporary directory structure mimicking a vault."""
    d = tmp_path / "MyVault"
    d.mkdir()
    return d


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config/logs
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def scheduler_config():
    return SchedulerConfig(learning_steps=(1, 10), relearn_steps=(10,))


@pytest.fixture
def make_card():
    """Factory for cards with sensible defaults; override any field by keyword."""

    def _make(card_id: str = "c1", **overrides) -> Card:
        fields = {
            "id": card_id,
            "front": f"Front {card_id}",
            "back": f"Back {card_id}",
            "tag": "the quick brown fox",
            "chapter": "Bio/Cells.md",
            "due": NOW,
            "para_idx": 1,
            "status": CardStatus.NEW,
        }
        fields.update(overrides)
        return Card(**fields)

    return _make
