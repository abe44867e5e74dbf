import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from gated_notes.consts import VERSION
from gated_notes.infrastructure.utils.note_format import auto_finalize
from gated_notes.server import app

client = TestClient(app)

DECK = "Bio/_flashcards.json"


@pytest.fixture
def vault(mock_vault, mock_home, make_card):
    deck = {
        "a": make_card("a", para_idx=2, due=0),
        "b": make_card("b", para_idx=5, due=0),
    }
    (mock_vault / "Bio").mkdir()
    (mock_vault / DECK).write_text(json.dumps({k: c.to_dict() for k, c in deck.items()}))
    return str(mock_vault)


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION


def test_get_version():
    response = client.get("/version")
    assert response.status_code == 200
    assert response.json() == {"version": VERSION}


def test_pool(vault):
    response = client.get("/pool", params={"chapter": "Bio/Cells.md", "vault_root": vault})
    assert response.status_code == 200
    data = response.json()
    assert [c["id"] for c in data] == ["a"]
    assert data[0]["deck"] == DECK
    assert data[0]["para_idx"] == 2


def test_pool_review_mode_skips_unseen(vault):
    response = client.get(
        "/pool", params={"chapter": "Bio/Cells.md", "mode": "review", "vault_root": vault}
    )
    assert response.status_code == 200
    assert response.json() == []


def test_rate_requests_rerender_when_boundary_moves(vault):
    response = client.post(
        "/rate",
        json={"deck_path": DECK, "card_id": "a", "rating": "Good", "vault_root": vault},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "learning"
    assert data["blocked"] is False
    assert data["boundary_before"] == 2
    assert data["boundary_after"] == 5
    assert data["rerender"] is True


def test_rate_again_keeps_view(vault):
    response = client.post(
        "/rate",
        json={"deck_path": DECK, "card_id": "b", "rating": "Again", "vault_root": vault},
    )
    data = response.json()
    assert data["blocked"] is True
    assert data["rerender"] is False


def test_rate_missing_card(vault):
    response = client.post(
        "/rate",
        json={"deck_path": DECK, "card_id": "ghost", "rating": "Good", "vault_root": vault},
    )
    assert response.status_code == 404
    assert "ghost" in response.json()["detail"]


def test_rate_rejects_unknown_rating(vault):
    response = client.post(
        "/rate",
        json={"deck_path": DECK, "card_id": "a", "rating": "Meh", "vault_root": vault},
    )
    assert response.status_code == 422


def test_gate(vault):
    response = client.get("/gate", params={"chapter": "Bio/Cells.md", "vault_root": vault})
    assert response.status_code == 200
    assert response.json() == {"chapter": "Bio/Cells.md", "boundary": 2, "gating_enabled": True}


def test_gate_empty_chapter(vault):
    response = client.get("/gate", params={"chapter": "Bio/Other.md", "vault_root": vault})
    assert response.json()["boundary"] is None


def test_health_reports_recalculation_state():
    assert client.get("/health").json()["recalculating"] is False


@pytest.fixture
def note(vault):
    (Path(vault) / "Bio/Cells.md").write_text(
        auto_finalize("Cells are small.\n\nThe nucleus holds DNA.")
    )
    return vault


def test_add_cards(note):
    response = client.post(
        "/cards",
        json={
            "chapter": "Bio/Cells.md",
            "cards": [
                {"front": "Where is DNA?", "back": "Nucleus", "tag": "nucleus holds DNA"},
                {"front": "Odd", "back": "?", "tag": "zebra giraffe"},
            ],
            "vault_root": note,
        },
    )
    assert response.status_code == 200
    data = response.json()
    assert [c["para_idx"] for c in data] == [2, None]
    assert all(c["id"].startswith("c_") for c in data)


def test_add_cards_to_missing_note(vault):
    response = client.post(
        "/cards",
        json={"chapter": "Bio/Nope.md", "cards": [], "vault_root": vault},
    )
    assert response.status_code == 404


def test_recalc_chapter(note):
    response = client.post("/recalc", json={"chapter": "Bio/Cells.md", "vault_root": note})
    assert response.status_code == 200
    data = response.json()
    assert data["chapters"] == 1
    # Both seeded cards quote "the quick brown fox", which this note lacks.
    assert sorted(data["not_found"]) == ["a", "b"]


def test_recalc_missing_note(vault):
    response = client.post("/recalc", json={"chapter": "Bio/Nope.md", "vault_root": vault})
    assert response.status_code == 404


def test_recalc_all(note):
    response = client.post("/recalc", json={"vault_root": note})
    assert response.status_code == 200
    assert response.json()["chapters"] == 1
    assert response.json()["failed"] == {}
