"""Shared pytest fixtures"""

import io
import json
import sys
from pathlib import Path

import pytest
from PIL import Image

ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.person_store import PersonStore


def person(person_id, name, appearances, category="Other"):
    """Snapshot-format person; appearances are (file, page, confidence) tuples."""
    return {
        "id": person_id,
        "name": name,
        "category": category,
        "image": None,
        "appearances": [
            {"file": doc, "page": page, "confidence": confidence}
            for doc, page, confidence in appearances
        ],
    }


def snapshot(*persons):
    return {"lastUpdated": "2025-12-20T10:00:00+00:00", "persons": list(persons)}


def png_bytes(size=(40, 60), color=(200, 200, 200)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_store():
    def _make(*persons):
        return PersonStore.from_dict(snapshot(*persons))
    return _make


@pytest.fixture
def sample_snapshot():
    return snapshot(
        person("alice", "Alice", [("f1", 1, 99.95), ("f3", 12, 99.5)], category="Political"),
        person("bob", "Bob", [("f1", 1, 98.0), ("f2", 4, 97.0)], category="Business"),
        person("carol", "Carol", [("f2", 5, 97.0), ("f2", 5, 96.0), ("f2", 5, 95.0)], category="Science"),
        person("dave", "Dave", [], category="Other"),
    )


@pytest.fixture
def api_client(tmp_path, monkeypatch, sample_snapshot):
    """TestClient over the API with a temporary snapshot and gallery."""
    from fastapi.testclient import TestClient

    from config.settings import settings
    from api.main import app

    snapshot_path = tmp_path / "persons.json"
    snapshot_path.write_text(json.dumps(sample_snapshot), encoding="utf-8")

    monkeypatch.setattr(settings, "PERSONS_DATA_PATH", str(snapshot_path))
    monkeypatch.setattr(settings, "GALLERY_DIR", str(tmp_path / "gallery"))
    monkeypatch.setattr(settings, "GEMINI_API_KEY", None)
    monkeypatch.setattr(settings, "IMAGE_BASE_URL", "https://images.test/pages")

    with TestClient(app) as client:
        yield client
