"""Shared test fixtures."""

from pathlib import Path

import pytest
from flask import Flask
from flask.testing import FlaskClient

from linkshelf.config import Settings
from linkshelf.core.storage.store import NavigationStore
from linkshelf.models.node import NavigationTree
from linkshelf.web.app import create_app
from tests.unit.fakes import FakeFetcher, FakeKv

ADMIN_PASSWORD = "s3cret"

SAMPLE_DOCUMENT = {
    "profile": {"name": "Test Links"},
    "categories": [
        {
            "id": "dev",
            "title": "Dev",
            "icon": "💻",
            "sites": [
                {"title": "GitHub", "url": "https://github.com", "description": "Code hosting"},
                {"title": "GitLab", "url": "https://gitlab.com", "description": "Also code"},
            ],
            "children": [
                {
                    "id": "editors",
                    "title": "Editors",
                    "icon": "📝",
                    "sites": [
                        {
                            "title": "VS Code",
                            "url": "https://code.visualstudio.com",
                            "description": "Editor",
                        }
                    ],
                    "children": [],
                }
            ],
        },
        {
            "id": "reading",
            "title": "Reading",
            "icon": "📚",
            "sites": [
                {
                    "title": "Hacker News",
                    "url": "https://news.ycombinator.com",
                    "description": "Tech news",
                }
            ],
            "children": [],
        },
        {"id": "uncategorized", "title": "Uncategorized", "icon": "📁", "sites": [], "children": []},
    ],
}


@pytest.fixture
def sample_tree() -> NavigationTree:
    return NavigationTree.from_dict(SAMPLE_DOCUMENT)


@pytest.fixture
def kv() -> FakeKv:
    return FakeKv()


@pytest.fixture
def store(kv: FakeKv) -> NavigationStore:
    return NavigationStore(kv)


@pytest.fixture
def seeded_store(kv: FakeKv, sample_tree: NavigationTree) -> NavigationStore:
    """Store holding the sample document; recorded writes are reset."""
    NavigationStore(kv).write_document(sample_tree)
    kv.puts.clear()
    return NavigationStore(kv)


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher({"github.com": b"\x89PNG-github"})


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        data_dir=tmp_path,
        db_path=tmp_path / "linkshelf.db",
        admin_password=ADMIN_PASSWORD,
        secret_key="test-signing-key",
    )


@pytest.fixture
def app(settings: Settings, kv: FakeKv, fetcher: FakeFetcher) -> Flask:
    flask_app = create_app(settings, kv=kv, fetcher=fetcher)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()


@pytest.fixture
def seeded_client(client: FlaskClient, seeded_store: NavigationStore) -> FlaskClient:
    return client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_PASSWORD}"}
