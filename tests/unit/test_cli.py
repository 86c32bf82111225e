"""Tests for the linkshelf CLI."""

import json
from pathlib import Path

from typer.testing import CliRunner

from linkshelf.cli import app
from linkshelf.core.storage.kv import SqliteKvStore
from linkshelf.core.storage.store import NavigationStore
from linkshelf.models.node import NavigationTree
from tests.unit.conftest import SAMPLE_DOCUMENT

runner = CliRunner()

BOOKMARKS = """\
<DL><p>
    <DT><H3>Bookmarks Bar</H3>
    <DL><p>
        <DT><A HREF="https://bar.example.com">Bar Link</A>
        <DT><H3>News</H3>
        <DL><p>
            <DT><A HREF="https://lwn.net">LWN</A>
        </DL><p>
    </DL><p>
</DL><p>
"""


def _seed(db: Path) -> None:
    kv = SqliteKvStore(db)
    try:
        NavigationStore(kv).write_document(NavigationTree.from_dict(SAMPLE_DOCUMENT))
    finally:
        kv.close()


def _read(db: Path) -> NavigationTree | None:
    kv = SqliteKvStore(db)
    try:
        return NavigationStore(kv).read_document()
    finally:
        kv.close()


def test_tree_saves_defaults_on_empty_database(tmp_path: Path) -> None:
    db = tmp_path / "links.db"
    result = runner.invoke(app, ["tree", "--db", str(db)])
    assert result.exit_code == 0
    assert "Dev Tools [dev-tools] (4 sites)" in result.output
    stored = _read(db)
    assert stored is not None
    assert stored.categories[0].id == "dev-tools"


def test_tree_lists_sites(tmp_path: Path) -> None:
    db = tmp_path / "links.db"
    _seed(db)
    result = runner.invoke(app, ["tree", "--sites", "--db", str(db)])
    assert result.exit_code == 0
    assert "  📝 Editors [editors] (1 sites)" in result.output
    assert "- VS Code  https://code.visualstudio.com" in result.output


def test_search_json(tmp_path: Path) -> None:
    db = tmp_path / "links.db"
    _seed(db)
    result = runner.invoke(app, ["search", "git", "--json", "--db", str(db)])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["total"] == 2
    assert [r["title"] for r in data["results"]] == ["GitHub", "GitLab"]


def test_search_text(tmp_path: Path) -> None:
    db = tmp_path / "links.db"
    _seed(db)
    result = runner.invoke(app, ["search", "editor", "--db", str(db)])
    assert result.exit_code == 0
    assert "Found 1 results" in result.output
    assert "[Dev / Editors] VS Code" in result.output


def test_stats(tmp_path: Path) -> None:
    db = tmp_path / "links.db"
    _seed(db)
    result = runner.invoke(app, ["stats", "--db", str(db)])
    assert result.exit_code == 0
    assert "Categories:   4" in result.output
    assert "Sites:        4" in result.output


def test_import_bookmarks_merges(tmp_path: Path) -> None:
    db = tmp_path / "links.db"
    _seed(db)
    html = tmp_path / "bookmarks.html"
    html.write_text(BOOKMARKS, encoding="utf-8")

    result = runner.invoke(app, ["import-bookmarks", str(html), "--db", str(db)])

    assert result.exit_code == 0
    assert "Imported 2 sites into 2 new categories" in result.output
    tree = _read(db)
    assert tree is not None
    assert [c.title for c in tree.categories] == ["Dev", "Reading", "Ungrouped", "News", "Uncategorized"]


def test_import_bookmarks_replace(tmp_path: Path) -> None:
    db = tmp_path / "links.db"
    _seed(db)
    html = tmp_path / "bookmarks.html"
    html.write_text(BOOKMARKS, encoding="utf-8")

    result = runner.invoke(app, ["import-bookmarks", str(html), "--replace", "--db", str(db)])

    assert result.exit_code == 0
    tree = _read(db)
    assert tree is not None
    assert [c.title for c in tree.categories] == ["Ungrouped", "News", "Uncategorized"]


def test_import_missing_file_fails(tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["import-bookmarks", str(tmp_path / "nope.html"), "--db", str(tmp_path / "x.db")]
    )
    assert result.exit_code == 1


def test_import_file_without_links_fails(tmp_path: Path) -> None:
    html = tmp_path / "empty.html"
    html.write_text("<html></html>", encoding="utf-8")
    result = runner.invoke(app, ["import-bookmarks", str(html), "--db", str(tmp_path / "x.db")])
    assert result.exit_code == 1


def test_reset_requires_confirmation(tmp_path: Path) -> None:
    db = tmp_path / "links.db"
    _seed(db)

    aborted = runner.invoke(app, ["reset", "--db", str(db)], input="n\n")
    assert aborted.exit_code == 1
    assert _read(db) is not None

    result = runner.invoke(app, ["reset", "--yes", "--db", str(db)])
    assert result.exit_code == 0
    assert "Deleted 2 keys" in result.output
    assert _read(db) is None


def test_global_log_flags(tmp_path: Path) -> None:
    for flag in ("--quiet", "--verbose"):
        result = runner.invoke(app, [flag, "stats", "--db", str(tmp_path / "links.db")])
        assert result.exit_code == 0
