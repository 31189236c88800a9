"""Tests for the CodeWiki query operations and lifecycle."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from code_wiki.core.app import MAX_FILE_SIZE, CodeWiki
from code_wiki.indexing.models import RepoIndex
from code_wiki.sync.models import SyncReport

from conftest import make_doc, make_repo


@pytest.fixture
def adapter():
    adapter = AsyncMock()
    adapter.available.return_value = True
    adapter.search.return_value = []
    return adapter


@pytest.fixture
def app(config, adapter):
    return CodeWiki(config, adapter=adapter)


def _set_repos(app, *repos):
    app.builder.set_index(app.builder.index.model_copy(update={"repos": list(repos)}))


def _set_docs(app, *docs):
    app.builder.set_index(app.builder.index.model_copy(update={"wiki_documents": list(docs)}))


class TestListRepos:
    def test_sorted_by_name(self, app):
        _set_repos(app, make_repo("beta", "/r/beta"), make_repo("alpha", "/r/alpha"))
        result = app.list_repos()
        assert result["total_repos"] == 2
        assert [r["name"] for r in result["repos"]] == ["alpha", "beta"]
        assert result["repos"][0]["last_commit"] == "2024-01-01T00:00:00+00:00"

    def test_sorted_by_last_modified(self, app):
        _set_repos(
            app,
            make_repo("old", "/r/old", last_commit_date=datetime(2023, 1, 1, tzinfo=timezone.utc)),
            make_repo("new", "/r/new", last_commit_date=datetime(2024, 6, 1, tzinfo=timezone.utc)),
        )
        assert [r["name"] for r in app.list_repos("last_modified")["repos"]] == ["new", "old"]

    def test_sorted_by_language(self, app):
        _set_repos(app, make_repo("py", "/r/py", languages=["python"]), make_repo("go", "/r/go", languages=["go"]))
        assert [r["name"] for r in app.list_repos("language")["repos"]] == ["go", "py"]

    def test_language_filter_is_substring(self, app):
        _set_repos(
            app,
            make_repo("ts", "/r/ts", languages=["typescript"]),
            make_repo("py", "/r/py", languages=["python"]),
        )
        assert [r["name"] for r in app.list_repos(language="Script")["repos"]] == ["ts"]

    def test_invalid_sort(self, app):
        result = app.list_repos("size")
        assert result["error"] == "Invalid sort order"
        assert result["valid_sort_orders"] == ["name", "last_modified", "language"]


class TestGetFile:
    @pytest.fixture
    def repo_dir(self, app, tmp_path):
        root = tmp_path / "alpha"
        (root / "src").mkdir(parents=True)
        (root / "src" / "main.py").write_text("print('hi')\n")
        (root / "README.md").write_text("# Alpha\n")
        _set_repos(app, make_repo("alpha", str(root)))
        return root

    def test_reads_file(self, app, repo_dir):
        result = app.get_file("alpha", "src/main.py")
        assert result["type"] == "file"
        assert result["extension"] == ".py"
        assert result["content"] == "print('hi')\n"
        assert result["size"] == len("print('hi')\n")

    def test_lists_directory(self, app, repo_dir):
        result = app.get_file("alpha", ".")
        assert result["type"] == "directory"
        assert result["contents"] == [
            {"name": "README.md", "type": "file"},
            {"name": "src", "type": "directory"},
        ]

    def test_missing_file(self, app, repo_dir):
        assert app.get_file("alpha", "nope.py")["error"] == "File not found"

    def test_too_large(self, app, repo_dir):
        with open(repo_dir / "big.bin", "wb") as f:
            f.truncate(MAX_FILE_SIZE + 1)
        result = app.get_file("alpha", "big.bin")
        assert result["error"] == "File too large"
        assert result["size"] == MAX_FILE_SIZE + 1

    def test_traversal_rejected(self, app, repo_dir):
        (repo_dir.parent / "secret.txt").write_text("x")
        assert "traversal" in app.get_file("alpha", "../secret.txt")["error"]

    def test_unknown_repo(self, app, repo_dir):
        result = app.get_file("gamma", "x")
        assert result["error"] == "Repository not found"
        assert result["available_repos"] == ["alpha"]


class TestDocuments:
    def test_get_document(self, app, config):
        path = config.wiki_directory / "patterns" / "retry.md"
        path.parent.mkdir(parents=True)
        path.write_text("---\ntitle: Retry\ntags: [http]\n---\nBody\n")

        result = app.get_document("patterns/retry.md")

        assert result["title"] == "Retry"
        assert result["tags"] == ["http"]
        assert result["content"] == "Body"

    def test_get_document_missing(self, app):
        assert app.get_document("patterns/none.md")["error"] == "Document not found"

    def test_list_category_summary(self, app):
        _set_docs(app, make_doc("A"), make_doc("B"), make_doc("C", category="snippets"))
        result = app.list_category()
        counts = {c["name"]: c["document_count"] for c in result["categories"]}
        assert counts["patterns"] == 2
        assert counts["snippets"] == 1
        assert counts["projects"] == 0
        assert result["total_documents"] == 3

    def test_list_category_documents(self, app):
        _set_docs(app, make_doc("A", tags=["x"]), make_doc("C", category="snippets"))
        result = app.list_category("patterns")
        assert result["document_count"] == 1
        assert result["documents"][0]["title"] == "A"
        assert result["documents"][0]["tags"] == ["x"]

    def test_list_category_empty(self, app):
        result = app.list_category("templates")
        assert result["message"] == "No documents in this category yet"

    def test_list_category_invalid(self, app):
        result = app.list_category("recipes")
        assert result["error"] == "Invalid category"
        assert "patterns" in result["valid_categories"]


class TestSearchWrappers:
    @pytest.mark.asyncio
    async def test_search_wiki_results(self, app):
        _set_docs(app, make_doc("Retry Policy", tags=["http"]))
        result = await app.search_wiki("retry")
        assert result["total_results"] == 1
        assert result["results"][0]["title"] == "Retry Policy"
        assert result["results"][0]["relevance_score"] > 0

    @pytest.mark.asyncio
    async def test_search_wiki_empty_has_suggestions(self, app):
        result = await app.search_wiki("nothing")
        assert result["message"] == "No wiki documents found matching your query"
        assert result["suggestions"]

    @pytest.mark.asyncio
    async def test_search_repos_empty(self, app):
        _set_repos(app, make_repo())
        result = await app.search_repos("nothing")
        assert result["message"] == "No matches found in repositories"


class TestPreferences:
    def test_not_configured(self, app):
        assert app.get_preferences()["error"] == "Preferences directory not configured"

    def test_list_and_read(self, app, config, tmp_path):
        prefs = tmp_path / "prefs"
        prefs.mkdir()
        (prefs / "style.md").write_text("Use tabs")
        (prefs / ".hidden").write_text("x")
        config.preferences_directory = prefs

        listing = app.get_preferences()
        assert listing["available_files"] == ["style.md"]

        result = app.get_preferences("style.md")
        assert result["content"] == "Use tabs"

    def test_missing_and_traversal(self, app, config, tmp_path):
        prefs = tmp_path / "prefs"
        prefs.mkdir()
        config.preferences_directory = prefs

        assert app.get_preferences("none.md")["error"] == "File not found"
        assert app.get_preferences("../secret")["error"].startswith("Invalid path")

    def test_directory_missing(self, app, config, tmp_path):
        config.preferences_directory = tmp_path / "gone"
        assert app.get_preferences()["error"] == "Preferences directory not found"


class TestSync:
    @pytest.mark.asyncio
    async def test_in_progress(self, app):
        app.sync._syncing = True
        result = await app.sync_repos()
        assert result["status"] == "in_progress"

    @pytest.mark.asyncio
    async def test_completed_with_errors(self, app):
        report = SyncReport(repos_checked=2, repos_pulled=1)
        report.add_error("alpha", "boom")
        app.sync.sync_now = AsyncMock(return_value=report)

        result = await app.sync_repos(force=True)

        app.sync.sync_now.assert_awaited_once_with(True)
        assert result["status"] == "completed"
        assert result["summary"] == {
            "repos_checked": 2,
            "repos_pulled": 1,
            "repos_cloned": 0,
            "error_count": 1,
        }
        assert result["errors"] == [{"repo": "alpha", "error": "boom"}]


class TestLifecycle:
    def test_status_of_empty_app(self, app, config):
        info = app.status()
        assert info["repos"] == 0
        assert info["last_full_index"] is None
        assert info["sync_enabled"] is False
        assert info["source_directories"] == [str(config.source_directories[0])]
        assert info["index_stale"] is True

    @pytest.mark.asyncio
    async def test_status_after_empty_build(self, app):
        await app.builder.build_full()

        info = app.status()
        assert info["repos"] == 0
        assert info["index_stale"] is False
        assert info["last_full_index"] is not None

    @pytest.mark.asyncio
    async def test_start_uses_fresh_cache(self, app):
        app.store.save(RepoIndex(repos=[make_repo()]))

        await app.start(background_sync=False)
        await app.shutdown()

        assert [r.name for r in app.builder.get_all_repos()] == ["alpha"]
        assert app._build_task is None

    @pytest.mark.asyncio
    async def test_start_builds_when_cache_missing(self, app):
        await app.start(background_sync=False)
        assert app._build_task is not None
        await asyncio.wait_for(app._build_task, timeout=5)
        await app.shutdown()

        assert app.store.load() is not None

    @pytest.mark.asyncio
    async def test_start_warns_without_ripgrep(self, app, adapter, caplog):
        adapter.available.return_value = False
        with caplog.at_level("WARNING", logger="code_wiki.core.app"):
            await app.start(background_sync=False)
        await app.shutdown()

        assert "ripgrep" in caplog.text

    @pytest.mark.asyncio
    async def test_background_sync_only_when_enabled(self, config, adapter):
        config.github.username = "me"
        config.github.token = "t"
        config.index_on_startup = False
        app = CodeWiki(config, remote_client=AsyncMock(), adapter=adapter)
        app.sync.sync_now = AsyncMock()

        await app.start()
        assert app.sync._task is not None
        await app.shutdown()

        assert app.sync._task.done()
