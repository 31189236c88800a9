"""Per-repository metadata extraction by walking the working tree."""

import json
import logging
import os
import tomllib
from pathlib import Path
from typing import Optional

from ..utils.git_utils import get_latest_commit, get_remote_url
from .models import RepoMetadata, utc_now

logger = logging.getLogger(__name__)

_EXTENSION_MAP: dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
    ".rb": "ruby",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".kt": "kotlin",
    ".swift": "swift",
    ".cs": "csharp",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".c": "c",
    ".h": "c",
    ".php": "php",
    ".md": "markdown",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".sql": "sql",
    ".sh": "shell",
    ".bash": "shell",
}

_SKIP_DIRS: frozenset[str] = frozenset({
    "node_modules", "dist", "build", "__pycache__", "venv", "target", "vendor",
})

_README_NAMES: tuple[str, ...] = ("README.md", "readme.md", "Readme.md", "README.rst", "README.txt", "README")

LANGUAGE_SCAN_DEPTH = 2
FILE_COUNT_DEPTH = 3
DESCRIPTION_MAX_LENGTH = 200


def language_for(path: str) -> Optional[str]:
    return _EXTENSION_MAP.get(os.path.splitext(path)[1].lower())


def walk_files(root: Path, max_depth: int, _depth: int = 0) -> list[Path]:
    """Files under ``root`` down to ``max_depth`` levels, skipping hidden and build dirs."""
    if _depth >= max_depth:
        return []

    results: list[Path] = []
    try:
        entries = sorted(os.scandir(root), key=lambda e: e.name)
    except OSError:
        # Permission errors and races with deletion
        return results

    for entry in entries:
        if entry.name.startswith(".") or entry.name in _SKIP_DIRS:
            continue
        try:
            if entry.is_file(follow_symlinks=False):
                results.append(Path(entry.path))
            elif entry.is_dir(follow_symlinks=False):
                results.extend(walk_files(Path(entry.path), max_depth, _depth + 1))
        except OSError:
            continue
    return results


def detect_languages(repo_path: Path, max_depth: int = LANGUAGE_SCAN_DEPTH) -> list[str]:
    languages: list[str] = []
    for file_path in walk_files(repo_path, max_depth):
        lang = language_for(file_path.name)
        if lang and lang not in languages:
            languages.append(lang)
    return languages


def count_source_files(repo_path: Path, max_depth: int = FILE_COUNT_DEPTH) -> int:
    return sum(1 for f in walk_files(repo_path, max_depth) if language_for(f.name))


def find_readme(repo_path: Path) -> Optional[Path]:
    for name in _README_NAMES:
        candidate = repo_path / name
        if candidate.is_file():
            return candidate
    return None


def _manifest_description(repo_path: Path) -> Optional[str]:
    package_json = repo_path / "package.json"
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
        if isinstance(data, dict) and isinstance(data.get("description"), str) and data["description"]:
            return data["description"]
    except (OSError, ValueError):
        pass

    pyproject = repo_path / "pyproject.toml"
    try:
        data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        description = data.get("project", {}).get("description")
        if isinstance(description, str) and description:
            return description
    except (OSError, tomllib.TOMLDecodeError, AttributeError):
        pass

    return None


def _readme_description(readme: Path) -> Optional[str]:
    try:
        lines = readme.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError:
        return None
    for line in lines:
        stripped = line.strip()
        if stripped and not stripped.startswith(("#", "!", "[")):
            return stripped[:DESCRIPTION_MAX_LENGTH]
    return None


def extract_description(repo_path: Path) -> Optional[str]:
    """Manifest description first, then the first prose line of the README."""
    description = _manifest_description(repo_path)
    if description:
        return description[:DESCRIPTION_MAX_LENGTH]
    readme = find_readme(repo_path)
    return _readme_description(readme) if readme else None


def scan_repo(repo_path: Path) -> RepoMetadata:
    """Extract metadata for one repository. Blocking; raises on unexpected failures."""
    repo_path = Path(repo_path)
    commit = get_latest_commit(repo_path)
    now = utc_now()
    return RepoMetadata(
        name=repo_path.name,
        path=str(repo_path),
        remote_url=get_remote_url(repo_path),
        last_commit=commit.sha if commit else "unknown",
        last_commit_date=commit.date if commit else now,
        last_indexed=now,
        languages=detect_languages(repo_path),
        file_count=count_source_files(repo_path),
        has_readme=find_readme(repo_path) is not None,
        description=extract_description(repo_path),
    )
