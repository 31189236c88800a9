"""Generates the auto-maintained repository locations page in the wiki."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Literal, Optional, Sequence

from ..sync.models import RemoteRepo
from ..utils.atomic_io import atomic_write_text
from .models import RepoMetadata, utc_now

logger = logging.getLogger(__name__)

LOCATIONS_RELATIVE_PATH = Path("projects") / "repo-locations.md"

LocationStatus = Literal["synced", "local-only", "remote-only"]


@dataclass
class RepoLocation:
    name: str
    status: LocationStatus
    local_path: Optional[str] = None
    remote_url: Optional[str] = None
    description: Optional[str] = None
    languages: List[str] = field(default_factory=list)
    last_commit_date: Optional[datetime] = None


def collect_locations(
    local_repos: Sequence[RepoMetadata],
    remote_repos: Sequence[RemoteRepo],
) -> List[RepoLocation]:
    """Join local and remote repositories by case-insensitive name, sorted by name."""
    remote_by_name = {r.name.lower(): r for r in remote_repos}
    local_names = {r.name.lower() for r in local_repos}

    locations: List[RepoLocation] = []
    for repo in local_repos:
        remote = remote_by_name.get(repo.name.lower())
        locations.append(RepoLocation(
            name=repo.name,
            status="synced" if remote else "local-only",
            local_path=repo.path,
            remote_url=repo.remote_url or (remote.html_url if remote else None),
            description=repo.description or (remote.description if remote else None),
            languages=list(repo.languages),
            last_commit_date=repo.last_commit_date,
        ))

    for name_lower, remote in remote_by_name.items():
        if name_lower in local_names:
            continue
        locations.append(RepoLocation(
            name=remote.name,
            status="remote-only",
            remote_url=remote.html_url,
            description=remote.description,
            languages=[remote.language.lower()] if remote.language else [],
            last_commit_date=remote.pushed_at,
        ))

    locations.sort(key=lambda loc: loc.name.lower())
    return locations


def generate_repo_locations_page(
    local_repos: Sequence[RepoMetadata],
    remote_repos: Sequence[RemoteRepo] = (),
    now: Optional[datetime] = None,
) -> str:
    now = now or utc_now()
    locations = collect_locations(local_repos, remote_repos)
    synced = [loc for loc in locations if loc.status == "synced"]
    local_only = [loc for loc in locations if loc.status == "local-only"]
    remote_only = [loc for loc in locations if loc.status == "remote-only"]

    lines = [
        "---",
        'title: "Repository Locations"',
        'tags: ["index", "repositories", "auto-generated"]',
        'description: "Mapping of repositories to local file system paths and remote URLs"',
        f'updated: "{now.date().isoformat()}"',
        "---",
        "",
        "# Repository Locations",
        "",
        "This page is **auto-generated** during indexing. Do not edit manually.",
        "",
        f"**Last updated:** {now.isoformat()}",
        "",
        "## Summary",
        "",
        "| Status | Count |",
        "|--------|-------|",
        f"| Synced (local + remote) | {len(synced)} |",
        f"| Local only | {len(local_only)} |",
        f"| Remote only (not cloned) | {len(remote_only)} |",
        f"| **Total** | **{len(locations)}** |",
        "",
        "---",
        "",
        "## Synced Repositories",
        "",
        "| Repository | Local Path | Remote | Languages |",
        "|------------|------------|--------|-----------|",
    ]
    for loc in synced:
        link = f"[Remote]({loc.remote_url})" if loc.remote_url else "-"
        lines.append(f"| **{loc.name}** | `{loc.local_path}` | {link} | {_langs(loc)} |")
    if not synced:
        lines.append("| _No synced repositories_ | | | |")

    lines += [
        "",
        "---",
        "",
        "## Local Only Repositories",
        "",
        "| Repository | Local Path | Languages |",
        "|------------|------------|-----------|",
    ]
    for loc in local_only:
        lines.append(f"| **{loc.name}** | `{loc.local_path}` | {_langs(loc)} |")
    if not local_only:
        lines.append("| _No local-only repositories_ | | |")

    lines += [
        "",
        "---",
        "",
        "## Remote Only Repositories",
        "",
        "These repositories are not cloned locally. Run a sync to clone them.",
        "",
        "| Repository | URL | Language | Last Updated |",
        "|------------|-----|----------|--------------|",
    ]
    for loc in remote_only:
        link = f"[{loc.name}]({loc.remote_url})" if loc.remote_url else loc.name
        lang = loc.languages[0] if loc.languages else "-"
        updated = loc.last_commit_date.date().isoformat() if loc.last_commit_date else "-"
        lines.append(f"| {link} | {loc.remote_url or '-'} | {lang} | {updated} |")
    if not remote_only:
        lines.append("| _All remote repositories are cloned locally_ | | | |")

    lines += ["", "---", "", "## Full Repository Details", ""]
    for loc in locations:
        lines.append(f"### {loc.name}")
        lines.append("")
        lines.append(f"- **Status:** {loc.status}")
        if loc.local_path:
            lines.append(f"- **Local Path:** `{loc.local_path}`")
        if loc.remote_url:
            lines.append(f"- **Remote:** {loc.remote_url}")
        if loc.description:
            lines.append(f"- **Description:** {loc.description}")
        if loc.languages:
            lines.append(f"- **Languages:** {_langs(loc)}")
        if loc.last_commit_date:
            lines.append(f"- **Last Commit:** {loc.last_commit_date.isoformat()}")
        lines.append("")

    return "\n".join(lines)


def _langs(loc: RepoLocation) -> str:
    return ", ".join(loc.languages) if loc.languages else "-"


def write_repo_locations_page(
    wiki_dir: Path,
    local_repos: Sequence[RepoMetadata],
    remote_repos: Sequence[RemoteRepo] = (),
) -> Path:
    """Write the page under ``projects/``. Raises OSError on write failure."""
    output_path = Path(wiki_dir) / LOCATIONS_RELATIVE_PATH
    output_path.parent.mkdir(parents=True, exist_ok=True)
    atomic_write_text(output_path, generate_repo_locations_page(local_repos, remote_repos))
    logger.info(f"Updated {LOCATIONS_RELATIVE_PATH.as_posix()} with {len(local_repos)} local repos")
    return output_path
