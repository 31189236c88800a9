"""Adapter over the ripgrep binary for content search across repositories."""

import asyncio
import contextlib
import json
import logging
from typing import AsyncIterator, List, Optional, Sequence

from .models import RipgrepMatch, RipgrepOptions

logger = logging.getLogger(__name__)

# Paths never worth searching, appended to every invocation
EXCLUDE_GLOBS: tuple[str, ...] = (
    "!node_modules",
    "!.git",
    "!dist",
    "!build",
    "!*.min.js",
    "!*.min.css",
    "!package-lock.json",
    "!yarn.lock",
)

# Largest single JSON record kept; longer ones (minified bundles) are dropped
STREAM_LIMIT = 16 * 1024 * 1024
READ_CHUNK = 64 * 1024

SUCCESS_EXIT_CODES = (0, 1)  # 1 means "no matches"


def _byte_to_char_offset(text: str, byte_offset: int) -> int:
    return len(text.encode("utf-8")[:byte_offset].decode("utf-8", errors="ignore"))


def parse_match_line(line: str) -> Optional[RipgrepMatch]:
    """One ``rg --json`` record to a match, or None for other record types and junk."""
    try:
        record = json.loads(line)
    except ValueError:
        return None
    if not isinstance(record, dict) or record.get("type") != "match":
        return None

    try:
        data = record["data"]
        path = data["path"]["text"]
        text = data["lines"]["text"]
        line_number = int(data["line_number"])
    except (KeyError, TypeError, ValueError):
        # Non-UTF-8 paths and lines arrive as base64 "bytes" instead of "text"
        return None

    submatches = data.get("submatches") or []
    start = end = 0
    if submatches and isinstance(submatches[0], dict):
        start = _byte_to_char_offset(text, int(submatches[0].get("start", 0)))
        end = _byte_to_char_offset(text, int(submatches[0].get("end", 0)))

    return RipgrepMatch(
        path=path,
        line_number=line_number,
        line_content=text.rstrip("\r\n"),
        match_start=start,
        match_end=end,
    )


async def iter_records(
    stream: asyncio.StreamReader,
    max_record_bytes: Optional[int] = None,
) -> AsyncIterator[bytes]:
    """
    Yield newline-delimited records from ``stream`` without the trailing newline.

    Records longer than ``max_record_bytes`` (default ``STREAM_LIMIT``) are
    skipped with a warning and reading continues with the next record.
    """
    limit = max_record_bytes or STREAM_LIMIT
    buffer = bytearray()
    skipping = False

    while True:
        chunk = await stream.read(READ_CHUNK)
        if not chunk:
            break
        buffer.extend(chunk)

        while True:
            newline = buffer.find(b"\n")
            if newline < 0:
                break
            record = bytes(buffer[:newline])
            del buffer[:newline + 1]
            if skipping:
                # Tail of a record already reported as oversized
                skipping = False
                continue
            if len(record) > limit:
                logger.warning(f"Skipping ripgrep record of {len(record)} bytes (limit {limit})")
                continue
            yield record

        if len(buffer) > limit:
            if not skipping:
                logger.warning(f"Skipping ripgrep record longer than {limit} bytes")
            skipping = True
            buffer.clear()

    if buffer and not skipping and len(buffer) <= limit:
        yield bytes(buffer)


class RipgrepAdapter:
    """Runs ``rg`` as a subprocess and returns bounded, structured results."""

    def __init__(self, rg_path: str = "rg"):
        self.rg_path = rg_path

    async def available(self) -> bool:
        try:
            process = await asyncio.create_subprocess_exec(
                self.rg_path, "--version",
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError:
            return False
        return await process.wait() == 0

    def build_args(self, pattern: str, options: RipgrepOptions) -> List[str]:
        args = ["--json", "--no-heading", "--with-filename", "--line-number"]

        if options.ignore_case:
            args.append("--ignore-case")
        if options.file_type:
            args.extend(["--type", options.file_type])
        if options.glob:
            args.extend(["--glob", options.glob])
        if options.max_matches_per_file:
            args.extend(["--max-count", str(options.max_matches_per_file)])
        if not options.hidden:
            args.append("--no-hidden")

        for glob in EXCLUDE_GLOBS:
            args.extend(["--glob", glob])

        # "--" keeps patterns that start with a dash from being read as flags
        args.extend(["--", pattern])
        return args

    async def search(
        self,
        pattern: str,
        paths: Sequence[str],
        options: Optional[RipgrepOptions] = None,
    ) -> List[RipgrepMatch]:
        """
        Search ``paths`` for ``pattern``.

        Returns at most ``options.max_total_matches`` matches. Unexpected exit
        codes are logged and whatever was parsed is still returned. Raises
        OSError if the binary cannot be started.
        """
        options = options or RipgrepOptions()
        if not paths:
            return []

        cmd = [self.rg_path, *self.build_args(pattern, options), *paths]
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        stderr_task = asyncio.create_task(process.stderr.read())
        matches: List[RipgrepMatch] = []
        drained = False
        try:
            async for raw in iter_records(process.stdout):
                # Keep draining after the cap so rg never blocks on a full pipe
                if len(matches) >= options.max_total_matches:
                    continue
                match = parse_match_line(raw.decode("utf-8", errors="replace"))
                if match is not None:
                    matches.append(match)
            drained = True
        finally:
            if not drained:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
            stderr = await stderr_task
            returncode = await process.wait()

        if returncode not in SUCCESS_EXIT_CODES:
            logger.warning(
                f"ripgrep exited with code {returncode}: {stderr.decode('utf-8', errors='replace').strip()}"
            )
        return matches

    async def search_files(
        self,
        pattern: str,
        paths: Sequence[str],
        options: Optional[RipgrepOptions] = None,
    ) -> List[str]:
        """Paths of files containing ``pattern``."""
        options = options or RipgrepOptions()
        if not paths:
            return []

        args = ["--files-with-matches", "--no-heading"]
        if options.ignore_case:
            args.append("--ignore-case")
        if options.file_type:
            args.extend(["--type", options.file_type])
        if options.glob:
            args.extend(["--glob", options.glob])
        for glob in EXCLUDE_GLOBS:
            args.extend(["--glob", glob])
        args.extend(["--", pattern])

        process = await asyncio.create_subprocess_exec(
            self.rg_path, *args, *paths,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        if process.returncode not in SUCCESS_EXIT_CODES:
            logger.warning(
                f"ripgrep exited with code {process.returncode}: "
                f"{stderr.decode('utf-8', errors='replace').strip()}"
            )
        return [line for line in stdout.decode("utf-8", errors="replace").splitlines() if line.strip()]
