"""Tests for the log formatter, context adapter and setup."""

import logging

from code_wiki.utils.rich_logging import (
    ROOT_LOGGER_NAME,
    CodeWikiLogFormatter,
    ContextLogger,
    setup_logging,
)


def _record(name="code_wiki.sync.engine", msg="hello", **extra):
    record = logging.LogRecord(name, logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_format_strips_package_prefix_and_adds_context():
    line = CodeWikiLogFormatter(use_colors=False).format(_record(cycle_id=3, repo="alpha"))
    assert line.endswith("INFO     [sync.engine] [cycle 3] [alpha] hello")


def test_format_without_colors_has_no_escape_codes():
    assert "\033[" not in CodeWikiLogFormatter(use_colors=False).format(_record())
    assert "\033[32m" in CodeWikiLogFormatter(use_colors=True).format(_record())


def test_context_logger_attaches_and_clears(caplog):
    logger = ContextLogger(logging.getLogger("code_wiki.test"))
    with caplog.at_level(logging.INFO, logger="code_wiki.test"):
        logger.set_context(cycle_id=7, repo="beta")
        logger.info("one")
        logger.set_context(repo="gamma")
        logger.info("two")
        logger.clear_context()
        logger.info("three")

    first, second, third = caplog.records
    assert (first.cycle_id, first.repo) == (7, "beta")
    assert (second.cycle_id, second.repo) == (7, "gamma")
    assert not hasattr(third, "cycle_id")
    assert not hasattr(third, "repo")


def test_setup_logging_replaces_handlers(tmp_path):
    log_file = tmp_path / "logs" / "code-wiki.log"
    setup_logging("DEBUG", log_file)
    logger = setup_logging("WARNING", log_file)

    assert logger.name == ROOT_LOGGER_NAME
    assert logger.level == logging.WARNING
    assert logger.propagate is False
    assert len(logger.handlers) == 2

    logger.warning("written to file")
    for handler in logger.handlers:
        handler.flush()
    assert "written to file" in log_file.read_text()
