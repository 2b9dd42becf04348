import logging
import re

import pytest

from oceaneye import logger
from oceaneye.logger import LogFormatter

STAMP = r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3}"
STAMP_WIDTH = len("yyyy-MM-dd hh:mm:ss.zzz")


@pytest.fixture
def log_file(tmp_path):
    path = tmp_path / "log.txt"
    yield path
    logger.cleanup()


def _lines(path):
    return path.read_text(encoding="utf-8").splitlines()


def _split(text):
    return text[:STAMP_WIDTH], text[STAMP_WIDTH + 1:]


def test_init_writes_header(log_file):
    logger.init(log_file)
    lines = _lines(log_file)
    assert len(lines) == 1
    assert re.fullmatch(STAMP + r" Logger initialized\. New log file created\.", lines[0])


def test_init_replaces_existing_file(log_file):
    log_file.write_text("old content\n", encoding="utf-8")
    logger.init(log_file)
    assert "old content" not in log_file.read_text(encoding="utf-8")


@pytest.mark.parametrize(
    "level, message, expected",
    [
        (logging.DEBUG, "plain", "plain"),
        (logging.INFO, "hello", "Info: hello"),
        (logging.WARNING, "careful", "Warning: careful"),
        (logging.ERROR, "broken", "Critical: broken"),
    ],
)
def test_messages_are_prefixed_by_level(level, message, expected):
    record = logging.LogRecord("x", level, "f.py", 1, message, None, None)
    text = LogFormatter().format(record)
    stamp, body = _split(text)
    assert body == expected
    assert re.fullmatch(STAMP, stamp)


def test_messages_are_written_to_file(log_file):
    logger.init(log_file)
    assert logger.is_initialized() is True
    log = logging.getLogger("oceaneye.testing")
    log.debug("plain")
    log.info("hello")
    log.warning("careful")
    log.error("broken")
    bodies = [_split(line)[1] for line in _lines(log_file)[1:]]
    assert bodies == ["plain", "Info: hello", "Warning: careful", "Critical: broken"]


def test_second_init_is_ignored(log_file, tmp_path):
    other = tmp_path / "other.txt"
    logger.init(log_file)
    logger.init(other)
    assert not other.exists()
    assert logger.is_initialized()


def test_cleanup_stops_writing(log_file):
    logger.init(log_file)
    logger.cleanup()
    logging.getLogger("oceaneye.testing").warning("after cleanup")
    assert "after cleanup" not in log_file.read_text(encoding="utf-8")
    assert not logger.is_initialized()


def test_unopenable_file_falls_back(tmp_path):
    path = tmp_path / "missing" / "log.txt"
    logger.init(path)
    assert not logger.is_initialized()
    assert not path.exists()


def test_formatter_fatal_includes_call_site():
    record = logging.LogRecord(
        "x", logging.CRITICAL, "file.py", 12, "boom", None, None, func="fn"
    )
    assert LogFormatter().format(record) == "Fatal: boom (file.py:12, fn)"


def test_formatter_formats_arguments():
    record = logging.LogRecord("x", logging.INFO, "f.py", 1, "loaded %d items", (4,), None)
    text = LogFormatter().format(record)
    stamp, body = _split(text)
    assert body == "Info: loaded 4 items"
    assert re.fullmatch(STAMP, stamp)