import io
import re

import pytest

from trojanfork.log import LogLevel
from trojanfork.simplelog import SimpleLogger

STAMP = r"\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2} "


def test_warn_joins_arguments():
    stream = io.StringIO()
    logger = SimpleLogger(stream)
    logger.warn("a", 1)
    text = stream.getvalue()
    assert text.endswith(" a 1\n")
    assert re.fullmatch(STAMP + r"a 1\n", text)


def test_errorf_formats():
    stream = io.StringIO()
    logger = SimpleLogger(stream)
    logger.errorf("x=%d", 3)
    text = stream.getvalue()
    assert text.endswith(" x=3\n")
    assert re.fullmatch(STAMP + r"x=3\n", text)


def test_level_filters():
    stream = io.StringIO()
    logger = SimpleLogger(stream)
    logger.set_log_level(LogLevel.ERROR)
    logger.info("hidden")
    logger.debugf("hidden %s", "too")
    logger.warn("hidden")
    assert stream.getvalue() == ""
    logger.error("shown")
    assert stream.getvalue().endswith("shown\n")


def test_fatal_exits():
    stream = io.StringIO()
    logger = SimpleLogger(stream)
    with pytest.raises(SystemExit) as info:
        logger.fatal("bye")
    assert info.value.code == 1
    assert stream.getvalue().endswith("bye\n")


def test_fatalf_exits_silently_when_off():
    stream = io.StringIO()
    logger = SimpleLogger(stream)
    logger.set_log_level(LogLevel.OFF)
    with pytest.raises(SystemExit) as info:
        logger.fatalf("bye %s", "now")
    assert info.value.code == 1
    assert stream.getvalue() == ""


def test_set_output_is_ignored():
    stream = io.StringIO()
    logger = SimpleLogger(stream)
    other = io.StringIO()
    logger.set_output(other)
    logger.trace("kept")
    assert other.getvalue() == ""
    assert stream.getvalue().endswith("kept\n")


def test_default_stream_is_stderr(capsys):
    SimpleLogger().info("to stderr")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.endswith("to stderr\n")