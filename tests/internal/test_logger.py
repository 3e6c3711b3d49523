import logging
import time

import mock
import pytest

from lmrtrace._logger import configure_lmrtrace_logger
import lmrtrace.internal.logger
from lmrtrace.internal.logger import LMRFormatter
from lmrtrace.internal.logger import LoggingBucket
from lmrtrace.internal.logger import get_logger


ALL_LEVEL_NAMES = ("debug", "info", "warning", "error", "exception", "critical", "fatal")


@pytest.fixture(autouse=True)
def reset_rate_limit():
    lmrtrace.internal.logger._buckets.clear()
    lmrtrace.internal.logger._rate_limit = 60
    yield
    lmrtrace.internal.logger._buckets.clear()
    lmrtrace.internal.logger._rate_limit = 60


@pytest.fixture
def log():
    logger = get_logger("lmrtrace.test.logger")
    logger.setLevel(logging.INFO)
    yield logger
    logger.setLevel(logging.NOTSET)


def make_record(logger, msg="test", args=(), level=logging.INFO, fn="module.py", lno=5):
    return logger.makeRecord(logger.name, level, fn, lno, msg, args, (None, None, None))


def test_get_logger():
    log = get_logger("lmrtrace.test.get_logger")

    assert isinstance(log, logging.Logger)
    assert log.name == "lmrtrace.test.get_logger"
    assert lmrtrace.internal.logger.log_filter in log.filters
    assert log.propagate

    # the filter is only added once
    assert get_logger("lmrtrace.test.get_logger") is log
    assert log.filters.count(lmrtrace.internal.logger.log_filter) == 1


@mock.patch("logging.Logger.callHandlers")
def test_logger_handle_no_limit(call_handlers, log):
    """
    When no rate limit is set
        Every record reaches the handlers
    """
    lmrtrace.internal.logger._rate_limit = 0

    for _ in range(1000):
        log.info("test")

    assert call_handlers.call_count == 1000
    assert lmrtrace.internal.logger._buckets == {}


@mock.patch("logging.Logger.callHandlers")
def test_logger_handle_debug(call_handlers, log):
    """
    When effective level is DEBUG
        Every record reaches the handlers
    """
    log.setLevel(logging.DEBUG)
    assert lmrtrace.internal.logger._rate_limit > 0

    for level in ALL_LEVEL_NAMES:
        log_fn = getattr(log, level)
        for _ in range(100):
            log_fn("test")

    assert call_handlers.call_count == 100 * len(ALL_LEVEL_NAMES)
    assert lmrtrace.internal.logger._buckets == {}


@mock.patch("logging.Logger.callHandlers")
def test_logger_handle_bucket(call_handlers, log):
    record = make_record(log)
    first_time = time.monotonic()
    log.handle(record)
    second_time = time.monotonic()

    call_handlers.assert_called_once_with(record)

    bucket = lmrtrace.internal.logger._buckets.get((record.pathname, record.lineno))
    assert isinstance(bucket, LoggingBucket)
    assert first_time <= bucket.bucket <= second_time
    assert bucket.skipped == 0
    assert record.skipped == 0


@mock.patch("logging.Logger.callHandlers")
def test_logger_handle_bucket_limited(call_handlers, log):
    """
    With multiple records from the same call site in a single time frame
        Only the first reaches the handlers
        The others are counted as skipped
    """
    first_record = make_record(log, msg="first")
    log.handle(first_record)

    for _ in range(100):
        log.handle(make_record(log))

    call_handlers.assert_called_once_with(first_record)
    bucket = lmrtrace.internal.logger._buckets[(first_record.pathname, first_record.lineno)]
    assert bucket.skipped == 100


@mock.patch("logging.Logger.callHandlers")
def test_logger_handle_bucket_skipped(call_handlers, log):
    """
    When the bucket of a call site has expired
        The next record reaches the handlers carrying the skipped count
    """
    record = make_record(log, msg="hello %s", args=(1,))
    lmrtrace.internal.logger._buckets[(record.pathname, record.lineno)] = LoggingBucket(
        bucket=time.monotonic() - 60, skipped=20
    )

    log.handle(record)

    call_handlers.assert_called_once_with(record)
    assert record.skipped == 20
    assert record.getMessage() == "hello 1"
    assert lmrtrace.internal.logger._buckets[(record.pathname, record.lineno)].skipped == 0


@mock.patch("logging.Logger.callHandlers")
def test_logger_handle_bucket_key(call_handlers, log):
    """
    Records are grouped by call site, not by message
    """
    record1 = make_record(log, msg="record 1")
    record2 = make_record(log, msg="record 2")
    record3 = make_record(log, lno=10)
    record4 = make_record(log, fn="log.py")

    for record in (record1, record2, record3, record4):
        log.handle(record)

    buckets = lmrtrace.internal.logger._buckets
    assert len(buckets) == 3
    assert buckets[(record1.pathname, record1.lineno)].skipped == 1
    assert buckets[(record3.pathname, record3.lineno)].skipped == 0
    assert buckets[(record4.pathname, record4.lineno)].skipped == 0
    assert call_handlers.call_count == 3


def test_formatter_skipped_suffix(log):
    formatter = LMRFormatter("%(message)s")

    record = make_record(log, msg="hello %s", args=("world",))
    assert formatter.format(record) == "INFO hello world"

    record.skipped = 3
    assert formatter.format(record) == "INFO hello world [3 skipped]"


def test_logger_adds_handler_as_default():
    lmrtrace_logger = logging.getLogger("lmrtrace")

    handlers = [h for h in lmrtrace_logger.handlers if isinstance(h.formatter, LMRFormatter)]
    assert len(handlers) == 1
    assert type(handlers[0]) == logging.StreamHandler

    # configuring again does not add another handler
    configure_lmrtrace_logger()
    assert len([h for h in lmrtrace_logger.handlers if isinstance(h.formatter, LMRFormatter)]) == 1


def test_logger_debug_from_env(monkeypatch):
    lmrtrace_logger = logging.getLogger("lmrtrace")
    level = lmrtrace_logger.level
    monkeypatch.setenv("LMRTRACE_TRACE_DEBUG", "true")

    try:
        configure_lmrtrace_logger()
        assert lmrtrace_logger.level == logging.DEBUG
    finally:
        lmrtrace_logger.setLevel(level)
