import logging

from .internal.logger import LMRFormatter
from .internal.utils.formats import env_bool


def configure_lmrtrace_logger():
    # type: () -> None
    """Configures the ``lmrtrace`` logger.

    A stream handler using :class:`LMRFormatter` is attached once. When
    ``LMRTRACE_TRACE_DEBUG`` is enabled the logger level is set to ``DEBUG``,
    which also lifts rate limiting. Otherwise the level is inherited from the
    root logger.
    """
    lmrtrace_logger = logging.getLogger("lmrtrace")
    if env_bool("LMRTRACE_TRACE_LOG_STREAM_HANDLER", True) and not any(
        isinstance(h.formatter, LMRFormatter) for h in lmrtrace_logger.handlers
    ):
        handler = logging.StreamHandler()
        handler.setFormatter(LMRFormatter())
        lmrtrace_logger.addHandler(handler)

    if env_bool("LMRTRACE_TRACE_DEBUG", False):
        lmrtrace_logger.setLevel(logging.DEBUG)
