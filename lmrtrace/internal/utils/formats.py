import os
from typing import Union  # noqa:F401


TRUE_VALUES = frozenset(("true", "1"))


def asbool(value):
    # type: (Union[str, bool, None]) -> bool
    """Parse a boolean setting. ``True``, ``"true"`` and ``"1"`` are true, in any case."""
    if isinstance(value, bool):
        return value
    return value is not None and value.strip().lower() in TRUE_VALUES


def env_bool(name, default):
    # type: (str, bool) -> bool
    """Read the boolean environment variable ``name``, ``default`` when it is unset."""
    value = os.getenv(name)
    if value is None:
        return default
    return asbool(value)
