from typing import Any
from typing import Dict
from typing import Optional
from typing import Sequence


class ArgumentError(Exception):
    """Raised when a wrapped function was called without a required argument."""


def get_argument_value(args, kwargs, pos, kw, optional=False):
    # type: (Sequence[Any], Dict[str, Any], int, str, bool) -> Optional[Any]
    """Return the argument a wrapped function received as ``kw=...`` or at index ``pos``.

    Wrappers only see the packed ``args`` and ``kwargs`` of the call, so the
    target's signature has to be reconstructed by hand. The keyword form wins
    over the positional one. A missing argument raises :class:`ArgumentError`
    unless ``optional`` is set, in which case ``None`` is returned.
    """
    if kw in kwargs:
        return kwargs[kw]
    if pos < len(args):
        return args[pos]
    if optional:
        return None
    raise ArgumentError("%s (at position %d)" % (kw, pos))
