from typing import Any
from typing import Optional

import wrapt


class NotWrappedError(Exception):
    pass


def iswrapped(obj, attr=None):
    # type: (Any, Optional[str]) -> bool
    """Whether ``obj``, or ``obj.<attr>`` when given, is a wrapt proxy around another object."""
    if attr is not None:
        obj = getattr(obj, attr, None)
    return isinstance(obj, wrapt.ObjectProxy) and hasattr(obj, "__wrapped__")


def unwrap(obj, attr):
    # type: (Any, str) -> Any
    """Put back the object wrapped by ``obj.<attr>`` and return it."""
    wrapper = getattr(obj, attr, None)
    if not iswrapped(wrapper):
        raise NotWrappedError("{}.{} is not wrapped".format(obj, attr))
    original = wrapper.__wrapped__
    setattr(obj, attr, original)
    return original
