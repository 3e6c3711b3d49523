from collections.abc import MutableMapping
from typing import Any
from typing import FrozenSet
from typing import Iterator


class AttrDict(MutableMapping):
    """Mapping whose items double as instance attributes.

    Example::

       settings = AttrDict(request_hook=None)
       settings.request_hook = on_request
       assert settings["request_hook"] is on_request

    Items live in the instance ``__dict__``. Names listed in
    ``_INTERNAL_KEYS`` are plain attributes: they stay out of the mapping
    view and cannot be reached through item access.
    """

    _INTERNAL_KEYS = frozenset()  # type: FrozenSet[str]

    def __init__(self, *args, **kwargs):
        # type: (Any, Any) -> None
        self.__dict__.update(*args, **kwargs)

    def _check_key(self, name):
        # type: (str) -> None
        if name in self._INTERNAL_KEYS:
            raise KeyError(name)

    def __getitem__(self, name):
        # type: (str) -> Any
        self._check_key(name)
        return self.__dict__[name]

    def __setitem__(self, name, value):
        # type: (str, Any) -> None
        self._check_key(name)
        self.__dict__[name] = value

    def __delitem__(self, name):
        # type: (str) -> None
        self._check_key(name)
        del self.__dict__[name]

    def __iter__(self):
        # type: () -> Iterator[str]
        return (key for key in self.__dict__ if key not in self._INTERNAL_KEYS)

    def __len__(self):
        # type: () -> int
        return sum(1 for _ in self)
