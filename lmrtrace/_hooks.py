import collections
from copy import deepcopy

import attr

from .internal.logger import get_logger


log = get_logger(__name__)


@attr.s(slots=True)
class Hooks(object):
    """
    Hooks configuration object is used for registering and calling hook functions

    Example::

        @config.light_my_request.hooks.on('request')
        def on_request(span, options):
            pass
    """

    _hooks = attr.ib(init=False, factory=lambda: collections.defaultdict(list))

    def __deepcopy__(self, memodict=None):
        hooks = Hooks()
        hooks._hooks = deepcopy(self._hooks, memodict)
        return hooks

    def register(self, hook, func=None):
        """
        Function used to register a hook for the provided name.

        Example::

            def on_request(span, options):
                pass

            config.light_my_request.hooks.register('request', on_request)


        If no function is provided then a decorator is returned::

            @config.light_my_request.hooks.register('request')
            def on_request(span, options):
                pass

        :param hook: The name of the hook to register the function for
        :type hook: object
        :param func: The function to register, or ``None`` if a decorator should be returned
        :type func: function, None
        :returns: Either a function decorator if ``func is None``, otherwise ``None``
        :rtype: function, None
        """
        if not func:

            def wrapper(func):
                self.register(hook, func)
                return func

            return wrapper
        if func not in self._hooks[hook]:
            self._hooks[hook].append(func)

    # Provide shorthand `on` method for `register`
    # >>> @config.light_my_request.hooks.on('request')
    #     def on_request(span, options):
    #        pass
    on = register

    def deregister(self, hook, func):
        """
        Function to deregister a function from a hook it was registered under

        :param hook: The name of the hook to deregister the function from
        :type hook: object
        :param func: Function hook to deregister
        :type func: function
        """
        if hook in self._hooks:
            try:
                self._hooks[hook].remove(func)
            except ValueError:
                pass

    def emit(self, hook, *args, **kwargs):
        """
        Function used to call registered hook functions, in registration order.

        A hook function raising an exception is logged and does not prevent the
        remaining functions from running.

        :param hook: The hook to call functions for
        :type hook: str
        :param args: Positional arguments to pass to the hook functions
        :type args: list
        :param kwargs: Keyword arguments to pass to the hook functions
        :type kwargs: dict
        """
        for func in list(self._hooks.get(hook, ())):
            try:
                func(*args, **kwargs)
            except Exception:
                log.error("Failed to run hook %s function %s", hook, func, exc_info=True)
