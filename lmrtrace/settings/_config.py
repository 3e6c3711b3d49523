from copy import deepcopy
from typing import Any

from ..internal.logger import get_logger
from .integration import IntegrationConfig


log = get_logger(__name__)

INTEGRATION_CONFIGS = frozenset({"light_my_request"})


def _deepmerge(source, destination):
    """
    Merge the first provided ``dict`` into the second.

    :param dict source: The ``dict`` to merge into ``destination``
    :param dict destination: The ``dict`` that should get updated
    :rtype: dict
    :returns: ``destination`` modified
    """
    for key, value in source.items():
        if isinstance(value, dict):
            # get node or create one
            node = destination.setdefault(key, {})
            _deepmerge(value, node)
        else:
            destination[key] = value

    return destination


class Config(object):
    """Configuration object that exposes an API to set and retrieve
    global settings for each integration. All integrations must use
    this instance to register their defaults, so that they're public
    available and can be updated by users.
    """

    def __init__(self):
        self._integration_configs = {}

    def __getattr__(self, name) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._integration_configs:
            return self._integration_configs[name]
        elif name in INTEGRATION_CONFIGS:
            # Allows for accessing integration configs before an integration is patched
            self._integration_configs[name] = IntegrationConfig(self, name)
            return self._integration_configs[name]
        raise AttributeError(f"{type(self)} object has no attribute {name}, {name} is not a valid configuration")

    def _add(self, integration, settings, merge=True):
        """Internal API that registers an integration with given default
        settings.

        :param str integration: The integration name (i.e. `light_my_request`)
        :param dict settings: A dictionary that contains integration settings;
            to preserve immutability of these values, the dictionary is copied
            since it contains integration defaults.
        :param bool merge: Whether to merge any existing settings with those provided,
            or if we should overwrite the settings with those provided;
            Note: when merging existing settings take precedence.
        """
        if integration not in INTEGRATION_CONFIGS:
            log.error(
                "%s not found in INTEGRATION_CONFIGS, the following settings will be ignored: %s", integration, settings
            )
            return

        # DEV: Use `getattr()` to call our `__getattr__` helper
        existing = getattr(self, integration)
        settings = deepcopy(settings)

        if merge:
            # DEV: This may appear backwards keeping `existing` as the "source" and `settings` as
            #   the "destination", but we do not want to let `_add(..., merge=True)` overwrite any
            #   existing settings
            #
            # >>> config.light_my_request['distributed_tracing'] = False
            # >>> config._add('light_my_request', dict(distributed_tracing=True))
            # >>> config.light_my_request['distributed_tracing']
            # False
            new_config = IntegrationConfig(self, integration, _deepmerge(dict(existing), settings))
        else:
            new_config = IntegrationConfig(self, integration, settings)

        # Registered hooks survive re-registration of the defaults
        new_config.hooks = existing.hooks
        self._integration_configs[integration] = new_config

    def __repr__(self):
        cls = self.__class__
        integrations = ", ".join(self._integration_configs.keys())
        return f"{cls.__module__}.{cls.__name__} integration_configs={integrations}"


config = Config()
