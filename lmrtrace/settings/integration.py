from .._hooks import Hooks
from ..internal.utils.attrdict import AttrDict
from ..internal.utils.formats import env_bool


class IntegrationConfig(AttrDict):
    """
    Integration specific configuration object.

    This is what you will get when you do::

        from lmrtrace import config

        # This is an `IntegrationConfig`
        config.light_my_request

        # `IntegrationConfig` supports both attribute and item accessors
        config.light_my_request['distributed_tracing'] = False
        config.light_my_request.distributed_tracing = False
    """

    _INTERNAL_KEYS = frozenset({"global_config", "integration_name", "hooks"})

    def __init__(self, global_config, name, *args, **kwargs):
        """
        :param global_config:
        :type global_config: Config
        :param name: The integration name (i.e. `light_my_request`)
        :type name: str
        """
        super(IntegrationConfig, self).__init__(*args, **kwargs)

        self.global_config = global_config
        self.integration_name = name
        self.hooks = Hooks()

        self.setdefault(
            "distributed_tracing",
            env_bool("LMRTRACE_%s_DISTRIBUTED_TRACING" % name.upper(), True),
        )

    def __repr__(self):
        cls = self.__class__
        keys = ", ".join(self.keys())
        return "{}.{}({})".format(cls.__module__, cls.__name__, keys)

    def copy(self):
        new_instance = self.__class__(self.global_config, self.integration_name)
        new_instance.update(self)
        return new_instance
