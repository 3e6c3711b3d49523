from ._config import Config
from .integration import IntegrationConfig


__all__ = [
    "Config",
    "IntegrationConfig",
]
