from alsjoin.common.config import ALSConfig, load_config
from alsjoin.common.errors import (
    ALSJoinError,
    ConfigurationError,
    InputSchemaError,
    NumericSolveError,
)

__all__ = [
    "ALSConfig",
    "load_config",
    "ALSJoinError",
    "ConfigurationError",
    "InputSchemaError",
    "NumericSolveError",
]
