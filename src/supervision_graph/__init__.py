"""图半监督标注补全。"""

from .config import SupervisionConfig
from .core import create_graph
from .errors import CacheMissError, ConfigurationError, PatternError, SupervisionError

__all__ = [
    "CacheMissError",
    "ConfigurationError",
    "PatternError",
    "SupervisionConfig",
    "SupervisionError",
    "create_graph",
]
