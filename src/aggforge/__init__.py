"""AggForge - dialect-agnostic aggregation queries."""

from aggforge.models import AggConfig, AggregateResult, DimensionConfig, ValueConfig
from aggforge.store import AggStore

__all__ = [
    "AggConfig",
    "AggStore",
    "AggregateResult",
    "DimensionConfig",
    "ValueConfig",
]
