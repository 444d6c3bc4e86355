"""
Common Module - Shared utilities across all layers
===================================================

Cross-layer shared code:
- errors: Fetch / Parse / Publish 예외 계층
- kafka_config: Pipeline configuration (Kafka, proxy, PostgreSQL, etc.)
"""

from .errors import (
    MarketFeedError,
    FetchError,
    UnsupportedScheme,
    NotFound,
    FetchFailed,
    DecodeError,
    ParseError,
    UnidentifiedLayout,
    MalformedDocument,
    ConversionError,
    PublishError,
    PipelineError,
)
from .kafka_config import get_config, reset_config, MarketFeedConfig

__all__ = [
    "MarketFeedError",
    "FetchError",
    "UnsupportedScheme",
    "NotFound",
    "FetchFailed",
    "DecodeError",
    "ParseError",
    "UnidentifiedLayout",
    "MalformedDocument",
    "ConversionError",
    "PublishError",
    "PipelineError",
    "get_config",
    "reset_config",
    "MarketFeedConfig",
]
