"""Common utilities for graphlog.

This package provides the configuration, logging, tracing and event
primitives shared by the graph client and the transports.
"""

from graphlog.common.config import ConfigurationError, TransportOptions, build_options
from graphlog.common.events import EventEmitter

__all__ = [
    "ConfigurationError",
    "EventEmitter",
    "TransportOptions",
    "build_options",
]
