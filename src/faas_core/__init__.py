"""faas-core - sandboxed execution and deployment for serverless functions."""

from faas_core.config import Config
from faas_core.events import StreamEvent
from faas_core.observability import (
    LogLevel,
    RequestContext,
    StructuredLogger,
    Timer,
    configure_logging,
    emit_counter,
    emit_metric,
    emit_timer,
    get_logger,
    register_metric_callback,
)
from faas_core.service import Playground

__version__ = "0.1.0"
__all__ = [
    # Core
    "Config",
    "Playground",
    "StreamEvent",
    # Observability
    "LogLevel",
    "RequestContext",
    "StructuredLogger",
    "Timer",
    "configure_logging",
    "emit_counter",
    "emit_metric",
    "emit_timer",
    "get_logger",
    "register_metric_callback",
]
