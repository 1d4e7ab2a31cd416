"""
Monitoring helpers for New Relic APM.

Every helper is a no-op unless the ``newrelic`` package is installed and a
licence key is configured, so callers can instrument freely.
"""
import functools
import inspect
import logging
from typing import Callable, Optional

from fruitmerge.config import get_settings

logger = logging.getLogger(__name__)

# Optional dependency; monitoring is simply disabled without it
try:
    import newrelic.agent
    NEW_RELIC_AVAILABLE = True
except ImportError:
    NEW_RELIC_AVAILABLE = False
    logger.info("New Relic not available - monitoring disabled")


def monitoring_enabled() -> bool:
    return NEW_RELIC_AVAILABLE and bool(get_settings().new_relic_license_key)


def monitor_transaction(name: Optional[str] = None):
    """
    Decorator tracing a sync or async function as a New Relic function trace.

    Usage:
        @monitor_transaction("Webhook/handle_update")
        async def handle_update(...):
            ...
    """
    def decorator(func: Callable) -> Callable:
        trace_name = name or f"{func.__module__}.{func.__name__}"

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                if not monitoring_enabled():
                    return await func(*args, **kwargs)
                with newrelic.agent.FunctionTrace(trace_name):
                    return await func(*args, **kwargs)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            if not monitoring_enabled():
                return func(*args, **kwargs)
            with newrelic.agent.FunctionTrace(trace_name):
                return func(*args, **kwargs)

        return sync_wrapper

    return decorator


def record_custom_metric(metric_name: str, value: float = 1):
    """Record a custom metric such as ``Custom/Webhook/Errors``."""
    if monitoring_enabled():
        try:
            newrelic.agent.record_custom_metric(f"Custom/{metric_name}", value)
        except Exception as e:
            logger.debug(f"Failed to record custom metric: {e}")


def record_custom_event(event_type: str, attributes: dict):
    """Record a custom event such as ``StarsPayment``."""
    if monitoring_enabled():
        try:
            newrelic.agent.record_custom_event(event_type, attributes)
        except Exception as e:
            logger.debug(f"Failed to record custom event: {e}")


class StorageTrace:
    """
    Context manager tracing a snapshot load or save as a datastore call.

    Usage:
        with StorageTrace("JSONFile", "save"):
            ...
    """

    def __init__(self, product: str, operation: str):
        self.product = product
        self.operation = operation
        self.trace = None

    def __enter__(self):
        if monitoring_enabled():
            try:
                self.trace = newrelic.agent.DatastoreTrace(
                    product=self.product,
                    target="snapshot",
                    operation=self.operation,
                )
                self.trace.__enter__()
            except Exception as e:
                logger.debug(f"Failed to start storage trace: {e}")
                self.trace = None
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.trace:
            try:
                self.trace.__exit__(exc_type, exc_val, exc_tb)
            except Exception as e:
                logger.debug(f"Failed to end storage trace: {e}")
        if exc_type is not None:
            record_custom_metric(f"Storage/{self.operation.capitalize()}Errors")
