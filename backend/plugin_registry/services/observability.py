"""
Store Operation Observers

Observers are injected into plugin stores and wrap every contract operation,
replacing per-call global tracing/logging side effects. A store calls:

    with observer.observe("mongodb", "get", plugin_id=plugin_id):
        ...

Implementations:
- NullObserver: does nothing
- LoggingObserver: duration logging with slow-operation warnings
- TracingObserver: one OpenTelemetry span per operation
- CompositeObserver: fans out to several observers
"""

import logging
import time
from contextlib import ExitStack, contextmanager
from typing import Any, Iterator, Optional, Sequence

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ..exceptions import PluginNotFoundError

logger = logging.getLogger(__name__)


class StoreObserver:
    """Base observer; subclasses override observe()"""

    @contextmanager
    def observe(self, backend: str, operation: str, **attributes: Any) -> Iterator[None]:
        yield


class NullObserver(StoreObserver):
    """Observer that records nothing"""


class LoggingObserver(StoreObserver):
    """
    Log operation durations and failures.

    Operations slower than the threshold are logged as warnings, the rest at
    debug level. NotFound failures are expected traffic (first downloads miss the
    pinned hash) and stay at debug level.
    """

    def __init__(
        self,
        slow_operation_threshold: float = 1.0,
        log: Optional[logging.Logger] = None,
    ):
        self.slow_operation_threshold = slow_operation_threshold
        self.logger = log or logger

    @contextmanager
    def observe(self, backend: str, operation: str, **attributes: Any) -> Iterator[None]:
        start_time = time.monotonic()
        try:
            yield
        except PluginNotFoundError as e:
            self.logger.debug(f"{backend}.{operation} not found: {e} {attributes}")
            raise
        except Exception as e:
            self.logger.error(
                f"{backend}.{operation} failed after {time.monotonic() - start_time:.3f}s: "
                f"{type(e).__name__}: {e} {attributes}"
            )
            raise
        else:
            duration = time.monotonic() - start_time
            log_msg = f"{backend}.{operation} completed in {duration:.3f}s"
            if duration > self.slow_operation_threshold:
                self.logger.warning(f"SLOW OPERATION: {log_msg} - {attributes}")
            else:
                self.logger.debug(log_msg)


class TracingObserver(StoreObserver):
    """Start an OpenTelemetry span named "<backend>_<operation>" per operation"""

    def __init__(self, tracer: Optional[trace.Tracer] = None):
        self.tracer = tracer or trace.get_tracer(__name__)

    @contextmanager
    def observe(self, backend: str, operation: str, **attributes: Any) -> Iterator[None]:
        span_attributes = {"db.system": backend, "db.operation": operation}
        for key, value in attributes.items():
            if isinstance(value, (str, bool, int, float)):
                span_attributes[f"registry.{key}"] = value

        with self.tracer.start_as_current_span(
            f"{backend}_{operation}",
            attributes=span_attributes,
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            try:
                yield
            except Exception as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise


class CompositeObserver(StoreObserver):
    """Enter several observers around the same operation, in order"""

    def __init__(self, observers: Sequence[StoreObserver]):
        self.observers = list(observers)

    @contextmanager
    def observe(self, backend: str, operation: str, **attributes: Any) -> Iterator[None]:
        with ExitStack() as stack:
            for observer in self.observers:
                stack.enter_context(observer.observe(backend, operation, **attributes))
            yield
