import inspect
import functools
import os
from typing import Dict, Any
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from infrastructure.monitoring.logging import StructuredLogger, SERVICE_NAME


class TraceManager:
    """Менеджер трассировки для распределенного трейсинга"""

    def __init__(self):
        self.logger = StructuredLogger("tracing")
        self._tracing_setup = False

    def setup_tracing(self):
        """Настройка OpenTelemetry трассировки"""
        if self._tracing_setup:
            return

        enable_tracing = os.getenv("ENABLE_TRACING", "false").lower() == "true"
        if not enable_tracing:
            self.logger.info("Tracing disabled by configuration")
            return

        endpoint = os.getenv("OTLP_ENDPOINT", "http://localhost:4318/v1/traces")
        try:
            resource = Resource.create({
                "service.name": SERVICE_NAME,
                "service.version": "1.0.0"
            })

            provider = TracerProvider(resource=resource)
            provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
            trace.set_tracer_provider(provider)

            self._tracing_setup = True
            self.logger.info(f"Tracing setup completed with OTLP exporter ({endpoint})")
        except (ValueError, OSError) as e:
            self.logger.error(f"Failed to setup tracing: {e}")

    def get_tracer(self, name: str):
        return trace.get_tracer(name)


trace_manager = TraceManager()


def trace_span(name: str, attributes: Dict[str, Any] = None):
    """Обернуть функцию (в том числе корутину) в span"""

    def decorator(func):
        tracer = trace_manager.get_tracer(func.__module__)
        logger = StructuredLogger(func.__module__)

        def _record_error(span, e: Exception):
            logger.error(f"Error in {name}: {str(e)}", extra={'operation': name})
            span.record_exception(e)
            span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                with tracer.start_as_current_span(name, attributes=attributes) as span:
                    try:
                        return await func(*args, **kwargs)
                    except Exception as e:
                        _record_error(span, e)
                        raise

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with tracer.start_as_current_span(name, attributes=attributes) as span:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    _record_error(span, e)
                    raise

        return wrapper

    return decorator
