"""Lightweight observability helpers (logging + metrics)."""

from __future__ import annotations

import json
import logging
import time
import uuid
from bisect import bisect_left
from collections import defaultdict
from contextvars import ContextVar
from threading import Lock
from typing import Iterable, Protocol

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from askaussie.core.config import get_settings

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
logger = logging.getLogger(__name__)

DEFAULT_BUCKETS_MS = [50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000]


def get_request_id() -> str | None:
    """Return the current request id if set by middleware."""
    return request_id_ctx.get()


class RequestIdFilter(logging.Filter):
    """Inject the current request id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once at startup."""
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(levelname)s - %(name)s - [%(request_id)s] %(message)s"
        )
    )
    handler.addFilter(RequestIdFilter())
    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)


class MetricsBackend(Protocol):
    """Metrics backend interface."""

    def observe_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        ...

    def observe_external_api(
        self,
        provider: str,
        operation: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        ...

    def observe_chat_stream(self, outcome: str, duration_ms: float, chunks: int) -> None:
        ...

    def render_prometheus(self) -> str:
        ...


def _format_labels(names: tuple[str, ...], values: tuple[str, ...], extra: str = "") -> str:
    pairs = [f'{name}="{value}"' for name, value in zip(names, values)]
    if extra:
        pairs.append(extra)
    return "{" + ",".join(pairs) + "}" if pairs else ""


def _format_value(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"


class _CounterFamily:
    """Monotonic counters for one metric name, keyed by label values."""

    def __init__(self, name: str, help_text: str, label_names: tuple[str, ...]) -> None:
        self.name = name
        self.help_text = help_text
        self.label_names = label_names
        self.values: dict[tuple[str, ...], float] = defaultdict(float)

    def inc(self, labels: tuple[str, ...], amount: float = 1) -> None:
        self.values[labels] += amount

    def render(self) -> list[str]:
        lines = [f"# HELP {self.name} {self.help_text}", f"# TYPE {self.name} counter"]
        for labels, value in sorted(self.values.items()):
            lines.append(
                f"{self.name}{_format_labels(self.label_names, labels)} {_format_value(value)}"
            )
        return lines


class _HistogramFamily:
    """Cumulative-bucket histograms for one metric name, keyed by label values."""

    def __init__(
        self,
        name: str,
        help_text: str,
        label_names: tuple[str, ...],
        buckets_ms: list[int],
    ) -> None:
        self.name = name
        self.help_text = help_text
        self.label_names = label_names
        self.buckets_ms = buckets_ms
        # One slot per bound plus the +Inf overflow slot
        self.bucket_counts: dict[tuple[str, ...], list[int]] = {}
        self.sums: dict[tuple[str, ...], float] = defaultdict(float)

    def observe(self, labels: tuple[str, ...], value: float) -> None:
        counts = self.bucket_counts.setdefault(labels, [0] * (len(self.buckets_ms) + 1))
        counts[bisect_left(self.buckets_ms, value)] += 1
        self.sums[labels] += value

    def render(self) -> list[str]:
        lines = [f"# HELP {self.name} {self.help_text}", f"# TYPE {self.name} histogram"]
        for labels, counts in sorted(self.bucket_counts.items()):
            bounds = [str(bound) for bound in self.buckets_ms] + ["+Inf"]
            cumulative = 0
            for bound, count in zip(bounds, counts):
                cumulative += count
                le = _format_labels(self.label_names, labels, f'le="{bound}"')
                lines.append(f"{self.name}_bucket{le} {cumulative}")
            plain = _format_labels(self.label_names, labels)
            lines.append(f"{self.name}_sum{plain} {self.sums[labels]:.2f}")
            lines.append(f"{self.name}_count{plain} {cumulative}")
        return lines


class MetricsCollector:
    """In-process metrics collector with Prometheus text output."""

    def __init__(self, buckets_ms: Iterable[int] | None = None) -> None:
        self._lock = Lock()
        buckets = sorted(buckets_ms or DEFAULT_BUCKETS_MS)

        self._requests = _CounterFamily(
            "http_requests_total",
            "Total HTTP requests",
            ("method", "path", "status"),
        )
        self._request_duration = _HistogramFamily(
            "http_request_duration_ms",
            "Request duration in milliseconds",
            ("method", "path"),
            buckets,
        )
        self._external_calls = _CounterFamily(
            "external_api_requests_total",
            "External API requests",
            ("provider", "operation", "status"),
        )
        self._external_duration = _HistogramFamily(
            "external_api_duration_ms",
            "External API duration in milliseconds",
            ("provider", "operation"),
            buckets,
        )
        self._streams = _CounterFamily(
            "chat_streams_total",
            "Completion streams by terminal state",
            ("outcome",),
        )
        self._stream_chunks = _CounterFamily(
            "chat_stream_chunks_total",
            "Text chunks forwarded to clients",
            ("outcome",),
        )
        self._stream_duration = _HistogramFamily(
            "chat_stream_duration_ms",
            "Completion stream duration in milliseconds",
            ("outcome",),
            buckets,
        )
        self._families: list[_CounterFamily | _HistogramFamily] = [
            self._requests,
            self._request_duration,
            self._external_calls,
            self._external_duration,
            self._streams,
            self._stream_chunks,
            self._stream_duration,
        ]

    def observe_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        """Record a single request observation."""
        with self._lock:
            self._requests.inc((method, path, str(status_code)))
            self._request_duration.observe((method, path), duration_ms)

    def observe_external_api(
        self,
        provider: str,
        operation: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        """Record an external API call observation."""
        with self._lock:
            self._external_calls.inc((provider, operation, str(status_code)))
            self._external_duration.observe((provider, operation), duration_ms)

    def observe_chat_stream(self, outcome: str, duration_ms: float, chunks: int) -> None:
        """Record the terminal state of a completion stream."""
        with self._lock:
            self._streams.inc((outcome,))
            self._stream_chunks.inc((outcome,), chunks)
            self._stream_duration.observe((outcome,), duration_ms)

    def stream_count(self, outcome: str) -> int:
        with self._lock:
            return int(self._streams.values.get((outcome,), 0))

    def render_prometheus(self) -> str:
        """Render metrics in Prometheus text format."""
        lines: list[str] = []
        with self._lock:
            for family in self._families:
                lines.extend(family.render())
        return "\n".join(lines) + "\n"


class PrometheusMetrics:
    """prometheus_client-backed metrics with the same names as MetricsCollector."""

    def __init__(self, buckets_ms: Iterable[int]) -> None:
        from prometheus_client import CollectorRegistry, Counter, Histogram

        self._registry = CollectorRegistry()
        buckets = sorted(buckets_ms)

        def counter(name: str, help_text: str, *labels: str) -> Counter:
            return Counter(name, help_text, list(labels), registry=self._registry)

        def histogram(name: str, help_text: str, *labels: str) -> Histogram:
            return Histogram(
                name, help_text, list(labels), buckets=buckets, registry=self._registry
            )

        self._requests = counter(
            "http_requests_total", "Total HTTP requests", "method", "path", "status"
        )
        self._request_duration = histogram(
            "http_request_duration_ms", "Request duration in milliseconds", "method", "path"
        )
        self._external_calls = counter(
            "external_api_requests_total",
            "External API requests",
            "provider",
            "operation",
            "status",
        )
        self._external_duration = histogram(
            "external_api_duration_ms",
            "External API duration in milliseconds",
            "provider",
            "operation",
        )
        self._streams = counter(
            "chat_streams_total", "Completion streams by terminal state", "outcome"
        )
        self._stream_chunks = counter(
            "chat_stream_chunks_total", "Text chunks forwarded to clients", "outcome"
        )
        self._stream_duration = histogram(
            "chat_stream_duration_ms", "Completion stream duration in milliseconds", "outcome"
        )

    def observe_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        self._requests.labels(method, path, str(status_code)).inc()
        self._request_duration.labels(method, path).observe(duration_ms)

    def observe_external_api(
        self,
        provider: str,
        operation: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        self._external_calls.labels(provider, operation, str(status_code)).inc()
        self._external_duration.labels(provider, operation).observe(duration_ms)

    def observe_chat_stream(self, outcome: str, duration_ms: float, chunks: int) -> None:
        self._streams.labels(outcome).inc()
        if chunks > 0:
            self._stream_chunks.labels(outcome).inc(chunks)
        self._stream_duration.labels(outcome).observe(duration_ms)

    def render_prometheus(self) -> str:
        from prometheus_client import generate_latest

        return generate_latest(self._registry).decode("utf-8")


_metrics_backend: MetricsBackend | None = None


def get_metrics_backend() -> MetricsBackend:
    """Return the process-wide metrics backend, building it on first use."""
    global _metrics_backend
    if _metrics_backend is None:
        _metrics_backend = _build_metrics_backend(get_settings().metrics_backend)
    return _metrics_backend


def _build_metrics_backend(backend: str) -> MetricsBackend:
    if backend != "prometheus":
        return MetricsCollector(DEFAULT_BUCKETS_MS)
    try:
        return PrometheusMetrics(DEFAULT_BUCKETS_MS)
    except ImportError:
        logger.warning(
            "METRICS_BACKEND=prometheus but prometheus_client is not installed; "
            "using in-memory metrics."
        )
        return MetricsCollector(DEFAULT_BUCKETS_MS)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id, then log it and count it once it is answered.

    For streamed answers this runs when the headers go out; how the
    stream itself ended is logged by the completion gateway.
    """

    def __init__(
        self,
        app: ASGIApp,
        metrics: MetricsBackend | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(app)
        self.metrics = metrics or get_metrics_backend()
        self.logger = logger or logging.getLogger("askaussie.request")

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        context_token = request_id_ctx.set(request_id)
        request.state.request_id = request_id
        started = time.perf_counter()

        response: Response | None = None
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            status_code = response.status_code if response is not None else 500
            self._record(request, request_id, status_code, elapsed_ms)
            request_id_ctx.reset(context_token)

    def _record(
        self,
        request: Request,
        request_id: str,
        status_code: int,
        elapsed_ms: float,
    ) -> None:
        route_path = getattr(request.scope.get("route"), "path", None)
        # Unmatched paths share one label value
        self.metrics.observe_request(
            request.method,
            route_path or "/__unknown__",
            status_code,
            elapsed_ms,
        )
        self.logger.info(
            json.dumps(
                {
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "route": route_path,
                    "status_code": status_code,
                    "elapsed_ms": round(elapsed_ms, 2),
                    "client": request.client.host if request.client else None,
                }
            )
        )


def setup_tracing(app: FastAPI, settings=None) -> None:
    """Instrument the app and outgoing httpx calls when OTEL_ENABLED is set."""
    settings = settings or get_settings()
    if not settings.otel_enabled:
        return

    try:
        from opentelemetry import trace
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError:
        logger.warning("OTEL_ENABLED is set but the opentelemetry packages are not installed.")
        return

    provider = TracerProvider(
        resource=Resource.create({"service.name": settings.otel_service_name})
    )
    endpoint = settings.otel_exporter_otlp_endpoint
    exporter = OTLPSpanExporter(endpoint=endpoint) if endpoint else OTLPSpanExporter()
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app)
    # The OpenAI SDK issues its calls through httpx
    HTTPXClientInstrumentor().instrument()
