import argparse
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional, Sequence

import uvicorn
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import CollectorRegistry, Info
from prometheus_fastapi_instrumentator import Instrumentator

from embed_proxy.vars import (
    CORS_HANDLE_PREFLIGHT,
    ENABLE_METRICS,
    HOST,
    LOG_LEVEL,
    METRICS_PATH,
    OTLP_ENDPOINT,
    OTLP_HEADERS,
    PORT,
    PROXY_TIMEOUT,
    SERVICE_NAME,
    TARGET_SERVER_URL,
)
from embed_proxy.middleware import PreflightCORSMiddleware
from embed_proxy.proxy import (
    ConfigurationError,
    ForwardingEngine,
    HttpxTransport,
    ProxyTarget,
    build_client,
    build_header_policy,
)
from embed_proxy.routes import router

logger = logging.getLogger("uvicorn.error")


class FilteringSpanExporter(SpanExporter):
    """
    Wrapper exporter that filters out noisy ASGI body spans from streaming responses.
    Every proxied body chunk would otherwise produce its own span.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


_tracing_configured = False


def configure_tracing() -> None:
    """Install the tracer provider once per process; export only when OTLP is set."""
    global _tracing_configured
    if _tracing_configured:
        return
    _tracing_configured = True

    tracer_provider = TracerProvider(
        resource=Resource.create({"service.name": SERVICE_NAME})
    )
    if OTLP_ENDPOINT:
        otlp_exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT,
            headers=(OTLP_HEADERS.split(",") if OTLP_HEADERS else None),
        )
        tracer_provider.add_span_processor(
            BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
        )
    trace.set_tracer_provider(tracer_provider)


def create_app(
    target_url: Optional[str] = None,
    engine: Optional[ForwardingEngine] = None,
) -> FastAPI:
    """
    Build the proxy application.

    ``engine`` is normally created here from ``target_url`` (or
    ``TARGET_SERVER_URL``); tests pass one with a fake transport instead.
    An invalid target raises ``ConfigurationError``.
    """
    if engine is None:
        target = ProxyTarget.parse(target_url or TARGET_SERVER_URL)
        engine = ForwardingEngine(
            target,
            build_header_policy(target),
            HttpxTransport(build_client(PROXY_TIMEOUT)),
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await engine.aclose()

    app = FastAPI(
        title=SERVICE_NAME,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.engine = engine

    if CORS_HANDLE_PREFLIGHT:
        app.add_middleware(PreflightCORSMiddleware)

    # Registered before the catch-all route so the proxy does not shadow it
    if ENABLE_METRICS:
        registry = CollectorRegistry()
        Instrumentator(
            registry=registry,
            excluded_handlers=["^/health$", f"^{METRICS_PATH}$"],
        ).instrument(app).expose(
            app, endpoint=METRICS_PATH, include_in_schema=False
        )
        Info("fastapi_app_info", "Application Info", registry=registry).info(
            {"app_name": SERVICE_NAME, "target": engine.target.url}
        )

    configure_tracing()
    FastAPIInstrumentor.instrument_app(app, excluded_urls="/health$")

    app.include_router(router)
    return app


def parse_args(args=None):
    parser = argparse.ArgumentParser(
        prog="embed-proxy",
        description="Reverse proxy that lets a single web app be embedded and accessed cross-origin",
    )
    parser.add_argument("--host", default=HOST, help=f"Listen address ({HOST})")
    parser.add_argument(
        "--port", type=int, default=PORT, help=f"Listen port ({PORT})"
    )
    parser.add_argument(
        "--target",
        default=TARGET_SERVER_URL,
        help=f"Upstream URL to proxy ({TARGET_SERVER_URL})",
    )
    parser.add_argument(
        "--log-level",
        default=LOG_LEVEL,
        choices=["critical", "error", "warning", "info", "debug"],
    )
    return parser.parse_args(args)


def main(args=None):
    options = parse_args(args)
    logging.basicConfig(
        level=options.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )

    try:
        app = create_app(target_url=options.target)
    except ConfigurationError as e:
        logger.error(f"Failed to configure proxy: {e}")
        sys.exit(1)

    logger.info(f"Target URL: {app.state.engine.target.url}")
    logger.info(f"Starting server on http://{options.host}:{options.port}")

    # uvicorn exits non-zero on its own when the port cannot be bound
    uvicorn.run(
        app,
        host=options.host,
        port=options.port,
        log_level=options.log_level,
    )


if __name__ == "__main__":
    main()
