from webrelay.vars import SERVICE_NAME, OTLP_ENDPOINT, OTLP_HEADERS
from fastapi import FastAPI
from .routes import router
from opentelemetry import trace

from prometheus_fastapi_instrumentator import Instrumentator
from prometheus_client import Info


def _parse_otlp_headers(raw: str) -> dict:
    headers = {}
    for entry in raw.split(","):
        if "=" in entry:
            key, value = entry.split("=", 1)
            if key.strip():
                headers[key.strip()] = value.strip()
    return headers


app = FastAPI(title="Web Relay")
instrumentator = Instrumentator()

instrumentator.instrument(app).expose(app)


try:
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

    _OTEL_AVAILABLE = True
except ImportError:  # pragma: no cover - tracing stays on the no-op API provider
    _OTEL_AVAILABLE = False


# Configure tracing if OpenTelemetry dependencies are available
if _OTEL_AVAILABLE:
    trace.set_tracer_provider(
        TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    )
    tracer_provider = trace.get_tracer_provider()
    if OTLP_ENDPOINT:
        otlp_exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT,
            headers=_parse_otlp_headers(OTLP_HEADERS) or None,
        )
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    FastAPIInstrumentor.instrument_app(app, excluded_urls="health,metrics")

app_info = Info("webrelay_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})

app.include_router(router)
