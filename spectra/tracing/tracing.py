import logging
import socket
from enum import Enum
from typing import Tuple

import requests
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
    OTLPSpanExporter as GRPCExporter,
)
from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
    OTLPSpanExporter as HTTPExporter,
)
from opentelemetry.propagate import set_global_textmap
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.semconv._incubating.attributes import (
    host_attributes as HostAttributes,
)
from opentelemetry.semconv.attributes import (
    service_attributes as ServiceAttributes,
)
from opentelemetry.trace import ProxyTracerProvider, get_tracer_provider
from opentelemetry.trace.propagation.tracecontext import (
    TraceContextTextMapPropagator,
)

from spectra.config import SpectraConfig
from spectra.errors import InvalidEndpointError

logger = logging.getLogger(__name__)


class Protocol(str, Enum):
    GRPC = "grpc"
    HTTP = "http"
    HTTPS = "https"


def parse_protocol(endpoint: str) -> Tuple[Protocol, str]:
    """Split an endpoint like ``grpc://localhost:4317`` into protocol and address."""
    endpoint = endpoint.strip()
    for protocol in Protocol:
        prefix = f"{protocol.value}://"
        if endpoint.lower().startswith(prefix):
            return protocol, endpoint[len(prefix):].rstrip("/")
    raise InvalidEndpointError()


def insecure_session() -> requests.Session:
    session = requests.Session()
    # User explicitly requested insecure mode.
    session.verify = False
    return session


def create_resource(cfg: SpectraConfig) -> Resource:
    attributes = {
        ServiceAttributes.SERVICE_NAME: cfg.service_name,
        ServiceAttributes.SERVICE_VERSION: "test",
        HostAttributes.HOST_NAME: socket.gethostname(),
    }
    attributes.update(cfg.resource_attributes)
    # Resource.create merges OTEL_RESOURCE_ATTRIBUTES and the SDK attributes
    return Resource.create(attributes)


def init_spans_exporter(cfg: SpectraConfig) -> SpanExporter:
    protocol, address = parse_protocol(cfg.endpoint)

    if protocol == Protocol.HTTP:
        return HTTPExporter(
            endpoint=f"http://{address}/v1/traces", headers=cfg.headers
        )
    elif protocol == Protocol.HTTPS:
        if cfg.insecure:
            return HTTPExporter(
                endpoint=f"https://{address}/v1/traces",
                headers=cfg.headers,
                session=insecure_session(),
            )
        return HTTPExporter(
            endpoint=f"https://{address}/v1/traces", headers=cfg.headers
        )
    else:
        return GRPCExporter(
            endpoint=address, headers=cfg.headers, insecure=cfg.insecure
        )


def init_spans_processor(
    exporter: SpanExporter, disable_batch: bool = False
) -> SpanProcessor:
    if disable_batch:
        return SimpleSpanProcessor(exporter)
    return BatchSpanProcessor(exporter)


def init_tracer_provider(
    resource: Resource, processor: SpanProcessor
) -> TracerProvider:
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(processor)

    # The global provider can only be installed once per process
    if isinstance(get_tracer_provider(), ProxyTracerProvider):
        trace.set_tracer_provider(provider)
    else:
        logger.debug(
            "A global tracer provider is already installed, "
            "spectra spans are exported through the session provider only"
        )

    set_global_textmap(TraceContextTextMapPropagator())
    return provider
