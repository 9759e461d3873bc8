"""Logging and tracing setup for the Gatepass API.

Log lines regularly mention ticket holders, and provider errors echo the
recipient back.  When redaction is enabled every record passes through
:class:`ContactRedactionFilter`, which masks phone numbers and email
addresses in the rendered message before any handler sees it.
"""

from __future__ import annotations

import logging
import re
from logging.config import dictConfig

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from gatepass.core.config import Settings

_TRACER_INITIALISED = False

_EMAIL_PATTERN = re.compile(r"\b([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")
_PHONE_PATTERN = re.compile(r"(?<![\w.:-])(?:\+\d{1,3}(?: \d{2,4}){2,4}|\+?\d{9,15})(?![\w.:-])")


def _mask_phone(match: re.Match[str]) -> str:
    digits = re.sub(r"\D", "", match.group())
    return "*" * (len(digits) - 3) + digits[-3:]


def redact_contacts(text: str) -> str:
    """Mask email local parts and all but the last three digits of phone numbers."""

    text = _EMAIL_PATTERN.sub(lambda m: f"{m.group(1)}***@{m.group(2)}", text)
    return _PHONE_PATTERN.sub(_mask_phone, text)


class ContactRedactionFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_contacts(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _parse_headers(header_string: str | None) -> dict[str, str]:
    if not header_string:
        return {}
    headers: dict[str, str] = {}
    for item in header_string.split(","):
        if "=" not in item:
            continue
        key, value = item.split("=", 1)
        headers[key.strip()] = value.strip()
    return headers


def configure_logging(settings: Settings) -> logging.Logger:
    """Configure root logging from settings and return the application logger."""

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handler: dict[str, object] = {
        "class": "logging.StreamHandler",
        "formatter": "default",
        "level": level,
    }
    filters: dict[str, object] = {}
    if settings.log_redact_contacts:
        filters["contacts"] = {"()": ContactRedactionFilter}
        handler["filters"] = ["contacts"]

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": settings.log_format}},
            "filters": filters,
            "handlers": {"default": handler},
            "root": {"handlers": ["default"], "level": level},
            "loggers": {
                # job submissions and every provider request are logged at INFO
                "apscheduler": {"level": "WARNING"},
                "httpx": {"level": "WARNING"},
            },
        }
    )

    logger = logging.getLogger("gatepass")
    logger.setLevel(level)
    logger.info("Logging configured for %s (%s)", settings.app_name, settings.environment)
    return logger


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Install an OTLP tracer provider so channel attempts are exported as spans."""

    global _TRACER_INITIALISED

    if _TRACER_INITIALISED or not settings.otel_enabled:
        return None

    provider = TracerProvider(resource=Resource(attributes={"service.name": settings.otel_service_name}))

    exporter_kwargs: dict[str, object] = {}
    if settings.otel_exporter_otlp_endpoint:
        exporter_kwargs["endpoint"] = settings.otel_exporter_otlp_endpoint
    headers = _parse_headers(settings.otel_exporter_otlp_headers)
    if headers:
        exporter_kwargs["headers"] = headers

    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**exporter_kwargs)))
    trace.set_tracer_provider(provider)
    _TRACER_INITIALISED = True
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    """Flush pending spans and release the tracer provider."""

    global _TRACER_INITIALISED

    if provider is None:
        return
    provider.shutdown()
    _TRACER_INITIALISED = False
