"""
nixfleet Telemetry Infrastructure

Architectural Intent:
- OpenTelemetry integration for deployment runs
- Metrics and traces export
"""

from nixfleet.infrastructure.telemetry.otel_exporter import (
    OTELExporter,
    OTELConfig,
    create_exporter,
)

__all__ = [
    "OTELExporter",
    "OTELConfig",
    "create_exporter",
]
