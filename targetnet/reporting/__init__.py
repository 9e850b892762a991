"""Reporting utilities for targetnet."""

from .artifacts import write_manifest
from .metrics import CsvSink, JsonlSink, MetricsCapture
from .plots import PlotAdapter
from .telemetry import TelemetryLog

__all__ = [
    "write_manifest",
    "CsvSink",
    "JsonlSink",
    "MetricsCapture",
    "PlotAdapter",
    "TelemetryLog",
]
