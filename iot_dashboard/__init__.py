"""Telemetry dashboard for a single IoT sensor device."""
