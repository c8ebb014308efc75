"""Telemetry ingestion and scheduled sweeps."""
