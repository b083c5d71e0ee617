"""Cross-cutting infrastructure: settings, telemetry, caching, security, storage."""
