"""Core infrastructure: configuration, logging, tracing and metrics."""
