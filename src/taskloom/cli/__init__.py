"""Console entrypoint and engine runner."""
