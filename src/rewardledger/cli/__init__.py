"""Command-line interface for scenario replay."""
