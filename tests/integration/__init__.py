"""Integration tests for the CLI and web API."""
