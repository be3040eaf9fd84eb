"""Command-line interface for intercom-mcp."""
