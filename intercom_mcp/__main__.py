"""Entry point for running intercom-mcp as a module: python -m intercom_mcp."""

from intercom_mcp.cli.commands import app

if __name__ == "__main__":
    app()
