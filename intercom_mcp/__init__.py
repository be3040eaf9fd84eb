"""
intercom-mcp - MCP server exposing Intercom ticket and conversation search over stdio.
"""

__version__ = "1.0.0"
__logo__ = "📨"
