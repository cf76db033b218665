"""Looker query performance diagnostics over the MCP toolbox."""

__version__ = "0.1.0"
