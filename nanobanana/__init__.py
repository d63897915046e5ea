"""Session broker between MCP clients and Gemini image generation."""

__version__ = "1.0.0"
