"""
GPT-Image MCP server: OpenAI gpt-image-1 generation and editing tools.
"""

__version__ = "1.0.0"
