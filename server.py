#!/usr/bin/env python3
"""
GPT-Image MCP Server - OpenAI gpt-image-1 image generation and editing
"""

import argparse
import logging
import os
import sys

# Configure logging early - in stdio mode, log to stderr to avoid polluting stdout
if "--transport" in sys.argv and "stdio" in sys.argv:
    # In stdio mode, log to stderr so it doesn't interfere with JSON-RPC on stdout
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )
else:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
logger = logging.getLogger(__name__)

from gpt_image_mcp.config import load_config
from gpt_image_mcp.context import create_app_context
from gpt_image_mcp.server import create_server


def main(argv=None):
    config = load_config()

    parser = argparse.ArgumentParser(description="GPT-Image MCP Server")
    parser.add_argument("--transport", default="stdio", choices=["http", "stdio", "streamable-http"],
                        help="Transport method (stdio or http)")
    parser.add_argument("--host", default=config.host,
                        help="Host to bind to (http mode only)")
    parser.add_argument("--port", type=int, default=config.port,
                        help="Port to bind to (http mode only)")
    args = parser.parse_args(argv)

    app = create_app_context(config)
    mcp = create_server(app)

    logger.info("Starting GPT-Image MCP server")
    logger.info(f"  Transport: {args.transport}")
    logger.info(f"  Model: {config.image_model}")
    logger.info(f"  OpenAI configured: {config.api_key_configured}")
    logger.info(f"  Default save directory: {config.default_save_dir}")

    if args.transport == "stdio":
        mcp.run(transport="stdio")
    else:
        logger.info(f"  Health check: http://{args.host}:{args.port}/health")
        logger.info(f"  MCP: http://{args.host}:{args.port}/mcp/")
        try:
            mcp.run(transport=args.transport, host=args.host, port=args.port, path="/mcp")
        except Exception as e:
            logger.error(f"Failed to start server: {e}")
            raise


if __name__ == "__main__":
    main()
