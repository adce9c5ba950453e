#!/usr/bin/env python
"""
Server Entry Point

Starts the order stream service (consumer + read API) under Uvicorn.
Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py

Always a single worker: each process owns one in-memory cache and one
durable subscription.
"""

import argparse

import uvicorn

from orderstream.config import get_settings


def run_dev_server(port: int):
    """Run development server with auto-reload."""
    uvicorn.run(
        "orderstream.main:app",
        host="127.0.0.1",
        port=port,
        reload=True,
        reload_dirs=["orderstream"],
        log_level="debug",
    )


def run_prod_server(host: str, port: int):
    """Run production server with Uvicorn directly."""
    uvicorn.run(
        "orderstream.main:app",
        host=host,
        port=port,
        workers=1,
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
    )


if __name__ == "__main__":
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Order Stream Cache Server")
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Run in development mode with auto-reload"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.api_port,
        help=f"Port to run on (default: {settings.api_port})"
    )

    args = parser.parse_args()

    if args.dev:
        run_dev_server(args.port)
    else:
        run_prod_server(settings.api_host, args.port)
