#!/usr/bin/env python3
"""
Login Service -- username/password accounts with cookie sessions.

Usage:
  python main.py
  python main.py --port 8080
  python main.py --host 0.0.0.0 --port 8080
  python main.py --reload

If the requested port is busy the launcher walks upward until it finds a free
one (stopping at FALLBACK_PORT + 10) and logs the port it settled on.

Environment variables (see core/config.py for the full list):
  PORT, FALLBACK_PORT   Listening port and the fallback search ceiling.
  DATABASE_URL          SQLAlchemy URL. Or set DB_HOST/DB_USER/DB_PASSWORD/DB_DATABASE.
  BCRYPT_ROUNDS         bcrypt cost factor (default 12).
  ENVIRONMENT           "production" forces secure cookies.
"""

import argparse
import logging
import socket
from typing import Optional

import uvicorn

from core.config import get_settings

logger = logging.getLogger("loginsvc.main")

_ROUTES = (
    "POST /api/register",
    "POST /api/login",
    "POST /api/logout",
    "GET  /api/profile",
    "GET  /health",
    "GET  /status",
)


def _port_is_free(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def find_available_port(host: str, start_port: int, fallback_port: int) -> int:
    """Return start_port if it is free, else the next free port above it.

    The upward search stops at max(start_port, fallback_port) + 10; if
    nothing in that range is free, fallback_port is returned and uvicorn
    will report the conflict.
    """
    if _port_is_free(host, start_port):
        return start_port
    port = start_port + 1
    while port < max(start_port, fallback_port) + 10:
        if _port_is_free(host, port):
            return port
        port += 1
    return fallback_port


def main(argv: Optional[list[str]] = None) -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Run the login service HTTP server.")
    parser.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Preferred port (default: {settings.port})")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    port = find_available_port(args.host, args.port, settings.fallback_port)
    if port != args.port:
        logger.warning("Port %d is busy, using port %d instead", args.port, port)

    logger.info("Server URL: http://%s:%d", args.host, port)
    for route in _ROUTES:
        logger.info("  %s", route)

    uvicorn.run("asgi:app", host=args.host, port=port, reload=args.reload)


if __name__ == "__main__":
    main()
