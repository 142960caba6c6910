#!/usr/bin/env python3
"""
PostGate -- session/token authentication in front of a users and posts API.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000
  python main.py serve --reload
  python main.py keygen
  python main.py keygen --bits 4096 >> .env

Environment variables (or .env):
  ACCESS_TOKEN_PRIVATE_KEY / ACCESS_TOKEN_PUBLIC_KEY    base64 PEM, access tokens
  REFRESH_TOKEN_PRIVATE_KEY / REFRESH_TOKEN_PUBLIC_KEY  base64 PEM, refresh tokens
  DATABASE_URL, REDIS_URL, DEBUG, ENVIRONMENT, COST_FACTOR, ...
  See core/config.py for the full list.
"""

import argparse
import sys

from core.config import generate_key_pair


def _keygen(bits: int) -> None:
    """Print two fresh RSA key pairs as .env lines."""
    for role in ("ACCESS", "REFRESH"):
        private_b64, public_b64 = generate_key_pair(key_size=bits)
        print(f"{role}_TOKEN_PRIVATE_KEY={private_b64}")
        print(f"{role}_TOKEN_PUBLIC_KEY={public_b64}")


def _serve(host: str, port: int | None, reload: bool) -> None:
    import uvicorn

    from core.config import get_settings

    uvicorn.run("asgi:app", host=host, port=port or get_settings().port, reload=reload)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="postgate",
        description="PostGate -- session/token authentication API.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the API server with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: PORT setting, 8000)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")

    keygen = sub.add_parser("keygen", help="Print base64-encoded RSA key pairs for .env")
    keygen.add_argument("--bits", type=int, default=2048, choices=[2048, 3072, 4096], help="RSA key size")

    args = parser.parse_args(argv)
    if args.command == "keygen":
        _keygen(args.bits)
    else:
        _serve(args.host, args.port, args.reload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
