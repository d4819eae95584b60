from __future__ import annotations

import argparse
from typing import Optional

import uvicorn

from basm.cli import configure_logging

from .app import create_app


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run the basm WebUI API server")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log compiler progress to stderr")
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    uvicorn.run(create_app(), host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
