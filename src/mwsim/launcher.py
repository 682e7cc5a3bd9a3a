from __future__ import annotations

import argparse
import logging

import uvicorn

from .logging_setup import setup_logging

log = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="mwsim-server",
        description="Run the Mistweaver simulator HTTP API.",
    )
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--log-level", default="info")
    args = parser.parse_args(argv)

    try:
        setup_logging(args.log_level)
    except ValueError as exc:
        parser.error(str(exc))

    from mwsim.api import app as api_app

    log.info("serving on http://%s:%d", args.host, args.port)
    uvicorn.run(api_app, host=args.host, port=args.port, log_level=args.log_level.lower())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
