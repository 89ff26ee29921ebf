from __future__ import annotations

import argparse
import logging

import uvicorn

APP = "tokenomics.web.app:app"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tokenomics-web", description="Serve the tokenomics simulator API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8050, help="Port (default: 8050)")
    parser.add_argument("--reload", action="store_true", help="Restart on source changes")
    parser.add_argument("--workers", type=int, default=None, help="Worker processes (ignored with --reload)")
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug"],
        help="Log level of the server and the simulation engine (default: info)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Run the HTTP API under uvicorn."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    uvicorn.run(
        APP,
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=None if args.reload else args.workers,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
