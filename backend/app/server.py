"""Command line entry point running the relay under uvicorn."""

from __future__ import annotations

import argparse

import uvicorn

from app.config import get_settings


def main(argv: list[str] | None = None) -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Run the Parley presence and signaling relay")
    parser.add_argument("--host", default=settings.host, help="Interface to bind (default: %(default)s)")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to listen on (default: %(default)s)")
    parser.add_argument("--reload", action="store_true", help="Reload on source changes")
    args = parser.parse_args(argv)

    # The app configures logging itself; keep uvicorn from replacing it.
    uvicorn.run("app.main:app", host=args.host, port=args.port, reload=args.reload, log_config=None)


if __name__ == "__main__":
    main()
