"""
FoxTab - API Server
Serves foxtab.api with uvicorn.
"""

import argparse

import uvicorn

from foxtab.config import get_config
from foxtab.logger import configure_logging


def run(argv=None):
    """Entry point for `foxtab-server`."""
    config = get_config()
    parser = argparse.ArgumentParser(prog="foxtab-server")
    parser.add_argument("--host", default=config.api.host)
    parser.add_argument("--port", type=int, default=config.api.port)
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    uvicorn.run(
        "foxtab.api:app",
        host=args.host,
        port=args.port,
        log_level="debug" if args.verbose else "warning",
        reload=False,
    )


if __name__ == "__main__":
    run()
