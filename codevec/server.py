"""
Start the code search HTTP server.

Usage: codevec-server PORT [--host HOST] [--db-path PATH]
"""

import argparse
import sys

import uvicorn

from codevec.api.main import create_app
from codevec.core import config
from codevec.core.project_index import ProjectIndex
from codevec.util.logging import logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve project-scoped semantic code search")
    parser.add_argument("port", type=int, nargs="?", default=config.PORT,
                        help=f"Port to listen on (default: {config.PORT})")
    parser.add_argument("--host", default=config.HOST,
                        help=f"Interface to bind (default: {config.HOST})")
    parser.add_argument("--db-path", default=config.DB_PATH,
                        help=f"SQLite database location (default: {config.DB_PATH})")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    issues = config.validate_config()
    if not 0 < args.port < 65536:
        issues.append(f"Port out of range: {args.port}")
    if issues:
        for issue in issues:
            logger.error(f"Configuration error: {issue}")
        sys.exit(1)

    try:
        project_index = ProjectIndex.from_config(db_path=args.db_path)
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    app = create_app(project_index)

    logger.info(f"codevec server starting on {args.host}. Port: {args.port}")
    uvicorn_config = uvicorn.Config(
        app,
        host=args.host,
        port=args.port,
        log_level=config.LOG_LEVEL.lower(),
    )
    server = uvicorn.Server(uvicorn_config)
    try:
        server.run()
    finally:
        project_index.close()


if __name__ == "__main__":
    main()
