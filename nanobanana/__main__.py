"""Entry point: MCP over stdio by default, or the HTTP API with --http."""
import argparse
import logging
import sys

from .config import load_settings
from .errors import ImageSessionError
from .runtime import build_service
from .server import create_server

logger = logging.getLogger("nanobanana")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="nanobanana-mcp", description=__doc__)
    parser.add_argument("--http", action="store_true", help="Serve the HTTP API instead of MCP stdio")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args(argv)

    # stdout carries the MCP protocol; diagnostics go to stderr
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings()
    except ImageSessionError as e:
        logger.error("Error: %s", e)
        return 1
    logging.getLogger().setLevel(settings.log_level.upper())

    service = build_service(settings)

    if args.http:
        import uvicorn

        from .api.main import create_app

        uvicorn.run(create_app(service), host=args.host, port=args.port)
        return 0

    logger.info("Gemini MCP server running on stdio (output dir: %s)", settings.output_dir)
    create_server(service).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
