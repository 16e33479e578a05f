"""Entry point for the forensic-timeline MCP server."""

import argparse
import logging

from forensic_common.oplog import setup_logging

from forensic_timeline.config import Config, get_config
from forensic_timeline.server import SERVICE_NAME, create_server

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the forensic-timeline MCP server over stdio."""
    parser = argparse.ArgumentParser(description="forensic-timeline MCP server")
    parser.add_argument(
        "--events-file",
        help="JSONL or JSON event file to search (overrides FORENSIC_EVENTS_FILE)",
    )
    parser.add_argument(
        "--cases-dir",
        help="Directory of case folders (overrides FORENSIC_CASES_DIR)",
    )
    args = parser.parse_args()

    config = get_config()
    if args.events_file or args.cases_dir:
        config = Config(
            cases_dir=args.cases_dir or config.cases_dir,
            events_file=args.events_file or config.events_file,
            log_level=config.log_level,
            max_query_length=config.max_query_length,
        )

    setup_logging(SERVICE_NAME, level=config.log_level)
    logger.info(
        "Starting %s server (events_file=%s, cases_dir=%s)",
        SERVICE_NAME,
        config.events_file,
        config.cases_dir,
    )
    server = create_server(config=config)
    server.run()


if __name__ == "__main__":
    main()
