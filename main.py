#!/usr/bin/env python3
"""filelog entry point: tail the configured files and write records as JSON lines."""

import argparse
import logging
import signal
import sys
import threading

from filelog.checkpoint import JsonCheckpointStore, MemoryCheckpointStore
from filelog.config import Config, load_yaml
from filelog.errors import ConfigError
from filelog.manager import build
from filelog.sink import JsonLinesSink

logger = logging.getLogger(__name__)


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="File log consumer")
    parser.add_argument("--config", default="config.yaml", help="Path to YAML config file")
    parser.add_argument("--output", default=None, help="JSON-lines output file (default: stdout)")
    parser.add_argument("--checkpoint-file", default=None,
                        help="Checkpoint file (overrides checkpoint_file in the config)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None, shutdown_event: threading.Event | None = None) -> int:
    args = build_cli_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [filelog] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        config = Config.from_dict(load_yaml(args.config))
    except (OSError, ConfigError) as e:
        logger.error("Failed to load config: %s", e)
        return 2

    checkpoint_file = args.checkpoint_file or config.checkpoint_file
    if checkpoint_file:
        checkpoints = JsonCheckpointStore(checkpoint_file)
    else:
        logger.warning("No checkpoint_file configured, offsets will not survive a restart")
        checkpoints = MemoryCheckpointStore()

    sink = JsonLinesSink(path=args.output)
    try:
        manager = build(config, sink, checkpoints)
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        sink.close()
        return 2

    if shutdown_event is None:
        shutdown_event = threading.Event()

    def _signal_handler(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown_event.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    manager.start()
    shutdown_event.wait()
    manager.stop()
    sink.close()

    counters = manager.metrics.snapshot()["counters"]
    logger.info("Stats: %d record(s) emitted, %d read error(s), %d truncated record(s)",
                counters.get("records_emitted", 0), counters.get("read_errors", 0),
                counters.get("records_truncated", 0))
    return 0


if __name__ == "__main__":
    sys.exit(main())
