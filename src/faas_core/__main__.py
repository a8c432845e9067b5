"""Command-line entry point: ``faas-core [config.yaml]``."""

import os
import sys

from faas_core.config import Config
from faas_core.observability import configure_logging
from faas_core.service import Playground


def main(argv: list[str] | None = None) -> None:
    """Load configuration and serve the HTTP API.

    The config path comes from the first argument, then FAAS_CONFIG; with
    neither, defaults are used (local sandbox, local deploy, memory KV).
    """
    args = sys.argv[1:] if argv is None else argv
    path = args[0] if args else os.environ.get("FAAS_CONFIG")

    config = Config.from_file(path) if path else Config()
    configure_logging(config.logging.level, config.logging.format)
    Playground(config).serve()


if __name__ == "__main__":
    main()
