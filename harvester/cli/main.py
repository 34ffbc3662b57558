"""Command-line entry point for Thread Harvester."""

import logging
import sys

from harvester.api.exceptions import (
    ApplicationException, ConfigException, InitializationError
)
from harvester.cli.args import parse_args
from harvester.core.application import Application
from harvester.utils.error_handling import log_error

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    """Run the collection matrix and serve metrics until stopped.

    Returns:
        Exit code: 0 after a stop signal, 2 for startup failures,
        1 for other application errors, 130 on keyboard interrupt
    """
    args = parse_args(argv)
    app = Application(args=args)

    try:
        app.initialize()
    except (InitializationError, ConfigException) as e:
        log_error(logger, "Application initialization failed", exception=e, level="critical",
                  component="main", operation="initialize")
        app.cleanup()
        return 2

    app.install_signal_handlers()
    try:
        return app.run()
    except KeyboardInterrupt:
        logger.warning("Interrupted by user. Rows saved so far are kept.")
        return 130
    except ApplicationException as e:
        log_error(logger, "Application error", exception=e, level="critical",
                  component="main", operation="run")
        return 1
    finally:
        app.cleanup()


if __name__ == "__main__":
    sys.exit(main())
