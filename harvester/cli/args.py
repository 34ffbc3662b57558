"""Command-line argument parsing for Thread Harvester."""

import argparse


def parse_args(argv=None):
    """Parse command-line arguments.
    
    Every flag is optional; with none the configured matrix runs from
    environment variables and defaults.
    
    Args:
        argv: Argument list (defaults to ``sys.argv[1:]``)
    
    Returns:
        Namespace containing the parsed arguments.
    """
    parser = argparse.ArgumentParser(description="Collect issue and Q&A threads and expose collection metrics")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a JSON configuration file (default: CONFIG_FILE env var)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Set logging level (default: LOG_LEVEL env var or INFO)"
    )
    
    return parser.parse_args(argv)
