from __future__ import annotations

import logging
import sys


def configure_logging(*, verbose: bool, quiet: bool) -> None:
    """
    Configure process-wide logging for command-line runs.

    INFO by default, DEBUG with --verbose, WARNING with --quiet. Records go to
    stderr so JSON reports on stdout stay parseable.
    """

    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    fmt = "cppconform: %(message)s"
    if verbose:
        fmt = "cppconform [%(levelname)s] %(name)s: %(message)s"

    logging.basicConfig(level=level, format=fmt, stream=sys.stderr, force=True)
