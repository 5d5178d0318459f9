"""The command-line entry point: global flags, logging and the version command."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import IO, Mapping, Optional, Sequence

from hsctl.cli.output import has_machine_output_flag, success_output

VERSION = "dev"

_LOGGER_NAME = "hsctl"
_RFC3339 = "%Y-%m-%dT%H:%M:%S%z"
_LEVEL_COLOURS = {
    logging.DEBUG: 90,
    logging.INFO: 32,
    logging.WARNING: 33,
    logging.ERROR: 31,
    logging.CRITICAL: 31,
}


def colors_enabled(
    stream: Optional[IO] = None, environ: Optional[Mapping[str, str]] = None
) -> bool:
    """Decide whether log output to ``stream`` should be coloured.

    Colour needs a terminal that is not ``dumb``; setting ``NO_COLOR``
    turns it off regardless.
    """
    stream = sys.stderr if stream is None else stream
    env = os.environ if environ is None else environ
    if "NO_COLOR" in env:
        return False
    if env.get("TERM") == "dumb":
        return False
    isatty = getattr(stream, "isatty", None)
    if isatty is None:
        return False
    try:
        return bool(isatty())
    except (OSError, ValueError):
        return False


class _ConsoleFormatter(logging.Formatter):
    def __init__(self, colors: bool) -> None:
        super().__init__("%(asctime)s %(levelname)s %(message)s", datefmt=_RFC3339)
        self._colors = colors

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if not self._colors:
            return text
        code = _LEVEL_COLOURS.get(record.levelno, 0)
        return text.replace(
            record.levelname, f"\x1b[{code}m{record.levelname}\x1b[0m", 1
        )


class _CliHandler(logging.StreamHandler):
    """Marker type so repeated runs replace rather than stack handlers."""


def _configure_logging(colors: bool, quiet: bool) -> None:
    logger = logging.getLogger(_LOGGER_NAME)
    for handler in [h for h in logger.handlers if isinstance(h, _CliHandler)]:
        logger.removeHandler(handler)
    handler = _CliHandler(sys.stdout)
    handler.setFormatter(_ConsoleFormatter(colors))
    logger.addHandler(handler)
    # Machine-readable output must stay valid, so logging is silenced.
    logger.setLevel(logging.CRITICAL + 1 if quiet else logging.INFO)


def _add_global_flags(parser: argparse.ArgumentParser, suppress: bool) -> None:
    def default(value):
        return argparse.SUPPRESS if suppress else value

    parser.add_argument(
        "-c",
        "--config",
        default=default(""),
        help="config file (default is /etc/headscale/config.yaml)",
    )
    parser.add_argument(
        "-o",
        "--output",
        default=default(""),
        help="Output format. Empty for human-readable, 'json', 'json-line' or 'yaml'",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        default=default(False),
        help="Disable prompts and forces the execution",
    )


def _run_version(args: argparse.Namespace) -> int:
    success_output({"version": VERSION}, VERSION, args.output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with global flags and subcommands."""
    parser = argparse.ArgumentParser(
        prog="hsctl", description="hsctl - a Tailscale control server"
    )
    _add_global_flags(parser, suppress=False)

    common = argparse.ArgumentParser(add_help=False)
    _add_global_flags(common, suppress=True)

    commands = parser.add_subparsers(dest="command")
    version = commands.add_parser(
        "version",
        parents=[common],
        help="Print the version.",
        description="The version of the server.",
    )
    version.set_defaults(handler=_run_version)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command line and return the exit status."""
    args_list = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    args = parser.parse_args(args_list)

    if not args.config:
        args.config = os.environ.get("HEADSCALE_CONFIG", "")

    machine_output = has_machine_output_flag(args_list)
    _configure_logging(colors_enabled(sys.stderr), quiet=machine_output)

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 0
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())