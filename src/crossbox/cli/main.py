"""Main CLI entry point for crossbox."""

from __future__ import annotations

import logging
import os
import sys

from crossbox.cli.parse import parse
from crossbox.errors import EXIT_INTERRUPTED, ConfigError
from crossbox.execute import Orchestrator

USAGE = "Usage: crossbox [+toolchain] <subcommand> [--target <triple>] [args...]"

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(environ: dict[str, str] | None = None) -> None:
    """Level from CROSSBOX_LOG (debug, info, warning, error); default warning."""
    env = os.environ if environ is None else environ
    level = _LOG_LEVELS.get(env.get("CROSSBOX_LOG", "").lower(), logging.WARNING)
    logging.basicConfig(level=level, format="crossbox %(levelname)s %(name)s: %(message)s")


def print_usage() -> None:
    print(USAGE, file=sys.stderr)
    print("Subcommands:", file=sys.stderr)
    print(
        "  build, check, test, run, rustc, doc  - run inside the target's container",
        file=sys.stderr,
    )
    print("  anything else                        - forwarded to cargo as-is", file=sys.stderr)
    print(
        "Without --target (or build.default-target in crossbox.yaml) cargo runs on the host.",
        file=sys.stderr,
    )


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point. Exits with cargo's exit code, or a reserved code on orchestration failure."""
    if argv is None:
        argv = sys.argv[1:]
    configure_logging()
    if not argv or argv[0] in ("-h", "--help"):
        print_usage()
        sys.exit(ConfigError.exit_code if not argv else 0)

    try:
        invocation = parse(argv)
    except ConfigError as e:
        print(f"❌ crossbox: {e}", file=sys.stderr)
        print(USAGE, file=sys.stderr)
        sys.exit(e.exit_code)

    try:
        result = Orchestrator().run(invocation)
    except KeyboardInterrupt:
        print("❌ crossbox: interrupted", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)
    if result.error is not None:
        print(f"❌ crossbox: {result.error}", file=sys.stderr)
    elif result.interrupted:
        print("❌ crossbox: interrupted", file=sys.stderr)
    sys.exit(result.exit_code)


if __name__ == "__main__":
    main()
