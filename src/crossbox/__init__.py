"""crossbox: run cargo subcommands for foreign targets inside per-target containers."""

__version__ = "0.1.0"
