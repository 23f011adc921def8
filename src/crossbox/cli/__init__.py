"""Command-line surface: argv parsing and the `crossbox` entry point."""
