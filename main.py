"""Thin shim for IDEs and direct execution."""

from feed_cache.cli import main

if __name__ == "__main__":
    import sys

    # Default to debug logging when no level is given on the command line.
    if not any(arg.startswith("--log-level") for arg in sys.argv):
        sys.argv.extend(["--log-level", "DEBUG"])

    sys.exit(main())
