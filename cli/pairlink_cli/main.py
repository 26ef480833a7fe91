"""Main entry point for the pairlink CLI."""
from __future__ import annotations

import logging
import sys

from pairlink.config import settings
from pairlink_cli import __version__
from pairlink_cli.config import Config
from pairlink_cli.link import run_link, status, unlink


def print_help():
    """Print help message."""
    print(f"""
pairlink v{__version__}

Usage:
  pairlink [options] <command>

Commands:
  link              Link an account with a pairing code
  unlink            Forget the linked account
  status            Show linked accounts

Options:
  --service-url URL Override link service (default: {settings.SERVICE_URL})
  --no-browser      Do not open the link page automatically
  --all             With unlink: forget every service
  --verbose         Log progress to stderr
  -h, --help        Show this help
  -v, --version     Show version

Environment:
  PAIRLINK_SERVICE_URL   Override link service (same as --service-url)
  PAIRLINK_LOG_LEVEL     Log level when --verbose is not given

Examples:
  pairlink link                                     # Link with the default service
  pairlink link --service-url http://localhost:32400
  pairlink unlink --all                             # Forget every linked account
""")


def parse_args(args: list[str]) -> dict:
    """
    Parse command line arguments.

    Returns dict with:
        command: str | None (link, unlink, status)
        service_url: str | None
        open_browser: bool
        unlink_all: bool
        verbose: bool
        show_help: bool
        show_version: bool
    """
    result = {
        "command": None,
        "service_url": None,
        "open_browser": True,
        "unlink_all": False,
        "verbose": False,
        "show_help": False,
        "show_version": False,
    }

    i = 0
    while i < len(args):
        arg = args[i]

        if arg in ("link", "unlink", "status"):
            result["command"] = arg
        elif arg == "--service-url":
            if i + 1 < len(args):
                result["service_url"] = args[i + 1]
                i += 1
            else:
                print("Error: --service-url requires a URL")
                sys.exit(1)
        elif arg == "--no-browser":
            result["open_browser"] = False
        elif arg == "--all":
            result["unlink_all"] = True
        elif arg == "--verbose":
            result["verbose"] = True
        elif arg in ("--help", "-h"):
            result["show_help"] = True
        elif arg in ("--version", "-v"):
            result["show_version"] = True
        elif arg.startswith("-"):
            print(f"Unknown option: {arg}")
            print("Run 'pairlink --help' for usage.")
            sys.exit(1)
        else:
            print(f"Unknown command: {arg}")
            print("Run 'pairlink --help' for usage.")
            sys.exit(1)

        i += 1

    return result


def configure_logging(verbose: bool):
    level = logging.DEBUG if verbose else getattr(logging, settings.LOG_LEVEL, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main():
    """Main entry point."""
    args = parse_args(sys.argv[1:])

    if args["show_help"] or (args["command"] is None and not args["show_version"]):
        print_help()
        return

    if args["show_version"]:
        print(f"pairlink {__version__}")
        return

    configure_logging(args["verbose"])
    config = Config(service_url_override=args["service_url"])

    if args["command"] == "link":
        success = run_link(config, open_browser=args["open_browser"])
    elif args["command"] == "unlink":
        success = unlink(config, unlink_all=args["unlink_all"])
    else:
        success = status(config)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
