# !/usr/bin/env python3
# filename: install.py
# -*- coding: utf-8 -*-
"""
Entry point for the infrastructure installers.
"""

import argparse
import logging
import signal
import sys
from typing import List, Optional

from common.errors import InstallerError, UserAbort
from common.logging_config import resolve_log_level, setup_logging
from installers.orchestrator import InstallerOrchestrator
from installers.registry import InstallerRegistry
from settings.config_loader import load_app_settings
from settings.constants import SCRIPT_VERSION

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

COMMAND_ALIASES = {
    "reinstall": "install",
    "uninstall": "remove",
    "check": "verify",
    "status": "verify",
}


def _handle_sigterm(signum, frame):
    raise SystemExit(EXIT_INTERRUPTED)


def _global_parser() -> argparse.ArgumentParser:
    """Options accepted anywhere on the command line."""
    global_parser = argparse.ArgumentParser(add_help=False)
    global_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )
    global_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Answer yes to confirmation prompts (same as CONFIRM=1)",
    )
    global_parser.add_argument(
        "--config", metavar="PATH", help="YAML configuration file"
    )
    global_parser.add_argument(
        "--log-file", metavar="PATH", help="Also write the log to PATH"
    )
    global_parser.add_argument(
        "--no-reboot",
        action="store_true",
        help="Do not reboot after the OpenSSL/OpenSSH installation",
    )
    global_parser.add_argument(
        "--channel",
        choices=["stable", "mainline"],
        help="NGINX release track",
    )
    global_parser.add_argument(
        "--minikube",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Install minikube together with kubectl (default: ask)",
    )
    return global_parser


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=f"Infrastructure installers v{SCRIPT_VERSION}",
        parents=[_global_parser()],
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("list", help="List available installers")

    install_parser = subparsers.add_parser(
        "install", aliases=["reinstall"], help="Install components"
    )
    install_parser.add_argument("components", nargs="+", help="Components to install")

    remove_parser = subparsers.add_parser(
        "remove", aliases=["uninstall"], help="Remove components"
    )
    remove_parser.add_argument("components", nargs="+", help="Components to remove")

    verify_parser = subparsers.add_parser(
        "verify", aliases=["check", "status"], help="Verify installed components"
    )
    verify_parser.add_argument(
        "components",
        nargs="*",
        help="Components to verify (if none specified, all supported components are verified)",
    )
    return parser


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    # Global flags may appear before or after the subcommand
    all_args = args if args is not None else sys.argv[1:]
    global_args, remaining_args = _global_parser().parse_known_args(all_args)

    parsed_args = build_parser().parse_args(remaining_args)
    for key, value in vars(global_args).items():
        setattr(parsed_args, key, value)
    if parsed_args.command:
        parsed_args.command = COMMAND_ALIASES.get(
            parsed_args.command, parsed_args.command
        )
    return parsed_args


def list_installers(logger: logging.Logger) -> int:
    installers = InstallerRegistry.get_all_installers()
    if not installers:
        logger.info("No installers available.")
        return EXIT_OK
    logger.info("Available installers:")
    for name, installer_class in sorted(installers.items()):
        metadata = installer_class.metadata
        aliases = metadata.get("aliases", [])
        alias_text = f" (aliases: {', '.join(aliases)})" if aliases else ""
        logger.info(
            f"  - {name:<14} [{metadata.get('platform', 'linux')}] "
            f"{metadata.get('description', '')}{alias_text}"
        )
    return EXIT_OK


def show_status(orchestrator: InstallerOrchestrator, logger: logging.Logger) -> None:
    summary = orchestrator.status()
    if not summary:
        return
    col_width = max(len(name) for name in summary) + 2
    logger.info("Detected installations:")
    for name, status in sorted(summary.items()):
        logger.info(f"  {name:<{col_width}}{status}")


def show_verification(results, logger: logging.Logger) -> bool:
    if not results:
        logger.info("No components to verify.")
        return True
    col_width = max(max(len(name) for name in results), len("Component")) + 2
    header = f"{'Component':<{col_width}}{'Status':<10}"
    logger.info(header)
    logger.info("-" * len(header))
    for name, ok in sorted(results.items()):
        logger.info(f"{name:<{col_width}}{'✅ OK' if ok else '❌ FAILED':<10}")
    return all(results.values())


def _canonical_names(names: List[str], logger: logging.Logger) -> Optional[List[str]]:
    canonical = []
    for name in names:
        try:
            canonical.append(InstallerRegistry.canonical_name(name))
        except KeyError:
            logger.error(
                f"Unknown component '{name}'. Run 'list' to see available installers."
            )
            return None
    return canonical


def run(parsed_args: argparse.Namespace, logger: logging.Logger) -> int:
    app_settings = load_app_settings(parsed_args, parsed_args.config, logger)
    logger = setup_logging(
        log_level=logging.DEBUG
        if parsed_args.verbose
        else resolve_log_level(),
        log_file=app_settings.log_file,
        log_prefix=app_settings.log_prefix,
        symbols=app_settings.symbols,
    )
    orchestrator = InstallerOrchestrator(app_settings, logger)

    if not parsed_args.command:
        build_parser().print_help()
        show_status(orchestrator, logger)
        return EXIT_OK

    if parsed_args.command == "list":
        return list_installers(logger)

    names = _canonical_names(parsed_args.components, logger)
    if names is None:
        return EXIT_FAILURE

    if parsed_args.command == "install":
        if not orchestrator.install(names):
            logger.error("Installation failed.")
            return EXIT_FAILURE
        logger.info("Installation completed successfully.")
        return EXIT_OK

    if parsed_args.command == "remove":
        if not orchestrator.uninstall(names):
            logger.error("Removal failed.")
            return EXIT_FAILURE
        logger.info("Removal completed successfully.")
        return EXIT_OK

    if parsed_args.command == "verify":
        if not names:
            names = orchestrator.supported_installers()
        results = orchestrator.verify(names)
        return EXIT_OK if show_verification(results, logger) else EXIT_FAILURE

    logger.error(f"Unknown command: {parsed_args.command}")
    return EXIT_FAILURE


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for the infrastructure installers."""
    parsed_args = parse_args(args)
    logger = setup_logging(
        log_level=logging.DEBUG if parsed_args.verbose else resolve_log_level()
    )
    signal.signal(signal.SIGTERM, _handle_sigterm)

    try:
        return run(parsed_args, logger)
    except UserAbort as e:
        logger.warning(f"Cancelled: {e}")
        return EXIT_OK
    except KeyboardInterrupt:
        logger.warning("Interrupted by user.")
        return EXIT_INTERRUPTED
    except (InstallerError, OSError, KeyError, ValueError) as e:
        logger.error(f"Error: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
