"""CLI entrypoint for gsmtui."""
import sys
import argparse
import logging
from pathlib import Path

from gsmtui.secrets.domains import preferences
from gsmtui.secrets.domains.config_loader import (
    ConfigError,
    apply_credentials,
    load_config,
    resolve_project_id,
)
from gsmtui.secrets.domains.validators import validate_project_id

VERSION = "0.1.0"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(log_file: Path, level: str) -> None:
    """Send logs to a file; the terminal belongs to the TUI."""
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(log_file),
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
        force=True,
    )


def cmd_version(args):
    """Show version information."""
    print(f"gsmtui {VERSION}")


def cmd_config_set_path(args):
    """Set config file path preference."""
    config_path = Path(args.path).expanduser().resolve()

    if not config_path.exists():
        print(f"Error: Config file does not exist: {config_path}", file=sys.stderr)
        sys.exit(1)

    if not config_path.is_file():
        print(f"Error: Path is not a file: {config_path}", file=sys.stderr)
        sys.exit(1)

    preferences.set_preference(preferences.CONFIG_PATH_KEY, str(config_path))
    print(f"Config path set to: {config_path}")


def cmd_config_show(args):
    """Show current config file path."""
    config_path_pref = preferences.get_preference(preferences.CONFIG_PATH_KEY)

    if config_path_pref:
        config_path = Path(config_path_pref)
        if config_path.exists():
            print(f"Config path: {config_path}")
        else:
            print(f"Config path (from preference, but file not found): {config_path}")
        print("Source: preference")
    else:
        default_config = preferences.default_config_path()
        print(f"Config path: {default_config}")
        if default_config.exists():
            print("Source: default")
        else:
            print("Source: default (file not found, built-in defaults apply)")


def cmd_config_clear(args):
    """Clear config path preference."""
    preferences.clear_preference(preferences.CONFIG_PATH_KEY)
    print(f"Config path preference cleared. Will use default: {preferences.default_config_path()}")


def cmd_run(args):
    """Launch the terminal UI. Returns the process exit code."""
    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    log_file = Path(args.log_file or config.log_file or preferences.default_log_path()).expanduser()
    setup_logging(log_file, "DEBUG" if args.verbose else config.log_level)

    apply_credentials(config)
    project_id = resolve_project_id(args.project_id, config)
    if project_id:
        error = validate_project_id(project_id)
        if error:
            print(f"Error: {error}", file=sys.stderr)
            return 2

    # Textual is only needed for the TUI itself
    from gsmtui.secrets.domains.gcp_client import GCPSecretClient
    from gsmtui.tui.app import SecretManagerApp

    logger.info(f"Starting gsmtui {VERSION} (project: {project_id or 'not selected'})")
    app = SecretManagerApp(GCPSecretClient(retry_policy=config.retry), project_id=project_id)
    app.run()
    return_code = app.return_code or 0
    logger.info(f"gsmtui exited with code {return_code}")
    return return_code


def build_parser():
    parser = argparse.ArgumentParser(
        prog="gsmtui",
        description="Terminal UI for browsing and managing GCP Secret Manager secrets",
        epilog="""
Exit codes:
  0 - Normal quit
  1 - Startup failure (invalid config, or authentication declined)
  2 - Usage error (invalid arguments)

Environment variables:
  GCP_PROJECT - GCP project ID to open (overrides config file)

Configuration:
  Default location: ~/.config/gsmtui/config.yml
  Custom path: Set with 'gsmtui config set-path <path>'
  View current: Run 'gsmtui config show'
        """
    )
    parser.add_argument(
        "--project-id",
        help="Open this project directly, skipping the project picker"
    )
    parser.add_argument(
        "--config",
        help="Path to config file (overrides the stored preference)"
    )
    parser.add_argument(
        "--log-file",
        help="Write logs here instead of ~/.config/gsmtui/gsmtui.log"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log at DEBUG level"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    _version_parser = subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the current version of gsmtui"
    )

    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Manage gsmtui configuration"
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")

    config_set_path_parser = config_subparsers.add_parser(
        "set-path",
        help="Set config file path",
        description="""
Set the configuration file path preference.

This stores the absolute path to your config file in:
~/.config/gsmtui/preferences.json

The path will be validated before storing.
        """
    )
    config_set_path_parser.add_argument(
        "path",
        help="Path to config file"
    )

    _config_show_parser = config_subparsers.add_parser(
        "show",
        help="Show current config path",
        description="""
Display the current configuration file path and its source.

Sources:
  - preference: Path set via 'config set-path'
  - default: Default XDG location (~/.config/gsmtui/config.yml)
        """
    )

    _config_clear_parser = config_subparsers.add_parser(
        "clear",
        help="Clear config path preference",
        description="""
Remove the config path preference.

After clearing, the default location will be used:
~/.config/gsmtui/config.yml
        """
    )

    return parser, config_parser


def main(argv=None):
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors (invalid config, authentication declined, etc.)
        2 - Usage errors (invalid arguments)
    """
    parser, config_parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command is None:
            sys.exit(cmd_run(args))
        elif args.command == "version":
            cmd_version(args)
        elif args.command == "config":
            if args.config_command == "set-path":
                cmd_config_set_path(args)
            elif args.config_command == "show":
                cmd_config_show(args)
            elif args.config_command == "clear":
                cmd_config_clear(args)
            else:
                config_parser.print_help()
                sys.exit(2)
        else:
            parser.print_help()
            sys.exit(2)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.exception("Unhandled error")
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
