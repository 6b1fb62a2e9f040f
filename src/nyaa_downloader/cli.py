from __future__ import annotations

import argparse
import logging
import os
import sys
import time
import traceback
from pathlib import Path
from typing import List, Optional, Tuple

from rich.console import Console
from rich.logging import RichHandler

from .config import AppConfig, load_config
from .processor import Processor
from .utils import load_structured_file, load_yaml_file
from .validation import ValidationIssue, ValidationReport, validate_config_data, validate_download_list

LOGGER = logging.getLogger(__name__)
CONSOLE = Console()
LOG_LEVEL_CHOICES = ["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]
LOG_RECORD_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_CONFIG_PATH = "/config/nyaa.yaml"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_env_bool(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None


def _env_bool(name: str) -> Optional[bool]:
    return _parse_env_bool(os.getenv(name))


def _env_int(name: str) -> Tuple[Optional[int], bool]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None, False
    try:
        return int(raw), False
    except ValueError:
        return None, True


def parse_args(argv: Optional[Tuple[str, ...]] = None) -> argparse.Namespace:
    arguments = list(argv if argv is not None else sys.argv[1:])
    if arguments and arguments[0] == "validate-config":
        return _parse_validate_args(arguments[1:])
    return _parse_run_args(arguments)


def _parse_run_args(arguments: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Nyaa Downloader")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(os.getenv("CONFIG_PATH", DEFAULT_CONFIG_PATH)),
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "--download-list",
        type=Path,
        help="Path to the tracked series list (overrides settings.download_list)",
    )
    parser.add_argument("--dry-run", action="store_true", help="Resolve episodes without downloading or deleting")
    parser.add_argument("--once", action="store_true", help="Run a single pass and exit")
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Polling interval in seconds when running continuously",
    )
    parser.add_argument("--no-email", action="store_true", help="Skip the email report")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging on the console")
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVEL_CHOICES,
        help="Log level for the persistent log file (default INFO, or DEBUG when --verbose)",
    )
    parser.add_argument(
        "--console-level",
        choices=LOG_LEVEL_CHOICES,
        help="Log level for console output (defaults to --log-level)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Path to the persistent log file (default ./nyaa.log or $LOG_FILE)",
    )
    namespace = parser.parse_args(arguments)
    namespace.command = "run"
    return namespace


def _parse_validate_args(arguments: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate Nyaa Downloader configuration")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(os.getenv("CONFIG_PATH", DEFAULT_CONFIG_PATH)),
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "--download-list",
        type=Path,
        help="Path to the tracked series list (defaults to settings.download_list)",
    )
    parser.add_argument(
        "--show-trace",
        action="store_true",
        help="Print exception tracebacks when validation fails",
    )
    namespace = parser.parse_args(arguments)
    namespace.command = "validate-config"
    return namespace


def _resolve_previous_log_path(log_file: Path) -> Path:
    if log_file.suffix:
        return log_file.with_suffix(f"{log_file.suffix}.previous")
    return log_file.with_name(f"{log_file.name}.previous")


def _resolve_level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def configure_logging(log_level_name: str, log_file: Path, console_level_name: Optional[str] = None) -> None:
    log_level = _resolve_level(log_level_name)
    console_level = _resolve_level(console_level_name or log_level_name)

    log_file = log_file.resolve()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    previous_log = _resolve_previous_log_path(log_file)
    if previous_log.exists():
        previous_log.unlink()
    rotated = False
    if log_file.exists():
        log_file.replace(previous_log)
        rotated = True

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_RECORD_FORMAT, LOG_DATE_FORMAT)

    file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)

    plain_console_env = _env_bool("PLAIN_CONSOLE_LOGS")
    rich_console_env = _env_bool("RICH_CONSOLE_LOGS")
    if plain_console_env is True:
        use_rich_console = False
    elif rich_console_env is True:
        use_rich_console = True
    else:
        use_rich_console = CONSOLE.is_terminal

    if use_rich_console:
        console_handler: logging.Handler = RichHandler(console=CONSOLE, rich_tracebacks=True, markup=False)
    else:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
    console_handler.setLevel(console_level)

    root_logger.setLevel(min(log_level, console_level))
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logging.captureWarnings(True)

    if rotated:
        LOGGER.debug("Rotated previous log to %s", previous_log)
    LOGGER.info(
        "Logging to %s (file level %s, console level %s, console style %s)",
        log_file,
        logging.getLevelName(log_level),
        logging.getLevelName(console_level),
        "rich" if use_rich_console else "plain",
    )


def apply_runtime_overrides(config: AppConfig, args: argparse.Namespace) -> None:
    settings = config.settings
    email = config.email

    dry_run = args.dry_run or settings.dry_run
    env_dry_run = _env_bool("DRY_RUN")
    if env_dry_run is not None:
        dry_run = env_dry_run
    settings.dry_run = bool(dry_run)

    download_dir = os.getenv("DOWNLOAD_DIR")
    if download_dir:
        settings.download_dir = Path(download_dir)
    download_list = os.getenv("DOWNLOAD_LIST")
    if download_list:
        settings.download_list = Path(download_list)
    if getattr(args, "download_list", None):
        settings.download_list = args.download_list
    nyaa_url = os.getenv("NYAA_URL")
    if nyaa_url:
        settings.nyaa_url = nyaa_url.rstrip("/")

    smtp_host = os.getenv("SMTP_HOST")
    if smtp_host:
        email.host = smtp_host
    smtp_port, invalid_port = _env_int("SMTP_PORT")
    if invalid_port:
        LOGGER.warning("Invalid integer for SMTP_PORT: %s", os.getenv("SMTP_PORT"))
    if smtp_port is not None:
        email.port = smtp_port
    smtp_secure = _env_bool("SMTP_SECURE")
    if smtp_secure is not None:
        email.secure = smtp_secure
    smtp_user = os.getenv("SMTP_USER")
    if smtp_user:
        email.user = smtp_user
    smtp_password = os.getenv("SMTP_PASSWORD")
    if smtp_password:
        email.password = smtp_password
    recipient = os.getenv("RECIPIENT_EMAIL")
    if recipient:
        email.recipients = [addr.strip() for addr in recipient.split(",") if addr.strip()]
    sender = os.getenv("FROM_EMAIL")
    if sender:
        email.sender = sender.strip()


def _resolve_log_file(args: argparse.Namespace) -> Path:
    log_dir_env = os.getenv("LOG_DIR")
    log_file_env = os.getenv("LOG_FILE")
    if args.log_file:
        return args.log_file
    if log_dir_env:
        return Path(log_dir_env) / "nyaa.log"
    if log_file_env:
        return Path(log_file_env)
    return Path("nyaa.log")


def _execute_run(args: argparse.Namespace) -> int:
    verbose = args.verbose
    if not verbose:
        verbose = bool(_env_bool("VERBOSE") or _env_bool("DEBUG"))

    resolved_log_level = args.log_level or os.getenv("LOG_LEVEL") or ("DEBUG" if verbose else "INFO")
    resolved_console_level: Optional[str]
    if args.console_level:
        resolved_console_level = args.console_level
    elif os.getenv("CONSOLE_LEVEL"):
        resolved_console_level = os.getenv("CONSOLE_LEVEL")
    elif verbose:
        resolved_console_level = "DEBUG"
    else:
        resolved_console_level = None

    configure_logging(
        resolved_log_level.upper(),
        _resolve_log_file(args),
        resolved_console_level.upper() if resolved_console_level else None,
    )

    if not args.config.exists():
        LOGGER.error("Configuration file %s does not exist", args.config)
        return 1

    try:
        config = load_config(args.config)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Failed to load configuration: %s", exc)
        return 1

    apply_runtime_overrides(config, args)

    processor = Processor(config, enable_notifications=not args.no_email)

    env_run_once = _env_bool("RUN_ONCE")
    once = args.once or (True if env_run_once is None else env_run_once)
    interval = args.interval
    env_interval, invalid_interval = _env_int("PROCESS_INTERVAL")
    if invalid_interval:
        LOGGER.warning("Invalid integer for PROCESS_INTERVAL: %s", os.getenv("PROCESS_INTERVAL"))
    if env_interval is not None:
        interval = env_interval

    LOGGER.info("Starting Nyaa Downloader%s", " (dry-run)" if config.settings.dry_run else "")

    try:
        while True:
            processor.run_once()
            if once:
                break
            if not interval or interval <= 0:
                LOGGER.info("No polling interval configured; exiting after one pass")
                break
            LOGGER.debug("Sleeping for %s seconds", interval)
            time.sleep(interval)
    except KeyboardInterrupt:
        LOGGER.info("Interrupted by user")
    finally:
        processor.close()
    return 0


def _print_issues(label: str, report: ValidationReport) -> None:
    if report.errors:
        CONSOLE.print(f"[bold red]{label}: {len(report.errors)} validation error(s) detected:[/bold red]")
        for issue in report.errors:
            CONSOLE.print(f"  • [bold]{issue.path}[/bold] - {issue.message} ({issue.code})")
    else:
        CONSOLE.print(f"[bold green]{label} passed validation.[/bold green]")

    if report.warnings:
        CONSOLE.print(f"[yellow]{label}: {len(report.warnings)} warning(s):[/yellow]")
        for issue in report.warnings:
            CONSOLE.print(f"  • [bold]{issue.path}[/bold] - {issue.message} ({issue.code})")


def run_validate_config(args: argparse.Namespace) -> int:
    config_path: Path = args.config
    if not config_path.exists():
        CONSOLE.print(f"[bold red]Configuration file not found: {config_path}[/bold red]")
        return 1

    try:
        data = load_yaml_file(config_path)
    except Exception as exc:  # noqa: BLE001
        CONSOLE.print(f"[bold red]Failed to load configuration: {exc}[/bold red]")
        if getattr(args, "show_trace", False):
            CONSOLE.print(traceback.format_exc(), style="dim")
        return 1

    config_report = validate_config_data(data)
    _print_issues("Configuration", config_report)

    list_path: Optional[Path] = args.download_list
    if list_path is None and config_report.is_valid:
        list_path = load_config(config_path).settings.download_list

    list_report = ValidationReport()
    if list_path is not None:
        try:
            list_report = validate_download_list(load_structured_file(list_path))
        except Exception as exc:  # noqa: BLE001
            list_report.errors.append(
                ValidationIssue(
                    severity="error",
                    path=str(list_path),
                    message=f"{type(exc).__name__}: {exc}",
                    code="load-download-list",
                )
            )
            if getattr(args, "show_trace", False):
                CONSOLE.print(traceback.format_exc(), style="dim")
        _print_issues("Download list", list_report)

    return 0 if config_report.is_valid and list_report.is_valid else 1


def main(argv: Optional[Tuple[str, ...]] = None) -> int:
    args = parse_args(argv)
    if getattr(args, "command", "run") == "validate-config":
        return run_validate_config(args)
    return _execute_run(args)


if __name__ == "__main__":
    sys.exit(main())
