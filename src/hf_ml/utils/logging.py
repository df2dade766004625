"""
Logging setup for hfml commands.

Library modules log through ``logging.getLogger(__name__)`` and never attach
handlers; the CLI calls :func:`setup_logger` once per command, which wires the
``hf_ml`` logger to the console and, optionally, a per-run log file.
"""

import logging
import sys
from pathlib import Path

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logger(
    name: str = "hf_ml",
    level: int = logging.INFO,
    log_file: Path | None = None,
    format_string: str | None = None,
    capture_warnings: bool = True,
) -> logging.Logger:
    """
    Attach console (and optional file) handlers to the package logger.

    Calling it again replaces the handlers rather than stacking them, so a
    test session or a chained command never duplicates output.

    Args:
        name: Logger to configure
        level: Threshold for the logger and its handlers
        log_file: Append-mode log file; parent directories are created
        format_string: Record format (default: timestamp, level, message)
        capture_warnings: Also route ``warnings.warn`` output (model release
            failures, config warnings) through these handlers

    Returns:
        The configured logger
    """
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT, datefmt=DATE_FORMAT)
    handlers = [_handler(logging.StreamHandler(sys.stdout), level, formatter)]
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(_handler(logging.FileHandler(log_file, mode="a"), level, formatter))

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers = handlers
    # Child loggers propagate here; this one must not reach the root as well.
    logger.propagate = False

    if capture_warnings:
        logging.captureWarnings(True)
        warnings_logger = logging.getLogger("py.warnings")
        warnings_logger.handlers = list(handlers)
        warnings_logger.propagate = False

    return logger


def auto_log_path(
    command: str,
    outdir: Path | str = "results",
    run_id: str | None = None,
) -> Path:
    """Build an automatic log file path based on command context.

    Log directory structure:
        logs/
          models/run_{ID}.log
          forward_selection/run_{ID}.log
          pipeline/run_{ID}.log

    Args:
        command: CLI command name (run-models, forward-select, run-pipeline).
        outdir: Results output directory (used to resolve logs/ sibling).
        run_id: Run identifier (falls back to "unknown" if None).

    Returns:
        Absolute Path for the log file. Parent directories are NOT created here.
    """
    outdir = Path(outdir).resolve()
    logs_root = outdir.parent / "logs" if outdir.name != "logs" else outdir

    rid = run_id or "unknown"
    subdirs = {
        "run-models": "models",
        "forward-select": "forward_selection",
        "run-pipeline": "pipeline",
    }
    subdir = subdirs.get(command)
    if subdir is None:
        return logs_root / "misc" / f"{command}_{rid}.log"
    return logs_root / subdir / f"run_{rid}.log"


def log_section(logger: logging.Logger, title: str, width: int = 80, char: str = "="):
    """Log a section header."""
    logger.info(char * width)
    logger.info(title)
    logger.info(char * width)
