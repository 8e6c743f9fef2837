"""
Utility functions for the AWS usage analyzer.

Logging Level Standards:
------------------------
- ERROR: Failures that stop the run (config, discovery, report writing)
         "Failed to discover DynamoDB tables: {e}"
- WARNING: Per-resource failures that leave the run going
           "Failed to fetch metrics for my-table: {e}"
- INFO: Progress messages, resource counts
        "Found 42 cache nodes"
- DEBUG: Per-page and per-item detail
         "my-table: Sum page 2 returned 5 results"
"""
import csv
import json
import logging
import os
import sys
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .constants import AWS_AUTH_ERROR_CODES

logger = logging.getLogger(__name__)


# =============================================================================
# Errors
# =============================================================================

class CollectorError(Exception):
    """Base class for errors raised by the collector."""
    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        self.original_error = original_error
        super().__init__(message)


class ConfigError(CollectorError):
    """Settings, credentials or region could not be resolved. Fatal."""


class DiscoveryError(CollectorError):
    """A listing or describe call failed, so the resource set is unreliable. Fatal."""


class FetchError(CollectorError):
    """A metric query for one resource failed. Local to that resource."""
    def __init__(
        self,
        resource_id: str,
        statistic: str,
        original_error: Optional[BaseException] = None
    ):
        self.resource_id = resource_id
        self.statistic = statistic
        super().__init__(
            f"Failed to fetch {statistic} metrics for {resource_id}: {original_error}",
            original_error=original_error
        )


class WriteError(CollectorError):
    """The report could not be written. Fatal."""


def is_auth_error(exc: BaseException) -> bool:
    """
    Check if an exception represents an AWS authentication/authorization error.

    Covers botocore ClientError with an auth-related error code and the
    NoCredentialsError family raised before any request is sent.
    """
    exc_type_name = type(exc).__name__

    if exc_type_name in ('NoCredentialsError', 'PartialCredentialsError', 'NoRegionError'):
        return True

    if exc_type_name == 'ClientError':
        error_code = getattr(exc, 'response', {}).get('Error', {}).get('Code', '')
        return error_code in AWS_AUTH_ERROR_CODES

    return False


def check_and_raise_auth_error(exc: BaseException, context: str) -> None:
    """
    Raise ConfigError if exc is an auth error, otherwise return normally.

    Call this in exception handlers before wrapping the error in something
    less specific, so credential problems are reported as such.
    """
    if is_auth_error(exc):
        raise ConfigError(
            f"Authentication/authorization error while trying to {context}: {exc}",
            original_error=exc
        ) from exc


# =============================================================================
# Progress Tracking
# =============================================================================

class FetchProgress:
    """
    Progress display for the metric collection phase.

    Falls back to plain print statements if stdout is not a TTY
    (e.g., when piping output). Use ``advance`` as the scheduler's completion
    callback; it is safe to call from worker threads.

    Usage:
        with FetchProgress(total=len(resources)) as progress:
            collect_metrics(cloudwatch, resources, on_complete=progress.advance)
    """

    def __init__(self, total: int, description: str = "Collecting metrics", show_progress: bool = True):
        self.total = total
        self.description = description
        self.show_progress = show_progress and sys.stdout.isatty()

        self.completed = 0
        self.failed = 0
        self._lock = threading.Lock()

        self._console: Optional[Console] = None
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def __enter__(self):
        if self.show_progress:
            self._console = Console()
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[bold blue]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=self._console,
                transient=False,
            )
            self._task = self._progress.add_task(self.description, total=self.total or 1)
            self._progress.start()
        else:
            print(f"{self.description}: {self.total} resources")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._progress is not None:
            self._progress.stop()
            self._print_summary_rich()
        else:
            self._print_summary_plain()
        return False

    def advance(self, resource: Any = None, error: Optional[BaseException] = None) -> None:
        """Record one finished resource."""
        with self._lock:
            self.completed += 1
            if error is not None:
                self.failed += 1
            completed = self.completed

        if self._progress is not None and self._task is not None:
            self._progress.update(self._task, advance=1)
        elif self.total:
            resource_id = getattr(resource, 'id', '')
            status = "failed" if error is not None else "done"
            print(f"  [{completed}/{self.total}] {resource_id} {status}")

    def _print_summary_rich(self):
        """Print a formatted summary using rich."""
        table = Table(title="Metric Collection Summary", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Resources", f"{self.total:,}")
        table.add_row("Completed", f"{self.completed - self.failed:,}")
        table.add_row("Failed", f"{self.failed:,}")

        assert self._console is not None
        self._console.print(Panel(table))

    def _print_summary_plain(self):
        """Print a plain text summary."""
        print(f"\n{'='*60}")
        print("Metric Collection Complete")
        print(f"{'='*60}")
        print(f"  Resources: {self.total:,}")
        print(f"  Completed: {self.completed - self.failed:,}")
        print(f"  Failed:    {self.failed:,}")
        print()


# =============================================================================
# Misc helpers
# =============================================================================

def get_timestamp() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def bool_to_str(value: bool) -> str:
    """Render a bool the way additional data stores it ("true"/"false")."""
    return "true" if value else "false"


def setup_logging(level: str = "INFO", output_dir: Optional[str] = None) -> logging.Logger:
    """
    Setup logging configuration with console and optional file output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        output_dir: If provided, also write logs to a file in this directory

    Returns:
        Logger instance
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')
        log_file = os.path.join(output_dir, f"usage_log_{timestamp}.log")

        file_handler = logging.FileHandler(log_file, mode='w')
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        root_logger.info(f"Logging to: {log_file}")

    # botocore is chatty at DEBUG (retries, credential lookups)
    for noisy in ('botocore', 'boto3', 'urllib3'):
        logging.getLogger(noisy).setLevel(max(numeric_level, logging.WARNING))

    return logging.getLogger(__name__)


def write_json(data: Any, filepath: str) -> None:
    """Write data to JSON file with owner-only permissions."""
    fd = os.open(filepath, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, 'w') as f:
        json.dump(data, f, indent=2, default=str)
    logger.info(f"Wrote {filepath}")


def write_csv(data: List[Dict], filepath: str, fieldnames: Optional[List[str]] = None) -> None:
    """Write data to CSV file. The header row is always written."""
    if not fieldnames:
        if not data:
            raise ValueError("fieldnames are required when there are no rows")
        fieldnames = list(data[0].keys())

    with open(filepath, 'w', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(data)
    logger.info(f"Wrote {filepath}")
