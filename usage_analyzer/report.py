"""
Report output: one row per resource with its metadata and metric series.
"""
import csv
import json
import logging
from typing import Dict, List

from .models import ResourceSummary
from .utils import WriteError, write_csv, write_json

logger = logging.getLogger(__name__)

REPORT_HEADER = ["ResourceId", "Type", "AdditionalData", "Metrics"]


def resource_to_row(resource: ResourceSummary) -> Dict[str, str]:
    """Flatten a resource into a report row; nested fields are JSON strings."""
    return {
        "ResourceId": resource.id,
        "Type": resource.type.value,
        "AdditionalData": json.dumps(resource.additional_data),
        "Metrics": json.dumps([m.to_dict() for m in resource.metrics]),
    }


def write_results_csv(resources: List[ResourceSummary], filepath: str = "./results.csv") -> None:
    """
    Write the CSV report.

    Raises:
        WriteError: If the file cannot be written or a row cannot be serialized
    """
    try:
        rows = [resource_to_row(r) for r in resources]
        write_csv(rows, filepath, fieldnames=REPORT_HEADER)
    except (OSError, csv.Error, TypeError, ValueError) as e:
        logger.error(f"Failed to write {filepath}: {e}")
        raise WriteError(f"Failed to write {filepath}: {e}", original_error=e) from e


def write_results_json(resources: List[ResourceSummary], filepath: str) -> None:
    """Write the same data as a JSON list, keeping nested fields as objects."""
    try:
        write_json([r.to_dict() for r in resources], filepath)
    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Failed to write {filepath}: {e}")
        raise WriteError(f"Failed to write {filepath}: {e}", original_error=e) from e
