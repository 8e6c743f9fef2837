"""
Bounded-concurrency dispatch of per-resource metric collection.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .constants import DEFAULT_MAX_CONCURRENCY
from .metrics import fetch_resource_metrics
from .models import ResourceSummary

logger = logging.getLogger(__name__)

# Called once per resource after its fetch finished; error is None on success
CompletionCallback = Callable[[ResourceSummary, Optional[BaseException]], None]


@dataclass
class ScheduleResult:
    """Outcome of a scheduler run."""
    total: int = 0
    completed: int = 0
    failed: Dict[str, str] = field(default_factory=dict)  # resource id -> error message

    @property
    def succeeded(self) -> int:
        return self.completed - len(self.failed)


def run_bounded(
    resources: List[ResourceSummary],
    fetch: Callable[[ResourceSummary], None],
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    on_complete: Optional[CompletionCallback] = None,
) -> ScheduleResult:
    """
    Run ``fetch`` once per resource with at most ``max_concurrency`` in flight.

    A permit is taken before a task is submitted and given back only when the
    task has finished all of its work. Failures are logged and recorded but
    never stop the other resources. Returns after every task has finished.

    Args:
        resources: Resources to process, each exactly once
        fetch: Work for one resource; may raise
        max_concurrency: Ceiling on simultaneously running tasks
        on_complete: Optional observer notified after each task completes

    Returns:
        ScheduleResult with completion and failure counts
    """
    if max_concurrency < 1:
        raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")

    result = ScheduleResult(total=len(resources))
    permits = threading.BoundedSemaphore(max_concurrency)
    lock = threading.Lock()

    def execute(resource: ResourceSummary) -> None:
        error: Optional[BaseException] = None
        try:
            fetch(resource)
        except Exception as e:
            error = e
            logger.warning(f"Failed to fetch metrics for {resource.id}: {e}")
        finally:
            permits.release()

        with lock:
            result.completed += 1
            if error is not None:
                result.failed[resource.id] = str(error)
            if on_complete:
                try:
                    on_complete(resource, error)
                except Exception as e:
                    logger.warning(f"Progress callback failed for {resource.id}: {e}")

    with ThreadPoolExecutor(max_workers=max_concurrency) as executor:
        futures = []
        for resource in resources:
            permits.acquire()
            try:
                futures.append(executor.submit(execute, resource))
            except BaseException:
                permits.release()
                raise
        wait(futures)

    logger.info(
        f"Metric collection finished: {result.succeeded}/{result.total} succeeded, "
        f"{len(result.failed)} failed"
    )
    return result


def collect_metrics(
    cloudwatch,
    resources: List[ResourceSummary],
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    on_complete: Optional[CompletionCallback] = None,
    end_time: Optional[datetime] = None,
) -> ScheduleResult:
    """Fetch CloudWatch metrics for every resource using one shared client."""
    def fetch(resource: ResourceSummary) -> None:
        fetch_resource_metrics(cloudwatch, resource, end_time=end_time)

    logger.info(f"Collecting metrics for {len(resources)} resources (max {max_concurrency} in flight)")
    return run_bounded(resources, fetch, max_concurrency=max_concurrency, on_complete=on_complete)
