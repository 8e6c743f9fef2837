"""
CloudWatch metric collection for a single resource.

Each statistic group of a resource's target spec becomes one batched
GetMetricData query (one query item per metric name). All pages of a query
are merged before the group's series are attached to the resource, so a
failure part-way through a group never leaves partial data behind.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from .constants import METRIC_LOOKBACK_DAYS, METRIC_PERIOD_SECONDS, METRIC_SCAN_ORDER
from .descriptors import descriptor_for
from .models import MetricSeries, MetricTargetSpec, ResourceSummary
from .utils import FetchError

logger = logging.getLogger(__name__)


def metric_query_id(metric_name: str) -> str:
    """Correlation id for a metric: its lower-cased name."""
    return metric_name.lower()


def metric_window(
    end_time: Optional[datetime] = None,
    days: int = METRIC_LOOKBACK_DAYS
) -> Tuple[datetime, datetime]:
    """Return (start, end) for a trailing window of ``days`` ending at end_time (default now)."""
    end = end_time or datetime.now(timezone.utc)
    return end - timedelta(days=days), end


def build_metric_queries(spec: MetricTargetSpec, statistic: str, metric_names: List[str]) -> List[Dict[str, Any]]:
    """Build one MetricDataQuery per metric name, all sharing the statistic and dimensions."""
    queries = []
    for metric_name in metric_names:
        queries.append({
            'Id': metric_query_id(metric_name),
            'MetricStat': {
                'Metric': {
                    'Namespace': spec.namespace,
                    'MetricName': metric_name,
                    'Dimensions': [dict(d) for d in spec.dimensions],
                },
                'Period': METRIC_PERIOD_SECONDS,
                'Stat': statistic,
            },
            'ReturnData': True,
        })
    return queries


def get_metric_data_all_pages(
    cloudwatch,
    queries: List[Dict[str, Any]],
    start_time: datetime,
    end_time: datetime,
) -> Tuple[Dict[str, List[float]], int]:
    """
    Run a GetMetricData query and follow NextToken until exhausted.

    Returns the values per query id, concatenated in page order, and the
    number of requests issued. botocore errors propagate to the caller.
    """
    values_by_id: Dict[str, List[float]] = {}
    params: Dict[str, Any] = {
        'MetricDataQueries': queries,
        'StartTime': start_time,
        'EndTime': end_time,
        'ScanBy': METRIC_SCAN_ORDER,
    }
    requests = 0

    while True:
        response = cloudwatch.get_metric_data(**params)
        requests += 1

        for result in response.get('MetricDataResults', []):
            values_by_id.setdefault(result['Id'], []).extend(result.get('Values', []))

        next_token = response.get('NextToken')
        if not next_token:
            break
        params['NextToken'] = next_token

    return values_by_id, requests


def fetch_resource_metrics(
    cloudwatch,
    resource: ResourceSummary,
    end_time: Optional[datetime] = None
) -> None:
    """
    Fetch 30 days of daily metrics for one resource and append them to ``resource.metrics``.

    Statistic groups are fetched in order. If any page of a group fails,
    that group contributes no series, the remaining groups are skipped and
    FetchError is raised. Series from groups that already completed stay on
    the resource.

    Args:
        cloudwatch: boto3 CloudWatch client
        resource: Resource to collect for; its descriptor computes the targets
        end_time: End of the window (default: now, UTC)

    Raises:
        FetchError: If a GetMetricData call fails
    """
    spec = descriptor_for(resource).target_spec(resource)
    start, end = metric_window(end_time)

    for statistic, metric_names in spec.targets.items():
        queries = build_metric_queries(spec, statistic, metric_names)
        try:
            values_by_id, requests = get_metric_data_all_pages(cloudwatch, queries, start, end)
        except (ClientError, BotoCoreError) as e:
            raise FetchError(resource.id, statistic, e) from e

        logger.debug(f"{resource.id}: {statistic} took {requests} request(s) for {len(queries)} metrics")

        for query in queries:
            query_id = query['Id']
            if query_id in values_by_id:
                resource.metrics.append(MetricSeries(name=query_id, values=values_by_id[query_id]))
