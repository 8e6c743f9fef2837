"""
AWS usage analyzer shared library.
"""
from . import constants
from .config import CollectorConfig, generate_sample_config, load_config
from .descriptors import (
    CACHE_RESOURCE,
    TABLE_RESOURCE,
    CacheResource,
    ResourceDescriptor,
    TableResource,
    descriptor_for,
    is_cluster_mode_enabled,
)
from .discovery import build_client_config, list_resources
from .metrics import build_metric_queries, fetch_resource_metrics, metric_query_id
from .models import MetricSeries, MetricTargetSpec, ResourceSummary, ResourceType
from .report import REPORT_HEADER, write_results_csv, write_results_json
from .scheduler import ScheduleResult, collect_metrics, run_bounded
from .utils import (
    CollectorError,
    ConfigError,
    DiscoveryError,
    FetchError,
    FetchProgress,
    WriteError,
    setup_logging,
)

__all__ = [
    'constants',
    # Models
    'ResourceType',
    'ResourceSummary',
    'MetricSeries',
    'MetricTargetSpec',
    # Descriptors
    'ResourceDescriptor',
    'CacheResource',
    'TableResource',
    'CACHE_RESOURCE',
    'TABLE_RESOURCE',
    'descriptor_for',
    'is_cluster_mode_enabled',
    # Collection
    'list_resources',
    'build_client_config',
    'build_metric_queries',
    'fetch_resource_metrics',
    'metric_query_id',
    'run_bounded',
    'collect_metrics',
    'ScheduleResult',
    # Output
    'REPORT_HEADER',
    'write_results_csv',
    'write_results_json',
    # Config
    'CollectorConfig',
    'load_config',
    'generate_sample_config',
    # Errors & utils
    'CollectorError',
    'ConfigError',
    'DiscoveryError',
    'FetchError',
    'WriteError',
    'FetchProgress',
    'setup_logging',
]
