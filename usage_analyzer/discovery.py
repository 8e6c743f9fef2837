"""
Resource discovery and AWS client setup.
"""
import logging
from typing import List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .constants import DEFAULT_MAX_ATTEMPTS
from .descriptors import CACHE_RESOURCE, TABLE_RESOURCE, ResourceDescriptor
from .models import ResourceSummary
from .utils import DiscoveryError, check_and_raise_auth_error

logger = logging.getLogger(__name__)


def build_client_config(max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> Config:
    """
    botocore client config with a high retry ceiling.

    Legacy retry mode has neither a client-side rate limiter nor a retry
    quota, so throttled GetMetricData calls keep backing off on the server's
    signal instead of draining a local token bucket.
    """
    return Config(retries={'mode': 'legacy', 'total_max_attempts': max_attempts})


def get_client(session: boto3.Session, service_name: str, region: Optional[str] = None, config: Optional[Config] = None):
    """Create a boto3 client from the session."""
    return session.client(service_name, region_name=region or session.region_name, config=config)


def discover(
    descriptor: ResourceDescriptor,
    session: boto3.Session,
    region: Optional[str] = None,
    config: Optional[Config] = None,
    **kwargs
) -> List[ResourceSummary]:
    """
    Run one descriptor's discovery.

    Raises:
        ConfigError: On credential/permission failures
        DiscoveryError: On any other API failure
    """
    try:
        client = get_client(session, descriptor.service_name, region, config)
        return descriptor.discover(client, **kwargs)
    except (ClientError, BotoCoreError) as e:
        check_and_raise_auth_error(e, f"list {descriptor.service_name} resources")
        logger.error(f"Failed to discover {descriptor.service_name} resources: {e}")
        raise DiscoveryError(f"Failed to discover {descriptor.service_name} resources: {e}", original_error=e) from e


def list_resources(
    session: boto3.Session,
    region: Optional[str] = None,
    config: Optional[Config] = None,
    include_cache: bool = True,
    include_tables: bool = True,
    include_gsis: bool = True,
) -> List[ResourceSummary]:
    """
    Discover every resource to collect metrics on.

    Cache nodes come first, then DynamoDB tables (each followed by its
    GSIs). Any failure aborts discovery since a partial resource set would
    silently under-report.
    """
    resources: List[ResourceSummary] = []

    if include_cache:
        logger.info("Looking for ElastiCache nodes to analyze")
        resources.extend(discover(CACHE_RESOURCE, session, region, config))

    if include_tables:
        logger.info("Looking for DynamoDB tables to analyze")
        resources.extend(discover(TABLE_RESOURCE, session, region, config, include_gsis=include_gsis))

    return resources
