"""
Resource descriptors.

A descriptor knows, for one family of resources, how to enumerate them and
how to address their CloudWatch metrics. The set of kinds is closed: cache
nodes (Redis and Memcached) and DynamoDB tables/indexes.
"""
import logging
from typing import Dict, List, Optional

from .constants import (
    CACHE_METRICS_TO_GET,
    DDB_DEFAULT_BILLING_MODE,
    DDB_GSI_ID_SEPARATOR,
    DDB_GSI_METRICS_TO_GET,
    DDB_TABLE_METRICS_TO_GET,
    DDB_TTL_ENABLED,
    ENGINE_MEMCACHED,
    ENGINE_REDIS,
    NAMESPACE_DYNAMODB,
    NAMESPACE_ELASTICACHE,
    REDIS_METRICS_NODE_ID,
)
from .models import MetricTargetSpec, ResourceSummary, ResourceType
from .utils import bool_to_str

logger = logging.getLogger(__name__)


def _copy_targets(targets: Dict[str, List[str]]) -> Dict[str, List[str]]:
    return {stat: list(names) for stat, names in targets.items()}


def is_cluster_mode_enabled(cache_cluster_id: str, replication_group_id: Optional[str]) -> bool:
    """
    Guess whether a Redis node belongs to a cluster-mode enabled group.

    Cluster-mode nodes are named ``<group>-<shard>-<node>`` (e.g. ``foo-0001-002``)
    while non-cluster nodes are ``<group>-<node>``. DescribeCacheClusters does
    not expose the mode directly, so the name suffix is all we have.
    """
    if not replication_group_id:
        return False
    prefix = f"{replication_group_id}-"
    suffix = cache_cluster_id[len(prefix):] if cache_cluster_id.startswith(prefix) else cache_cluster_id
    return len(suffix.split("-")) == 2


class ResourceDescriptor:
    """Capability interface shared by all resource kinds."""

    service_name = ""
    resource_types: tuple = ()

    def target_spec(self, resource: ResourceSummary) -> MetricTargetSpec:
        """Compute what to request from CloudWatch for a resource. No I/O."""
        raise NotImplementedError

    def discover(self, client, **kwargs) -> List[ResourceSummary]:
        """Enumerate resources of this kind using a boto3 client for ``service_name``."""
        raise NotImplementedError

    def _check_type(self, resource: ResourceSummary) -> None:
        if resource.type not in self.resource_types:
            raise ValueError(
                f"{type(self).__name__} cannot describe {resource.type.value} resource {resource.id}"
            )


# =============================================================================
# ElastiCache
# =============================================================================

class CacheResource(ResourceDescriptor):
    """ElastiCache Redis and Memcached nodes."""

    service_name = "elasticache"
    resource_types = (ResourceType.REDIS_NODE, ResourceType.MEMCACHED_NODE)

    def target_spec(self, resource: ResourceSummary) -> MetricTargetSpec:
        self._check_type(resource)
        if resource.type == ResourceType.REDIS_NODE:
            # Redis metrics use the full node id as cluster id and a fixed node id
            dimensions = [
                {"Name": "CacheClusterId", "Value": resource.id},
                {"Name": "CacheNodeId", "Value": REDIS_METRICS_NODE_ID},
            ]
        else:
            dimensions = [
                {"Name": "CacheClusterId", "Value": resource.additional_data.get("cluster_id", "")},
                {"Name": "CacheNodeId", "Value": resource.id},
            ]
        return MetricTargetSpec(
            namespace=NAMESPACE_ELASTICACHE,
            dimensions=dimensions,
            targets=_copy_targets(CACHE_METRICS_TO_GET),
        )

    def discover(self, client, **kwargs) -> List[ResourceSummary]:
        """List every cache node via DescribeCacheClusters, following Marker pages."""
        results: List[ResourceSummary] = []
        paginator = client.get_paginator('describe_cache_clusters')

        for page in paginator.paginate(ShowCacheNodeInfo=True):
            for cluster in page.get('CacheClusters', []):
                engine = cluster.get('Engine', '')
                # The response shape differs per engine
                if engine == ENGINE_REDIS:
                    results.append(self._redis_node(cluster))
                elif engine == ENGINE_MEMCACHED:
                    results.extend(self._memcached_nodes(cluster))
                else:
                    logger.debug(f"Skipping cache cluster {cluster.get('CacheClusterId')} with engine {engine!r}")

        logger.info(f"Found {len(results)} cache nodes")
        return results

    def _redis_node(self, cluster: Dict) -> ResourceSummary:
        cache_cluster_id = cluster['CacheClusterId']
        replication_group_id = cluster.get('ReplicationGroupId')

        # ReplicationGroupId is not set consistently on non-replicated clusters
        # (CLI vs console), so fall back to the node's own id
        cluster_id = replication_group_id or cache_cluster_id

        return ResourceSummary(
            id=cache_cluster_id,
            type=ResourceType.REDIS_NODE,
            additional_data={
                "cluster_id": cluster_id,
                "engine": cluster.get('Engine', ENGINE_REDIS),
                "cache_node_type": cluster.get('CacheNodeType', ''),
                "preferred_az": cluster.get('PreferredAvailabilityZone', ''),
                "cluster_mode_enabled": bool_to_str(
                    is_cluster_mode_enabled(cache_cluster_id, replication_group_id)
                ),
            },
            descriptor=self,
        )

    def _memcached_nodes(self, cluster: Dict) -> List[ResourceSummary]:
        nodes = []
        for node in cluster.get('CacheNodes', []):
            nodes.append(ResourceSummary(
                id=node['CacheNodeId'],
                type=ResourceType.MEMCACHED_NODE,
                additional_data={
                    "cluster_id": cluster['CacheClusterId'],
                    "engine": cluster.get('Engine', ENGINE_MEMCACHED),
                    "cache_node_type": cluster.get('CacheNodeType', ''),
                    "preferred_az": node.get('CustomerAvailabilityZone', ''),
                    "cluster_mode_enabled": bool_to_str(False),
                },
                descriptor=self,
            ))
        return nodes


# =============================================================================
# DynamoDB
# =============================================================================

class TableResource(ResourceDescriptor):
    """DynamoDB tables and their global secondary indexes."""

    service_name = "dynamodb"
    resource_types = (ResourceType.DYNAMO_TABLE, ResourceType.DYNAMO_GSI)

    def target_spec(self, resource: ResourceSummary) -> MetricTargetSpec:
        self._check_type(resource)
        if resource.type == ResourceType.DYNAMO_GSI:
            return MetricTargetSpec(
                namespace=NAMESPACE_DYNAMODB,
                dimensions=[
                    {"Name": "TableName", "Value": resource.additional_data.get("table_name", "")},
                    {"Name": "GlobalSecondaryIndexName", "Value": resource.additional_data.get("index_name", "")},
                ],
                targets=_copy_targets(DDB_GSI_METRICS_TO_GET),
            )
        return MetricTargetSpec(
            namespace=NAMESPACE_DYNAMODB,
            dimensions=[{"Name": "TableName", "Value": resource.id}],
            targets=_copy_targets(DDB_TABLE_METRICS_TO_GET),
        )

    def discover(self, client, include_gsis: bool = True, **kwargs) -> List[ResourceSummary]:
        """List tables, then describe each one (and its TTL) for sizing data."""
        table_names: List[str] = []
        paginator = client.get_paginator('list_tables')
        for page in paginator.paginate():
            table_names.extend(page.get('TableNames', []))

        results: List[ResourceSummary] = []
        for table_name in table_names:
            table = client.describe_table(TableName=table_name)['Table']
            # DescribeTimeToLive is slow; one call per table is unavoidable
            ttl = client.describe_time_to_live(TableName=table_name)
            ttl_status = ttl.get('TimeToLiveDescription', {}).get('TimeToLiveStatus')
            billing_mode = table.get('BillingModeSummary', {}).get('BillingMode', DDB_DEFAULT_BILLING_MODE)

            results.append(ResourceSummary(
                id=table_name,
                type=ResourceType.DYNAMO_TABLE,
                additional_data={
                    "ttl_enabled": bool_to_str(ttl_status == DDB_TTL_ENABLED),
                    "item_count": str(table.get('ItemCount', 0)),
                    "billing_mode": billing_mode,
                    "table_size_bytes": str(table.get('TableSizeBytes', 0)),
                },
                descriptor=self,
            ))

            if include_gsis:
                for index in table.get('GlobalSecondaryIndexes', []):
                    index_name = index['IndexName']
                    results.append(ResourceSummary(
                        id=f"{table_name}{DDB_GSI_ID_SEPARATOR}{index_name}",
                        type=ResourceType.DYNAMO_GSI,
                        additional_data={
                            "table_name": table_name,
                            "index_name": index_name,
                            "item_count": str(index.get('ItemCount', 0)),
                            "billing_mode": billing_mode,
                        },
                        descriptor=self,
                    ))

        logger.info(f"Found {len(table_names)} DynamoDB tables ({len(results) - len(table_names)} GSIs)")
        return results


CACHE_RESOURCE = CacheResource()
TABLE_RESOURCE = TableResource()

DESCRIPTORS: Dict[ResourceType, ResourceDescriptor] = {
    ResourceType.REDIS_NODE: CACHE_RESOURCE,
    ResourceType.MEMCACHED_NODE: CACHE_RESOURCE,
    ResourceType.DYNAMO_TABLE: TABLE_RESOURCE,
    ResourceType.DYNAMO_GSI: TABLE_RESOURCE,
}


def descriptor_for(resource: ResourceSummary) -> ResourceDescriptor:
    """Return the resource's own descriptor, or the default one for its type."""
    return resource.descriptor or DESCRIPTORS[resource.type]
