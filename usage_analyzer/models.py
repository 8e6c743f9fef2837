"""
Data models for the AWS usage analyzer.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from .descriptors import ResourceDescriptor


class ResourceType(str, Enum):
    """Kinds of resources we collect metrics on. The value is the report tag."""
    REDIS_NODE = "AWS::Elasticache::RedisNode"
    MEMCACHED_NODE = "AWS::Elasticache::MemcachedNode"
    DYNAMO_TABLE = "AWS::DynamoDB::Table"
    DYNAMO_GSI = "AWS::DynamoDB::GlobalSecondaryIndex"


@dataclass
class MetricSeries:
    """
    One metric's daily samples for a resource, oldest bucket first.
    """
    name: str  # lower-cased metric name, matches the query id
    values: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"name": self.name, "values": list(self.values)}


@dataclass
class MetricTargetSpec:
    """What to ask CloudWatch for on behalf of a single resource."""
    namespace: str
    dimensions: List[Dict[str, str]]
    targets: Dict[str, List[str]]  # statistic -> metric names

    def metric_names(self) -> List[str]:
        """All metric names across statistic groups, in request order."""
        return [name for names in self.targets.values() for name in names]


@dataclass
class ResourceSummary:
    """
    Normalized resource record.

    Discovery creates it, the metric fetcher appends to ``metrics`` and the
    report writer reads it. The descriptor is only used to compute fetch
    parameters and is never serialized.
    """
    id: str
    type: ResourceType
    additional_data: Dict[str, str] = field(default_factory=dict)
    metrics: List[MetricSeries] = field(default_factory=list)
    descriptor: Optional["ResourceDescriptor"] = field(default=None, repr=False, compare=False)

    def metric(self, name: str) -> Optional[MetricSeries]:
        """Look up a series by its correlation name."""
        for series in self.metrics:
            if series.name == name:
                return series
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": self.type.value,
            "additional_data": dict(self.additional_data),
            "metrics": [m.to_dict() for m in self.metrics],
        }
