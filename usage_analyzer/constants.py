"""
Constants for the AWS usage analyzer.

This module defines all magic strings and numbers used across the codebase
to prevent typos, ensure consistency, and make maintenance easier.
"""

# =============================================================================
# Time Constants
# =============================================================================

SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

# =============================================================================
# Metric Window
# =============================================================================

METRIC_LOOKBACK_DAYS = 30
METRIC_PERIOD_SECONDS = SECONDS_PER_DAY  # 1 day buckets
METRIC_SCAN_ORDER = "TimestampAscending"

# =============================================================================
# Default Configuration Values
# =============================================================================

# Stays under the GetMetricData rate limit without per-account tuning
DEFAULT_MAX_CONCURRENCY = 3
DEFAULT_MAX_ATTEMPTS = 20
DEFAULT_OUTPUT_DIR = "."
RESULTS_CSV_FILENAME = "results.csv"
RESULTS_JSON_FILENAME = "results.json"

# =============================================================================
# CloudWatch Namespaces
# =============================================================================

NAMESPACE_ELASTICACHE = "AWS/ElastiCache"
NAMESPACE_DYNAMODB = "AWS/DynamoDB"

# =============================================================================
# Statistic Kinds
# =============================================================================

STAT_SUM = "Sum"
STAT_AVERAGE = "Average"
STAT_MAXIMUM = "Maximum"

# =============================================================================
# ElastiCache
# =============================================================================

ENGINE_REDIS = "redis"
ENGINE_MEMCACHED = "memcached"

# Redis metrics are always reported under this node id
REDIS_METRICS_NODE_ID = "0001"

CACHE_METRICS_TO_GET = {
    STAT_SUM: [
        "NetworkBytesIn",
        "NetworkBytesOut",

        "GeoSpatialBasedCmds",
        "EvalBasedCmds",
        "GetTypeCmds",
        "HashBasedCmds",

        "JsonBasedCmds",
        "KeyBasedCmds",
        "ListBasedCmds",
        "SetBasedCmds",
        "SetTypeCmds",
        "StringBasedCmds",
        "PubSubBasedCmds",
        "SortedSetBasedCmds",
        "StreamBasedCmds",
    ],
    STAT_AVERAGE: [
        "DB0AverageTTL",
    ],
    STAT_MAXIMUM: [
        "CurrConnections",
        "NewConnections",

        "EngineCPUUtilization",
        "CPUUtilization",
        "FreeableMemory",

        "BytesUsedForCache",
        "DatabaseMemoryUsagePercentage",
        "CurrItems",
        "KeysTracked",
        "Evictions",

        "CacheHitRate",
    ],
}

# =============================================================================
# DynamoDB
# =============================================================================

DDB_TABLE_METRICS_TO_GET = {
    STAT_SUM: [
        "ConsumedReadCapacityUnits",
        "ConsumedWriteCapacityUnits",
        "ProvisionedReadCapacityUnits",
        "ProvisionedWriteCapacityUnits",

        "TimeToLiveDeletedItemCount",
    ],
}

# GSIs do not report TTL deletions
DDB_GSI_METRICS_TO_GET = {
    STAT_SUM: [
        "ConsumedReadCapacityUnits",
        "ConsumedWriteCapacityUnits",
        "ProvisionedReadCapacityUnits",
        "ProvisionedWriteCapacityUnits",
    ],
}

DDB_TTL_ENABLED = "ENABLED"
DDB_DEFAULT_BILLING_MODE = "PROVISIONED"
DDB_GSI_ID_SEPARATOR = "#"

# =============================================================================
# AWS error codes that indicate auth/permission issues
# =============================================================================

AWS_AUTH_ERROR_CODES = {
    'AccessDenied', 'AccessDeniedException', 'UnauthorizedAccess',
    'UnauthorizedOperation', 'InvalidClientTokenId', 'ExpiredToken',
    'ExpiredTokenException', 'AuthFailure', 'InvalidIdentityToken',
    'CredentialsNotFound', 'SignatureDoesNotMatch',
}
