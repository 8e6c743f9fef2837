"""
Tests for usage_analyzer/discovery.py.

Covers:
- Client retry configuration
- list_resources ordering and skip flags
- Error wrapping: DiscoveryError vs ConfigError for auth failures
"""
import os
import sys
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from usage_analyzer.discovery import build_client_config, get_client, list_resources
from usage_analyzer.models import ResourceType
from usage_analyzer.utils import ConfigError, DiscoveryError


def paginator_for(pages):
    paginator = Mock()
    paginator.paginate.return_value = pages
    return paginator


def make_elasticache():
    client = Mock()
    client.get_paginator.return_value = paginator_for([
        {"CacheClusters": [
            {"CacheClusterId": "foo-001", "ReplicationGroupId": "foo", "Engine": "redis"},
        ]},
    ])
    return client


def make_dynamodb():
    client = Mock()
    client.get_paginator.return_value = paginator_for([{"TableNames": ["orders"]}])
    client.describe_table.return_value = {"Table": {
        "TableName": "orders",
        "ItemCount": 3,
        "GlobalSecondaryIndexes": [{"IndexName": "by-date", "ItemCount": 3}],
    }}
    client.describe_time_to_live.return_value = {
        "TimeToLiveDescription": {"TimeToLiveStatus": "DISABLED"}
    }
    return client


def make_session(**clients):
    session = Mock()
    session.region_name = "us-east-1"
    session.client.side_effect = lambda name, region_name=None, config=None: clients[name]
    return session


class TestClientConfig:
    """Tests for build_client_config."""

    def test_legacy_mode_with_high_ceiling(self):
        """No client-side rate limiting, 20 attempts by default."""
        config = build_client_config()
        assert config.retries == {"mode": "legacy", "total_max_attempts": 20}

    def test_custom_attempts(self):
        assert build_client_config(5).retries["total_max_attempts"] == 5

    def test_get_client_defaults_to_session_region(self):
        session = make_session(sts=Mock())
        get_client(session, "sts")
        session.client.assert_called_once_with("sts", region_name="us-east-1", config=None)


class TestListResources:
    """Tests for list_resources."""

    def test_cache_nodes_before_tables(self):
        """Cache nodes first, then each table followed by its GSIs."""
        session = make_session(elasticache=make_elasticache(), dynamodb=make_dynamodb())

        resources = list_resources(session)

        assert [r.id for r in resources] == ["foo-001", "orders", "orders#by-date"]
        assert [r.type for r in resources] == [
            ResourceType.REDIS_NODE,
            ResourceType.DYNAMO_TABLE,
            ResourceType.DYNAMO_GSI,
        ]

    def test_without_gsis(self):
        session = make_session(elasticache=make_elasticache(), dynamodb=make_dynamodb())
        resources = list_resources(session, include_gsis=False)
        assert [r.id for r in resources] == ["foo-001", "orders"]

    def test_skip_cache(self):
        """Skipped families never create a client."""
        session = make_session(dynamodb=make_dynamodb())
        resources = list_resources(session, include_cache=False)
        assert all(r.type != ResourceType.REDIS_NODE for r in resources)
        assert [c.args[0] for c in session.client.call_args_list] == ["dynamodb"]

    def test_skip_tables(self):
        session = make_session(elasticache=make_elasticache())
        resources = list_resources(session, include_tables=False)
        assert [r.id for r in resources] == ["foo-001"]


class TestDiscoveryErrors:
    """Listing failures abort discovery."""

    def test_api_error_is_discovery_error(self):
        dynamodb = make_dynamodb()
        dynamodb.describe_table.side_effect = ClientError(
            {"Error": {"Code": "InternalServerError", "Message": "oops"}}, "DescribeTable"
        )
        session = make_session(elasticache=make_elasticache(), dynamodb=dynamodb)

        with pytest.raises(DiscoveryError) as exc_info:
            list_resources(session)
        assert isinstance(exc_info.value.original_error, ClientError)

    def test_transport_error_is_discovery_error(self):
        elasticache = Mock()
        elasticache.get_paginator.return_value.paginate.side_effect = EndpointConnectionError(
            endpoint_url="https://elasticache.us-east-1.amazonaws.com"
        )
        session = make_session(elasticache=elasticache)

        with pytest.raises(DiscoveryError):
            list_resources(session, include_tables=False)

    def test_access_denied_is_config_error(self):
        elasticache = Mock()
        elasticache.get_paginator.return_value.paginate.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "no"}}, "DescribeCacheClusters"
        )
        session = make_session(elasticache=elasticache)

        with pytest.raises(ConfigError):
            list_resources(session)
