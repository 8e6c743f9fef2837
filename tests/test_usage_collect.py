"""
End-to-end tests for usage_collect.py.

Covers:
- Full run against moto (STS, DynamoDB) with mocked ElastiCache/CloudWatch
- results.csv shape: one row per resource, correct types and metric names
- Partial failure: a failing resource still gets a row
- main() exit codes
"""
import csv
import json
import os
import sys
from unittest.mock import Mock

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import usage_collect
from usage_analyzer.config import CollectorConfig
from usage_analyzer.constants import CACHE_METRICS_TO_GET, DDB_TABLE_METRICS_TO_GET
from usage_analyzer.utils import ConfigError, DiscoveryError


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def aws_credentials(monkeypatch):
    """Mocked AWS Credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def quiet_logging(monkeypatch):
    """Keep main() from replacing pytest's log handlers."""
    monkeypatch.setattr(usage_collect, "setup_logging", lambda *a, **kw: None)


class FakeSession:
    """
    Session stand-in: real moto-backed clients for STS/DynamoDB and
    canned mocks for the services moto is not used for here.
    """

    def __init__(self, elasticache, cloudwatch, region="us-east-1"):
        self.region_name = region
        self._mocked = {"elasticache": elasticache, "cloudwatch": cloudwatch}

    def client(self, service_name, region_name=None, config=None):
        if service_name in self._mocked:
            return self._mocked[service_name]
        return boto3.client(service_name, region_name=region_name or self.region_name, config=config)


def elasticache_with(clusters):
    client = Mock()
    client.get_paginator.return_value.paginate.return_value = [{"CacheClusters": clusters}]
    return client


def cloudwatch_responding(fail_for=()):
    """CloudWatch mock returning two datapoints per query, failing for some dimension values."""
    def respond(**kwargs):
        queries = kwargs["MetricDataQueries"]
        dims = {d["Value"] for d in queries[0]["MetricStat"]["Metric"]["Dimensions"]}
        if dims & set(fail_for):
            raise ClientError({"Error": {"Code": "InternalFailure", "Message": "boom"}}, "GetMetricData")
        return {"MetricDataResults": [{"Id": q["Id"], "Values": [1.0, 2.0]} for q in queries]}

    client = Mock()
    client.get_metric_data.side_effect = respond
    return client


def create_table(name):
    boto3.client("dynamodb", region_name="us-east-1").create_table(
        TableName=name,
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "pk", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )


def read_rows(output_dir):
    with open(os.path.join(output_dir, "results.csv"), newline="") as f:
        return list(csv.DictReader(f))


REDIS_CLUSTERS = [
    {"CacheClusterId": "foo-001", "ReplicationGroupId": "foo", "Engine": "redis", "CacheNodeType": "cache.t3.micro"},
    {"CacheClusterId": "foo-002", "ReplicationGroupId": "foo", "Engine": "redis", "CacheNodeType": "cache.t3.micro"},
]
MEMCACHED_CLUSTER = {
    "CacheClusterId": "mc",
    "Engine": "memcached",
    "CacheNodeType": "cache.t3.micro",
    "CacheNodes": [{"CacheNodeId": "0001", "CustomerAvailabilityZone": "us-east-1a"}],
}


# =============================================================================
# End-to-end Tests
# =============================================================================

class TestRunCollection:
    """Full collection runs."""

    @mock_aws
    def test_cache_and_table_inventory(self, aws_credentials, tmp_path):
        """2 Redis nodes, 1 Memcached node and 1 table give 4 rows."""
        create_table("orders")
        session = FakeSession(
            elasticache_with(REDIS_CLUSTERS + [MEMCACHED_CLUSTER]),
            cloudwatch_responding(),
        )
        config = CollectorConfig(region="us-east-1", output=str(tmp_path))

        result = usage_collect.run_collection(config, session=session)

        assert result.succeeded == 4
        rows = read_rows(tmp_path)
        assert [r["ResourceId"] for r in rows] == ["foo-001", "foo-002", "0001", "orders"]
        assert [r["Type"] for r in rows] == [
            "AWS::Elasticache::RedisNode",
            "AWS::Elasticache::RedisNode",
            "AWS::Elasticache::MemcachedNode",
            "AWS::DynamoDB::Table",
        ]

        cache_names = {n.lower() for names in CACHE_METRICS_TO_GET.values() for n in names}
        table_names = {n.lower() for names in DDB_TABLE_METRICS_TO_GET.values() for n in names}
        for row in rows[:3]:
            metrics = json.loads(row["Metrics"])
            assert {m["name"] for m in metrics} <= cache_names
            assert all(m["values"] == [1.0, 2.0] for m in metrics)

        table_data = json.loads(rows[3]["AdditionalData"])
        assert table_data["ttl_enabled"] == "false"
        assert {m["name"] for m in json.loads(rows[3]["Metrics"])} <= table_names
        assert json.loads(rows[2]["AdditionalData"])["cluster_id"] == "mc"

    @mock_aws
    def test_partial_failure_keeps_every_row(self, aws_credentials, tmp_path):
        """B's metrics fail; A, B and C are all written, B without metrics."""
        for name in ("A", "B", "C"):
            create_table(name)
        session = FakeSession(elasticache_with([]), cloudwatch_responding(fail_for=("B",)))
        config = CollectorConfig(region="us-east-1", output=str(tmp_path), json_output=True)

        result = usage_collect.run_collection(config, session=session)

        assert list(result.failed) == ["B"]
        rows = {r["ResourceId"]: r for r in read_rows(tmp_path)}
        assert set(rows) == {"A", "B", "C"}
        assert json.loads(rows["B"]["Metrics"]) == []
        assert json.loads(rows["A"]["Metrics"])
        assert json.loads(rows["C"]["Metrics"])
        assert os.path.exists(tmp_path / "results.json")

    @mock_aws
    def test_empty_account(self, aws_credentials, tmp_path):
        """Nothing to collect still writes a header-only report."""
        session = FakeSession(elasticache_with([]), cloudwatch_responding())
        config = CollectorConfig(region="us-east-1", output=str(tmp_path))

        result = usage_collect.run_collection(config, session=session)

        assert result.total == 0
        assert read_rows(tmp_path) == []
        with open(tmp_path / "results.csv") as f:
            assert f.readline().strip() == "ResourceId,Type,AdditionalData,Metrics"

    def test_missing_region(self, tmp_path):
        session = FakeSession(Mock(), Mock(), region=None)
        with pytest.raises(ConfigError):
            usage_collect.run_collection(CollectorConfig(output=str(tmp_path)), session=session)


# =============================================================================
# CLI Tests
# =============================================================================

class TestMain:
    """Exit codes from main()."""

    @pytest.fixture(autouse=True)
    def isolated(self, monkeypatch, tmp_path, quiet_logging):
        monkeypatch.chdir(tmp_path)
        for var in ("USAGE_PROFILE", "USAGE_REGION", "USAGE_OUTPUT", "AWS_PROFILE"):
            monkeypatch.delenv(var, raising=False)

    def test_generate_config(self, capsys):
        assert usage_collect.main(["--generate-config"]) == 0
        assert "max_concurrency: 3" in capsys.readouterr().out

    def test_missing_config_file(self, capsys):
        assert usage_collect.main(["--config", "/nonexistent/usage.yaml"]) == 1
        assert "error:" in capsys.readouterr().err

    def test_discovery_failure(self, monkeypatch, capsys):
        def fail(config):
            raise DiscoveryError("Failed to discover dynamodb resources: boom")

        monkeypatch.setattr(usage_collect, "run_collection", fail)
        assert usage_collect.main(["--region", "us-east-1"]) == 1
        assert "boom" in capsys.readouterr().err

    def test_success(self, monkeypatch):
        seen = {}

        def succeed(config):
            seen["config"] = config

        monkeypatch.setattr(usage_collect, "run_collection", succeed)
        assert usage_collect.main(["--region", "eu-west-1", "--max-concurrency", "2", "--no-gsis"]) == 0
        assert seen["config"].region == "eu-west-1"
        assert seen["config"].max_concurrency == 2
        assert seen["config"].include_gsis is False
