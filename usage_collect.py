#!/usr/bin/env python3
"""
AWS Usage Analyzer - ElastiCache / DynamoDB usage collector

Inventories ElastiCache nodes and DynamoDB tables (plus their global
secondary indexes) in one account/region and pulls 30 days of daily
CloudWatch metrics for each, writing results.csv for offline capacity
analysis.

Usage:
    python3 usage_collect.py
    python3 usage_collect.py --profile prod --region us-east-1
    python3 usage_collect.py --output ./usage --json

    # Speed is bounded by cloudwatch:GetMetricData limits; only raise this
    # if the account's limits have been increased
    python3 usage_collect.py --max-concurrency 6
"""
import argparse
import logging
import os
import sys
from typing import List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, ProfileNotFound

from usage_analyzer.config import CollectorConfig, generate_sample_config, load_config
from usage_analyzer.constants import RESULTS_CSV_FILENAME, RESULTS_JSON_FILENAME
from usage_analyzer.discovery import build_client_config, get_client, list_resources
from usage_analyzer.models import ResourceSummary, ResourceType
from usage_analyzer.report import write_results_csv, write_results_json
from usage_analyzer.scheduler import ScheduleResult, collect_metrics
from usage_analyzer.utils import (
    CollectorError,
    ConfigError,
    FetchProgress,
    check_and_raise_auth_error,
    setup_logging,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Session Management
# =============================================================================

def get_session(profile: Optional[str] = None, region: Optional[str] = None) -> boto3.Session:
    """Create boto3 session from the named profile or the default credential chain."""
    try:
        return boto3.Session(profile_name=profile, region_name=region)
    except ProfileNotFound as e:
        raise ConfigError(f"AWS profile not found: {profile}", original_error=e) from e


def get_account_id(session: boto3.Session, config=None) -> str:
    """
    Get AWS account ID, which doubles as a credential check.

    Raises:
        ConfigError: If credentials or region cannot be resolved
    """
    try:
        sts = get_client(session, 'sts', config=config)
        return sts.get_caller_identity()['Account']
    except (ClientError, BotoCoreError) as e:
        check_and_raise_auth_error(e, "call sts:GetCallerIdentity")
        raise ConfigError(f"Could not verify AWS credentials: {e}", original_error=e) from e


def count_by_type(resources: List[ResourceSummary], *types: ResourceType) -> int:
    return sum(1 for r in resources if r.type in types)


# =============================================================================
# Collection
# =============================================================================

def run_collection(config: CollectorConfig, session: Optional[boto3.Session] = None) -> ScheduleResult:
    """
    Discover resources, collect their metrics and write the report.

    Raises:
        ConfigError: Credentials/region could not be resolved
        DiscoveryError: Listing resources failed
        WriteError: The report could not be written
    """
    if session is None:
        session = get_session(config.profile, config.region)
    if not (config.region or session.region_name):
        raise ConfigError("No AWS region configured. Use --region or set AWS_DEFAULT_REGION.")

    client_config = build_client_config(config.max_attempts)
    account_id = get_account_id(session, client_config)
    region = config.region or session.region_name
    logger.info(f"Collecting from account {account_id} in {region}")

    print("Starting AWS Usage Collector")
    print("-----------------------------------")
    print()

    resources = list_resources(
        session,
        region=config.region,
        config=client_config,
        include_cache=not config.skip_cache,
        include_tables=not config.skip_tables,
        include_gsis=config.include_gsis,
    )

    cache_nodes = count_by_type(resources, ResourceType.REDIS_NODE, ResourceType.MEMCACHED_NODE)
    tables = count_by_type(resources, ResourceType.DYNAMO_TABLE)
    indexes = count_by_type(resources, ResourceType.DYNAMO_GSI)
    print(f"Found {cache_nodes} cache nodes to collect data on.")
    print(f"Found {tables} ddb tables ({indexes} global secondary indexes) to collect data on.")
    print()
    print("Starting metrics collection on resources")
    print("Note: Please be patient if this is going slowly")
    print("Speed is limited by cloudwatch:GetMetricData api limits.")
    print("Can increase account limits in AWS Console.")
    print()

    cloudwatch = get_client(session, 'cloudwatch', config.region, client_config)
    with FetchProgress(total=len(resources)) as progress:
        result = collect_metrics(
            cloudwatch,
            resources,
            max_concurrency=config.max_concurrency,
            on_complete=progress.advance,
        )

    os.makedirs(config.output, exist_ok=True)
    csv_path = os.path.join(config.output, RESULTS_CSV_FILENAME)
    write_results_csv(resources, csv_path)
    if config.json_output:
        write_results_json(resources, os.path.join(config.output, RESULTS_JSON_FILENAME))

    if result.failed:
        logger.warning(f"{len(result.failed)} resources have incomplete metrics: {', '.join(sorted(result.failed))}")

    print()
    print(f"Finished collecting data! Please send {csv_path} for analysis")
    return result


# =============================================================================
# CLI
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='AWS Usage Analyzer - ElastiCache/DynamoDB usage collector',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Current credentials and default region
  python3 usage_collect.py

  # Named profile, explicit region, write results to a directory
  python3 usage_collect.py --profile prod --region eu-west-1 -o ./usage

  # Tables only, without GSIs
  python3 usage_collect.py --skip-cache --no-gsis
"""
    )

    parser.add_argument('--config', '-c', help='Path to YAML config file')
    parser.add_argument('--generate-config', action='store_true',
                        help='Generate a sample config file and exit')
    parser.add_argument('--profile', help='AWS profile name (default: AWS_PROFILE / default chain)')
    parser.add_argument('--region', help='AWS region (default: the profile region)')
    parser.add_argument('--output', '-o', help='Output directory (default: current directory)')
    parser.add_argument('--log-level', help='Logging level (default: INFO)')
    parser.add_argument(
        '--max-concurrency',
        type=int,
        metavar='N',
        help='Resources fetched concurrently (default: 3)'
    )
    parser.add_argument(
        '--max-attempts',
        type=int,
        metavar='N',
        help='Attempts per AWS API call before giving up (default: 20)'
    )
    parser.add_argument('--no-gsis', action='store_true',
                        help='Do not collect DynamoDB global secondary indexes')
    parser.add_argument('--skip-cache', action='store_true', help='Skip ElastiCache nodes')
    parser.add_argument('--skip-tables', action='store_true', help='Skip DynamoDB tables')
    parser.add_argument('--json', action='store_true', help='Also write results.json')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.generate_config:
        print(generate_sample_config())
        return 0

    setup_logging(args.log_level or "INFO")

    try:
        config = load_config(args)
        log_dir = config.output if config.output != '.' else None
        setup_logging(config.log_level, output_dir=log_dir)
        run_collection(config)
    except CollectorError as e:
        logger.error(str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
