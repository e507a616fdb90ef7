"""Shared fixtures for integration tests against a real DynamoDB table.

All integration tests are skipped unless the required environment variables
are set. This allows the test suite to run in CI without credentials while
supporting local testing against a real table (or DynamoDB Local).

Required env vars:
    DYNAMODB_TABLE          Table with partition key ``session_id`` (S)

Optional env vars:
    DYNAMODB_ENDPOINT       e.g. http://localhost:8000 for DynamoDB Local
    AWS_REGION              defaults to us-west-2
"""

from __future__ import annotations

import os

import pytest

from generic_session.config import Settings, override_settings
from generic_session.session import DynamoDBSessionBackend

pytestmark = pytest.mark.integration


@pytest.fixture(scope="session")
def dynamodb_env():
    """Return DynamoDB env vars or skip."""
    table = os.environ.get("DYNAMODB_TABLE")
    if not table:
        pytest.skip("Integration tests require DYNAMODB_TABLE")
    return {
        "table": table,
        "endpoint": os.environ.get("DYNAMODB_ENDPOINT", ""),
        "region": os.environ.get("AWS_REGION", "us-west-2"),
    }


@pytest.fixture
def real_backend(dynamodb_env):
    return DynamoDBSessionBackend(
        table_name=dynamodb_env["table"],
        endpoint_url=dynamodb_env["endpoint"],
        region_name=dynamodb_env["region"],
    )


@pytest.fixture
def real_settings(dynamodb_env):
    """Settings pointing the demo app at the real table."""
    s = Settings(
        session_secret="integration-test-secret",
        session_backend="dynamodb",
        dynamodb_table=dynamodb_env["table"],
        dynamodb_endpoint=dynamodb_env["endpoint"],
        aws_region=dynamodb_env["region"],
    )
    override_settings(s)
    return s
