import os
from collections.abc import Iterator

import boto3
import pytest
from moto import mock_aws

# Ensure AWS SDK has a region and fake credentials for moto
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_SESSION_TOKEN", "testing")

PREFERENCES_TABLE = "iot_preferences"


@pytest.fixture
def aws_moto() -> Iterator[str]:
    """Mocked AWS with an empty preferences table; yields the table name."""
    with mock_aws():
        ddb = boto3.client("dynamodb")
        ddb.create_table(
            TableName=PREFERENCES_TABLE,
            AttributeDefinitions=[{"AttributeName": "pk", "AttributeType": "S"}],
            KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}],
            BillingMode="PAY_PER_REQUEST",
        )
        yield PREFERENCES_TABLE
