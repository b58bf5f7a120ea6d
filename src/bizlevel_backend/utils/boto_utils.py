import typing

import boto3
from botocore.config import Config

from bizlevel_backend.utils.aws_env_vars import get_aws_region, get_store_max_attempts


def get_retry_config() -> Config:
    """
    botocore's "standard" retry mode retries throttling and transient service/network
    errors with exponential backoff and jitter. Conditional check failures are never retried.
    """
    return Config(retries={"max_attempts": get_store_max_attempts(), "mode": "standard"})


def get_dynamodb_resource() -> typing.Any:
    return boto3.resource("dynamodb", region_name=get_aws_region(), config=get_retry_config())
