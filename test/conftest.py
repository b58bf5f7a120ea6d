"""
Pytest configuration and fixtures for all tests.

This file contains fixtures that are automatically available to all test files.
"""

import os
import typing

import pytest

from bizlevel_backend.dynamodb.levels_table import LevelsTable


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """
    Sets up environment variables required for all tests.

    This fixture runs once per test session and automatically applies to all tests
    (autouse=True). It sets environment variables that the application expects to be
    present at runtime.
    """
    # AWS Configuration
    os.environ["AWS_REGION"] = "us-west-1"

    # DynamoDB Table Names
    os.environ["USER_PROGRESS_TABLE_NAME"] = "test-user-progress-table"
    os.environ["LEVELS_TABLE_NAME"] = "test-levels-table"
    os.environ["ARTIFACTS_TABLE_NAME"] = "test-artifacts-table"
    os.environ["TEST_RESULTS_TABLE_NAME"] = "test-test-results-table"
    os.environ["USER_PROFILE_TABLE_NAME"] = "test-user-profile-table"

    # Fail fast against the mocked store
    os.environ["STORE_MAX_ATTEMPTS"] = "1"

    # Embedded metrics are printed to stdout instead of being sent to an agent
    os.environ["AWS_EMF_ENVIRONMENT"] = "Local"

    yield


@pytest.fixture(autouse=True)
def clear_catalog_cache() -> typing.Iterator[None]:
    """The level catalog is cached per container; every test starts from an empty cache."""
    LevelsTable.clear_cache()
    yield
    LevelsTable.clear_cache()


@pytest.fixture(scope="function")
def aws_credentials() -> typing.Iterator[None]:
    """
    Mocks AWS credentials for moto (AWS mocking library).

    This fixture is used by DynamoDB table tests that use the mock_aws context manager
    from moto. It sets fake AWS credentials that moto expects.
    """
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-west-1"
    yield
    # Clean up after each test
    del os.environ["AWS_ACCESS_KEY_ID"]
    del os.environ["AWS_SECRET_ACCESS_KEY"]
    del os.environ["AWS_SECURITY_TOKEN"]
    del os.environ["AWS_SESSION_TOKEN"]
    del os.environ["AWS_DEFAULT_REGION"]
