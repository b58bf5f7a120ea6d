import os

DEFAULT_STORE_MAX_ATTEMPTS = 4
DEFAULT_CATALOG_CACHE_TTL_SECONDS = 300


def _get_resource_by_env_var(env_var: str) -> str:
    table_name = os.environ.get(env_var)
    if not table_name:
        raise ValueError(f"Missing environment variable: {env_var}")
    return table_name


def _get_int_env_var(env_var: str, default: int) -> int:
    value = os.environ.get(env_var)
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise ValueError(f"Environment variable {env_var} must be an integer, got: {value}")
    if parsed < 0:
        raise ValueError(f"Environment variable {env_var} must not be negative, got: {value}")
    return parsed


def get_aws_region() -> str:
    return _get_resource_by_env_var("AWS_REGION")


def get_user_progress_table_name() -> str:
    return _get_resource_by_env_var("USER_PROGRESS_TABLE_NAME")


def get_levels_table_name() -> str:
    return _get_resource_by_env_var("LEVELS_TABLE_NAME")


def get_artifacts_table_name() -> str:
    return _get_resource_by_env_var("ARTIFACTS_TABLE_NAME")


def get_test_results_table_name() -> str:
    return _get_resource_by_env_var("TEST_RESULTS_TABLE_NAME")


def get_user_profile_table_name() -> str:
    return _get_resource_by_env_var("USER_PROFILE_TABLE_NAME")


def get_store_max_attempts() -> int:
    """
    Total attempts (first call included) botocore makes for a DynamoDB request
    before giving up on a transient failure. Defaults to 4 if not set.
    """
    return max(1, _get_int_env_var("STORE_MAX_ATTEMPTS", DEFAULT_STORE_MAX_ATTEMPTS))


def get_catalog_cache_ttl_seconds() -> int:
    return _get_int_env_var("CATALOG_CACHE_TTL_SECONDS", DEFAULT_CATALOG_CACHE_TTL_SECONDS)
