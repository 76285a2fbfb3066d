"""AWS client factory functions with connection pooling."""

import boto3
from functools import lru_cache
from typing import Any


@lru_cache(maxsize=1)
def get_s3_client() -> Any:
    """Get a cached S3 client instance."""
    return boto3.client("s3")
