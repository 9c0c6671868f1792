#!/usr/bin/env python3
"""
s3_uploader.py
==============
Upload a finished package to the SugarCRM import bucket.

The bucket table below is the only place bucket identifiers are resolved;
``us``, ``eu`` and ``au`` currently point at the same bucket and region.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from pack_credentials import Credentials
from pack_errors import ConfigError, UploadError

S3_BUCKETS: Dict[str, Dict[str, str]] = {
    "us": {"bucket": "sugarcrm-ms-imports-usw2-dev", "region": "us-west-2"},
    "eu": {"bucket": "sugarcrm-ms-imports-usw2-dev", "region": "us-west-2"},
    "au": {"bucket": "sugarcrm-ms-imports-usw2-dev", "region": "us-west-2"},
}


def resolve_bucket(name: str) -> Tuple[str, str]:
    """Return ``(bucket, region)`` for a bucket identifier."""
    row = S3_BUCKETS.get(name)
    if row is None:
        raise ConfigError(f"'{name}' is not a valid S3 bucket, could not upload package.")
    return row["bucket"], row["region"]


def _get_s3_client(region: str, credentials: Credentials):
    return boto3.client(
        "s3",
        region_name=region,
        aws_access_key_id=credentials.key,
        aws_secret_access_key=credentials.secret,
        aws_session_token=credentials.token,
        config=BotoConfig(retries={"max_attempts": 3, "mode": "standard"}),
    )


class S3Uploader:
    def __init__(self, credentials: Credentials, client_factory: Optional[Callable[[str, Credentials], Any]] = None):
        self.credentials = credentials
        self._client_factory = client_factory if client_factory is not None else _get_s3_client

    def put_object(
        self,
        bucket: str,
        region: str,
        key: str,
        source_file: Path,
        metadata: Dict[str, str],
    ) -> Dict[str, Optional[str]]:
        source_file = Path(source_file)
        try:
            s3 = self._client_factory(region, self.credentials)
            with source_file.open("rb") as body:
                response = s3.put_object(Bucket=bucket, Key=key, Body=body, Metadata=metadata)
        except (ClientError, BotoCoreError) as exc:
            raise UploadError(str(exc)) from exc
        except OSError as exc:
            raise UploadError(f"could not read package {source_file}: {exc}") from exc
        return {
            "ETag": response.get("ETag"),
            "Expiration": response.get("Expiration"),
        }
