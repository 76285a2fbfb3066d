"""Template and configuration sources.

Templates (``*.pdf``) and configuration (manifest and field map JSON) live
either in local directories or under two prefixes of one S3 bucket.
Retrieval failures are mapped onto the package error hierarchy so the
sequencer can tell "absent" from "broken".
"""

import json
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, Optional, Protocol

from botocore.exceptions import ClientError

from ..common.aws_clients import get_s3_client
from ..common.config import Settings
from ..common.exceptions import TemplateFetchError, TemplateNotFoundError
from ..common.safe_log import safe_log

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


class TemplateSource(Protocol):
    """Byte retrieval boundary for templates and configuration."""

    def fetch(self, name: str) -> bytes:
        ...

    def try_fetch(self, name: str) -> Optional[bytes]:
        ...

    def load_json(self, name: str) -> Any:
        ...


class _BaseSource:
    """Shared ``try_fetch``/``load_json`` on top of ``fetch``/``fetch_config``."""

    storage_type = ""

    def fetch(self, name: str) -> bytes:
        raise NotImplementedError

    def fetch_config(self, name: str) -> bytes:
        raise NotImplementedError

    def try_fetch(self, name: str) -> Optional[bytes]:
        """Fetch a template, returning None when it does not exist."""
        try:
            return self.fetch(name)
        except TemplateNotFoundError:
            return None

    def load_json(self, name: str) -> Any:
        """Load a configuration JSON object.

        Raises:
            TemplateNotFoundError: If the object does not exist
            TemplateFetchError: If it cannot be read or is not valid JSON
        """
        raw = self.fetch_config(name)
        try:
            return json.loads(raw.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise TemplateFetchError(
                f"Invalid JSON in {name}: {e}", name, self.storage_type, e
            ) from e


class LocalTemplateSource(_BaseSource):
    """Templates and configuration read from local directories."""

    storage_type = "local"

    def __init__(self, template_dir: str, config_dir: Optional[str] = None):
        self.template_dir = template_dir
        self.config_dir = config_dir or template_dir

    def _read(self, directory: str, name: str) -> bytes:
        path = os.path.join(directory, name)
        try:
            with open(path, "rb") as f:
                return f.read()
        except FileNotFoundError as e:
            raise TemplateNotFoundError(name, e) from e
        except OSError as e:
            raise TemplateFetchError(
                f"Failed to read {path}: {e}", name, self.storage_type, e
            ) from e

    def fetch(self, name: str) -> bytes:
        return self._read(self.template_dir, name)

    def fetch_config(self, name: str) -> bytes:
        return self._read(self.config_dir, name)


class S3TemplateSource(_BaseSource):
    """Templates and configuration read from an S3 bucket."""

    storage_type = "s3"

    def __init__(
        self,
        bucket: str,
        template_prefix: str = "templates/",
        config_prefix: str = "config/",
        s3_client: Any = None,
    ):
        self.bucket = bucket
        self.template_prefix = template_prefix
        self.config_prefix = config_prefix
        self._s3 = s3_client

    @property
    def s3(self) -> Any:
        if self._s3 is None:
            self._s3 = get_s3_client()
        return self._s3

    def _get(self, key: str, name: str) -> bytes:
        try:
            response = self.s3.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code in _NOT_FOUND_CODES:
                raise TemplateNotFoundError(name, e) from e
            raise TemplateFetchError(
                f"S3 error fetching s3://{self.bucket}/{key} ({error_code})",
                name,
                self.storage_type,
                e,
            ) from e

    def fetch(self, name: str) -> bytes:
        return self._get(f"{self.template_prefix}{name}", name)

    def fetch_config(self, name: str) -> bytes:
        return self._get(f"{self.config_prefix}{name}", name)


def get_template_source(settings: Settings) -> _BaseSource:
    """Pick the S3 source when a template bucket is configured."""
    if settings.uses_s3:
        return S3TemplateSource(
            settings.template_bucket, settings.template_prefix, settings.config_prefix
        )
    return LocalTemplateSource(settings.template_dir, settings.config_dir)


def prefetch(
    source: TemplateSource, names: Iterable[str], workers: int = 8
) -> dict[str, Optional[bytes]]:
    """Retrieve templates concurrently.

    Names are deduplicated; absent templates map to None. Any other
    retrieval error propagates.
    """
    unique = list(dict.fromkeys(n for n in names if n))
    if not unique:
        return {}

    safe_log("Prefetching templates", count=len(unique), workers=workers)
    with ThreadPoolExecutor(max_workers=max(1, min(workers, len(unique)))) as executor:
        return dict(zip(unique, executor.map(source.try_fetch, unique)))
