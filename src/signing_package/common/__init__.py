"""Common models, settings and errors shared across the package builder."""

from .aws_clients import get_s3_client
from .config import Settings, get_settings
from .models import (
    Condition,
    DocumentKind,
    DocumentSpec,
    FieldMap,
    HeaderKey,
    Manifest,
    NamedDocument,
    PackagePart,
    PackageType,
    UploadSlot,
)
from .exceptions import (
    PackageBuildError,
    MissingRecordError,
    MissingUploadError,
    MissingDocumentError,
    TemplateUnfillableError,
    NoFieldsFilledError,
    InvalidManifestEntryError,
    TemplateNotFoundError,
    TemplateFetchError,
)
from .safe_log import safe_log

__all__ = [
    "get_s3_client",
    "Settings",
    "get_settings",
    "Condition",
    "DocumentKind",
    "DocumentSpec",
    "FieldMap",
    "HeaderKey",
    "Manifest",
    "NamedDocument",
    "PackagePart",
    "PackageType",
    "UploadSlot",
    "PackageBuildError",
    "MissingRecordError",
    "MissingUploadError",
    "MissingDocumentError",
    "TemplateUnfillableError",
    "NoFieldsFilledError",
    "InvalidManifestEntryError",
    "TemplateNotFoundError",
    "TemplateFetchError",
    "safe_log",
]
