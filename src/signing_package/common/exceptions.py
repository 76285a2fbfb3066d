"""Custom exceptions for signing package assembly."""


class PackageBuildError(Exception):
    """Base exception for package build errors."""

    def __init__(self, message: str, reference: str | None = None, cause: Exception | None = None):
        self.message = message
        self.reference = reference
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "reference": self.reference,
            "cause": str(self.cause) if self.cause else None,
        }


class MissingRecordError(PackageBuildError):
    """No CRM record payload was available at build time."""

    def __init__(self, message: str = "No record payload. Paste JSON or relaunch from CRM."):
        super().__init__(message)


class MissingUploadError(PackageBuildError):
    """A required upload slot was not supplied."""

    def __init__(self, slot: str, label: str | None = None):
        super().__init__(f"{label or slot} is required.", reference=slot)
        self.slot = slot


class MissingDocumentError(PackageBuildError):
    """A required template (static or lender-specific) could not be resolved."""

    def __init__(self, reference: str, message: str | None = None, cause: Exception | None = None):
        super().__init__(message or f"Missing required document: {reference}", reference, cause)


class TemplateUnfillableError(PackageBuildError):
    """Template has no fillable fields or could not be parsed."""
    pass


class NoFieldsFilledError(PackageBuildError):
    """Field map was applied but no destination field was touched."""

    def __init__(
        self,
        message: str,
        reference: str | None = None,
        failed_fields: list[str] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, reference, cause)
        self.failed_fields = failed_fields or []

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = super().to_dict()
        result["failedFields"] = self.failed_fields
        return result


class InvalidManifestEntryError(PackageBuildError):
    """A manifest sequence entry has an unrecognized shape."""

    def __init__(self, message: str, index: int | None = None, cause: Exception | None = None):
        super().__init__(message, None, cause)
        self.index = index

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = super().to_dict()
        result["index"] = self.index
        return result


class TemplateNotFoundError(PackageBuildError):
    """Template or configuration object does not exist in the source."""

    def __init__(self, reference: str, cause: Exception | None = None):
        super().__init__(f"Template not found: {reference}", reference, cause)


class TemplateFetchError(PackageBuildError):
    """Template source failed for a reason other than absence."""

    def __init__(
        self,
        message: str,
        reference: str | None = None,
        storage_type: str | None = None,  # "local" or "s3"
        cause: Exception | None = None,
    ):
        super().__init__(message, reference, cause)
        self.storage_type = storage_type
