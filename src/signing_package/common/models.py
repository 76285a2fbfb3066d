"""Data models for signing package assembly."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Mapping, Optional

from .exceptions import InvalidManifestEntryError
from .safe_log import safe_log

LENDER_PREFIX = "LENDER_"
UPLOAD_PREFIX = "UPLOAD_"
FIELD_MAP_WRAPPER_KEY = "__default"


class PackageType(str, Enum):
    """Package flavours selectable by the broker."""
    STANDARD = "standard"
    HELOC = "heloc"

    @classmethod
    def parse(cls, value: "str | PackageType | None") -> "PackageType":
        """Normalize a free-text package type ("Standard", " HELOC ")."""
        if isinstance(value, PackageType):
            return value
        normalized = (value or "").strip().lower()
        if not normalized:
            return cls.STANDARD
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(
                f"Unknown package type: {value!r} (expected one of {[p.value for p in cls]})"
            ) from None


class HeaderKey(str, Enum):
    """Section header pages inside the header-source document."""
    WMB = "WMB"
    MPP_OR_PROSPR = "MPP_OR_PROSPR"
    COMMITMENT = "COMMITMENT"
    COB = "COB"
    FORM10 = "FORM10"
    APPLICATION = "APPLICATION"

    @property
    def page_number(self) -> int:
        """1-based page index into the header-source document."""
        return _HEADER_PAGES[self]


_HEADER_PAGES = {
    HeaderKey.WMB: 1,
    HeaderKey.MPP_OR_PROSPR: 2,
    HeaderKey.COMMITMENT: 3,
    HeaderKey.COB: 4,
    HeaderKey.FORM10: 5,
    HeaderKey.APPLICATION: 6,
}


class UploadSlot(str, Enum):
    """Named slots for documents the broker uploads with the build request."""
    COMMITMENT = "UPLOAD_Commitment.pdf"
    APPLICATION = "UPLOAD_Application.pdf"
    INSURANCE = "UPLOAD_MPP.pdf"  # mortgage protection plan, alternate to the fallback template
    TD_APA = "UPLOAD_APA_TD.pdf"

    @property
    def required(self) -> bool:
        return self in (UploadSlot.COMMITMENT, UploadSlot.APPLICATION)

    @property
    def label(self) -> str:
        return _UPLOAD_LABELS[self]

    @classmethod
    def parse(cls, value: "str | UploadSlot") -> "UploadSlot":
        if isinstance(value, UploadSlot):
            return value
        text = str(value).strip()
        for slot in cls:
            if text == slot.value or text.upper() == slot.name:
                return slot
        raise ValueError(f"Unknown upload slot: {value!r}")


_UPLOAD_LABELS = {
    UploadSlot.COMMITMENT: "Commitment",
    UploadSlot.APPLICATION: "Mortgage Application",
    UploadSlot.INSURANCE: "Mortgage Protection Plan",
    UploadSlot.TD_APA: "TD Authorization (APA)",
}


class DocumentKind(str, Enum):
    """Shapes a manifest sequence entry can take."""
    STATIC = "static"
    LENDER_PATTERN = "lender_pattern"
    UPLOAD = "upload"
    ALTERNATE_PAIR = "alternate_pair"


class ConditionType(str, Enum):
    LENDER_HAS = "lender_has"
    PACKAGE_IS = "package_is"


@dataclass(frozen=True)
class Condition:
    """Gate on a manifest entry: lender-has-code X or package-type-is Y."""

    type: ConditionType
    value: str

    @classmethod
    def parse(cls, raw: str) -> "Condition":
        """Parse ``lender_has_TD`` / ``package_is_HELOC`` style strings."""
        text = (raw or "").strip()
        for condition_type in ConditionType:
            prefix = condition_type.value + "_"
            if text.lower().startswith(prefix) and len(text) > len(prefix):
                value = text[len(prefix):]
                if condition_type == ConditionType.PACKAGE_IS:
                    value = PackageType.parse(value).value
                else:
                    value = value.upper()
                return cls(condition_type, value)
        raise ValueError(f"Unknown condition: {raw!r}")

    def __str__(self) -> str:
        return f"{self.type.value}_{self.value.upper()}"


@dataclass
class DocumentSpec:
    """One entry of the manifest sequence."""

    kind: DocumentKind
    document: str  # template reference, LENDER_ pattern or upload slot id
    header: Optional[HeaderKey] = None
    no_header: bool = False
    optional: bool = False
    condition: Optional[Condition] = None
    disclosure: bool = False
    upload_slot: Optional[UploadSlot] = None
    fallback: Optional[str] = None  # alternate-pair template override

    @property
    def emits_header(self) -> bool:
        return self.header is not None and not self.no_header

    @property
    def lender_suffix(self) -> str:
        return self.document[len(LENDER_PREFIX):]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], index: int | None = None) -> "DocumentSpec":
        """Create from a manifest sequence entry.

        Raises:
            InvalidManifestEntryError: If the entry shape is not recognized
        """
        if not isinstance(data, Mapping):
            raise InvalidManifestEntryError(f"Manifest entry {index} is not an object", index)

        document = data.get("document", data.get("doc"))
        document = str(document).strip() if document else ""

        condition = None
        if data.get("condition"):
            try:
                condition = Condition.parse(str(data["condition"]))
            except ValueError as e:
                raise InvalidManifestEntryError(
                    f"Manifest entry {index}: {e}", index, cause=e
                ) from e

        header = None
        raw_header = data.get("header")
        if raw_header:
            try:
                header = HeaderKey(str(raw_header).strip().upper())
            except ValueError:
                safe_log("Ignoring unknown header key", index=index, header=raw_header)

        alt_pair = bool(
            data.get("altPair") or data.get("alt_pair")
            or data.get("doc_if_upload") or data.get("doc_if_missing")
        )

        spec = cls(
            kind=DocumentKind.STATIC,
            document=document,
            header=header,
            no_header=bool(data.get("noHeader", data.get("no_header", False))),
            optional=bool(data.get("optional", False)),
            condition=condition,
            disclosure=bool(data.get("disclosure", False)),
        )

        try:
            if alt_pair:
                upload_ref = data.get("doc_if_upload") or (
                    document if document.startswith(UPLOAD_PREFIX) else UploadSlot.INSURANCE
                )
                spec.kind = DocumentKind.ALTERNATE_PAIR
                spec.upload_slot = UploadSlot.parse(upload_ref)
                spec.fallback = data.get("doc_if_missing") or None
                spec.document = spec.document or spec.upload_slot.value
            elif not document:
                raise ValueError("missing document reference")
            elif document.startswith(UPLOAD_PREFIX):
                spec.kind = DocumentKind.UPLOAD
                spec.upload_slot = UploadSlot.parse(document)
            elif document.startswith(LENDER_PREFIX):
                if not document[len(LENDER_PREFIX):]:
                    raise ValueError("empty lender document suffix")
                spec.kind = DocumentKind.LENDER_PATTERN
        except ValueError as e:
            raise InvalidManifestEntryError(f"Manifest entry {index}: {e}", index, cause=e) from e

        return spec


@dataclass
class SingleSpec:
    """A document produced by the editable-singles build."""

    document: str
    name: str
    lender_specific: bool = False
    optional: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SingleSpec":
        lender_specific = bool(data.get("lenderSpecific", data.get("lender_specific", False)))
        return cls(
            document=str(data["document"]),
            name=str(data.get("name") or data["document"]),
            lender_specific=lender_specific,
            optional=bool(data.get("optional", lender_specific)),
        )


DEFAULT_SINGLES = (
    SingleSpec("KYC_IDV_Template.pdf", "Identification Verification.pdf", optional=False),
    SingleSpec("FCT_Auth.pdf", "FCT Authorization.pdf", lender_specific=True),
    SingleSpec("Gift_Letter.pdf", "Gift Letter.pdf", lender_specific=True),
)


@dataclass
class Manifest:
    """Ordered package definition plus its header and fallback references."""

    header_source: str
    fallback_document: str
    sequence: list[DocumentSpec] = field(default_factory=list)
    singles: list[SingleSpec] = field(default_factory=lambda: list(DEFAULT_SINGLES))
    invalid_entries: list[InvalidManifestEntryError] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Manifest":
        """Create from manifest JSON, skipping entries with unrecognized shapes."""
        sequence: list[DocumentSpec] = []
        invalid: list[InvalidManifestEntryError] = []
        for index, entry in enumerate(data.get("sequence") or []):
            try:
                sequence.append(DocumentSpec.from_dict(entry, index))
            except InvalidManifestEntryError as e:
                safe_log("Skipping invalid manifest entry", index=index, error=e.message)
                invalid.append(e)

        singles_data = data.get("singles")
        singles = (
            [SingleSpec.from_dict(s) for s in singles_data]
            if singles_data else list(DEFAULT_SINGLES)
        )

        return cls(
            header_source=str(data.get("headerSource") or data.get("headers_pdf") or ""),
            fallback_document=str(
                data.get("fallbackDocument") or data.get("prospr_fallback") or ""
            ),
            sequence=sequence,
            singles=singles,
            invalid_entries=invalid,
        )


@dataclass
class FieldMap:
    """Global record-key to template-field mapping shared by every template."""

    mappings: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "FieldMap":
        """Accept a flat mapping or one wrapped under ``__default``."""
        if not data:
            return cls()
        inner = data.get(FIELD_MAP_WRAPPER_KEY, data)
        if not isinstance(inner, Mapping):
            raise ValueError(f"Field map '{FIELD_MAP_WRAPPER_KEY}' entry must be an object")
        return cls({str(k): str(v) for k, v in inner.items() if v not in (None, "")})

    def items(self) -> Iterator[tuple[str, str]]:
        return iter(self.mappings.items())

    def __len__(self) -> int:
        return len(self.mappings)


class PartSource(str, Enum):
    """Where a page-bearing blob in the assembled package came from."""
    HEADER = "header"
    UPLOAD = "upload"
    FILLED = "filled"
    STATIC = "static"


@dataclass
class PackagePart:
    """One page-bearing blob in sequencer order."""

    label: str
    content: bytes
    source: PartSource

    @property
    def filled(self) -> bool:
        return self.source == PartSource.FILLED


@dataclass
class NamedDocument:
    """Output artifact: file name plus bytes."""

    name: str
    content: bytes

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "size": len(self.content)}


class SlotStatus(str, Enum):
    """Per-entry sequencing outcome."""
    EMITTED = "EMITTED"
    FALLBACK = "FALLBACK"  # template emitted unfilled after a fill failure
    SKIPPED_CONDITION = "SKIPPED_CONDITION"
    SKIPPED_MISSING = "SKIPPED_MISSING"  # optional document or upload absent


@dataclass
class SlotOutcome:
    """Trace of what one manifest entry contributed."""

    index: int
    document: str
    status: SlotStatus
    parts: int = 0
    reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "document": self.document,
            "status": self.status.value,
            "parts": self.parts,
            "reason": self.reason,
        }
