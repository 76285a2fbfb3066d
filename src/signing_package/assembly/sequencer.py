"""Manifest sequencer.

Walks the manifest in order and turns each entry into zero or more package
parts:

1. Condition gate (lender code / package type). A false condition skips the
   entry entirely, header included.
2. Optional section header page, cut from the header-source document.
3. The entry itself, resolved by kind: alternate pair, upload, lender
   pattern or static template.

A template that cannot be filled is emitted unfilled and the build carries
on. Missing required documents abort the build.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol

from ..common.exceptions import (
    MissingDocumentError,
    MissingUploadError,
    NoFieldsFilledError,
    TemplateUnfillableError,
)
from ..common.models import (
    Condition,
    ConditionType,
    DocumentKind,
    DocumentSpec,
    FieldMap,
    Manifest,
    PackagePart,
    PackageType,
    PartSource,
    SlotOutcome,
    SlotStatus,
    UploadSlot,
)
from ..common.safe_log import safe_log
from ..forms.mapper import FillResult, TemplateFiller
from ..lenders import is_primary_lender, lender_file_name, lender_has_code
from .pipeline import extract_page
from .sources import TemplateSource, prefetch


class Filler(Protocol):
    def fill(self, content: bytes, reference: str, disclosure: bool = False) -> FillResult:
        ...


@dataclass
class SequenceResult:
    """Ordered package parts plus a per-entry trace."""

    parts: list[PackagePart] = field(default_factory=list)
    outcomes: list[SlotOutcome] = field(default_factory=list)

    def statuses(self) -> list[SlotStatus]:
        return [o.status for o in self.outcomes]

    def to_dict(self) -> dict[str, Any]:
        return {
            "parts": [p.label for p in self.parts],
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


def condition_met(condition: Optional[Condition], lender_code: str, package_type: PackageType) -> bool:
    """Evaluate an entry's gate; entries without one always pass."""
    if condition is None:
        return True
    if condition.type == ConditionType.LENDER_HAS:
        return lender_has_code(lender_code, condition.value)
    return package_type.value == condition.value


def fill_or_static(
    filler: Filler, content: bytes, reference: str, disclosure: bool = False
) -> tuple[PackagePart, Optional[str]]:
    """Fill a template, falling back to its unfilled bytes on fill failure.

    Returns the part and, for a fallback, the fill error message.
    """
    try:
        result = filler.fill(content, reference, disclosure)
        return PackagePart(reference, result.content, PartSource.FILLED), None
    except (TemplateUnfillableError, NoFieldsFilledError) as e:
        safe_log(
            "Could not fill template, using static version",
            reference=reference,
            error=e.message,
        )
        return PackagePart(reference, content, PartSource.STATIC), e.message


def normalize_uploads(uploads: Optional[Mapping[Any, bytes]]) -> dict[UploadSlot, bytes]:
    """Key uploads by slot, dropping empty blobs and unknown slot ids."""
    normalized: dict[UploadSlot, bytes] = {}
    for key, content in (uploads or {}).items():
        try:
            slot = UploadSlot.parse(key)
        except ValueError:
            safe_log("Ignoring upload for unknown slot", slot=key)
            continue
        if content:
            normalized[slot] = content
    return normalized


class ManifestSequencer:
    """Turns a manifest plus build inputs into ordered package parts."""

    def __init__(
        self,
        source: TemplateSource,
        manifest: Manifest,
        field_map: Optional[FieldMap] = None,
        workers: int = 8,
    ):
        self.source = source
        self.manifest = manifest
        self.field_map = field_map or FieldMap()
        self.workers = workers

    def _fallback_reference(self, spec: DocumentSpec) -> str:
        return spec.fallback or self.manifest.fallback_document

    def _template_reference(
        self, spec: DocumentSpec, lender_code: str, uploads: Mapping[UploadSlot, bytes]
    ) -> Optional[str]:
        """Template an active entry will need, if any."""
        if spec.kind == DocumentKind.STATIC:
            return spec.document
        if spec.kind == DocumentKind.LENDER_PATTERN:
            return lender_file_name(lender_code, spec.lender_suffix)
        if spec.kind == DocumentKind.ALTERNATE_PAIR and spec.upload_slot not in uploads:
            return self._fallback_reference(spec)
        return None

    def _active_entries(
        self, lender_code: str, package_type: PackageType
    ) -> list[tuple[int, DocumentSpec, bool]]:
        return [
            (index, spec, condition_met(spec.condition, lender_code, package_type))
            for index, spec in enumerate(self.manifest.sequence)
        ]

    def sequence(
        self,
        record: Mapping[str, Any],
        uploads: Optional[Mapping[Any, bytes]],
        lender_code: str,
        package_type: "PackageType | str" = PackageType.STANDARD,
        filler: Optional[Filler] = None,
    ) -> SequenceResult:
        """Resolve every manifest entry into package parts, in manifest order.

        Raises:
            MissingDocumentError: If a required template or header page is absent
            MissingUploadError: If a required upload slot is empty
            TemplateFetchError: If a template source fails for another reason
        """
        package_type = PackageType.parse(package_type)
        slots = normalize_uploads(uploads)
        filler = filler or TemplateFiller(record, self.field_map)
        entries = self._active_entries(lender_code, package_type)

        # Fetch every template the active entries reference up front
        needed: list[str] = []
        if any(active and spec.emits_header for _, spec, active in entries):
            needed.append(self.manifest.header_source)
        for _, spec, active in entries:
            if active:
                reference = self._template_reference(spec, lender_code, slots)
                if reference:
                    needed.append(reference)
        templates = prefetch(self.source, needed, self.workers)

        result = SequenceResult()
        for index, spec, active in entries:
            if not active:
                safe_log("Skipping entry", index=index, document=spec.document, condition=str(spec.condition))
                result.outcomes.append(
                    SlotOutcome(index, spec.document, SlotStatus.SKIPPED_CONDITION, reason=str(spec.condition))
                )
                continue

            parts: list[PackagePart] = []
            if spec.emits_header:
                parts.append(self._header_part(templates, spec))

            status, reason = self._resolve_entry(
                spec, parts, templates, slots, lender_code, filler
            )
            result.parts.extend(parts)
            result.outcomes.append(SlotOutcome(index, spec.document, status, len(parts), reason))

        safe_log(
            "Sequenced package",
            lender=lender_code,
            package_type=package_type.value,
            parts=len(result.parts),
        )
        return result

    def _header_part(self, templates: Mapping[str, Optional[bytes]], spec: DocumentSpec) -> PackagePart:
        header_source = self.manifest.header_source
        content = templates.get(header_source)
        if content is None:
            raise MissingDocumentError(header_source or "<header source>")
        page = extract_page(content, spec.header.page_number, header_source)
        return PackagePart(f"{header_source}#{spec.header.value}", page, PartSource.HEADER)

    def _resolve_entry(
        self,
        spec: DocumentSpec,
        parts: list[PackagePart],
        templates: Mapping[str, Optional[bytes]],
        uploads: Mapping[UploadSlot, bytes],
        lender_code: str,
        filler: Filler,
    ) -> tuple[SlotStatus, Optional[str]]:
        """Append the entry's own part(s); returns its status and reason."""
        if spec.kind == DocumentKind.ALTERNATE_PAIR:
            upload = uploads.get(spec.upload_slot)
            if upload is not None:
                parts.append(PackagePart(spec.upload_slot.value, upload, PartSource.UPLOAD))
                return SlotStatus.EMITTED, None
            reference = self._fallback_reference(spec)
            content = templates.get(reference) if reference else None
            if content is None:
                raise MissingDocumentError(reference or "<fallback document>")
            part, error = fill_or_static(filler, content, reference, spec.disclosure)
            parts.append(part)
            return (SlotStatus.FALLBACK, error) if error else (SlotStatus.EMITTED, None)

        if spec.kind == DocumentKind.UPLOAD:
            slot = spec.upload_slot
            if slot == UploadSlot.TD_APA and not is_primary_lender(lender_code):
                return SlotStatus.SKIPPED_CONDITION, "lender is not TD"
            upload = uploads.get(slot)
            if upload is None:
                if slot.required:
                    raise MissingUploadError(slot.value, slot.label)
                safe_log("Optional upload not supplied", slot=slot.value)
                return SlotStatus.SKIPPED_MISSING, "upload not supplied"
            parts.append(PackagePart(slot.value, upload, PartSource.UPLOAD))
            return SlotStatus.EMITTED, None

        reference = self._template_reference(spec, lender_code, uploads)
        content = templates.get(reference)
        if content is None:
            if spec.optional:
                safe_log("Optional document not found", reference=reference)
                return SlotStatus.SKIPPED_MISSING, f"{reference} not found"
            raise MissingDocumentError(reference)

        part, error = fill_or_static(filler, content, reference, spec.disclosure)
        parts.append(part)
        return (SlotStatus.FALLBACK, error) if error else (SlotStatus.EMITTED, None)
