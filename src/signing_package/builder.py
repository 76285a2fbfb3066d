"""Build orchestration for the three broker outputs.

- Signing package: manifest-sequenced, filled, flattened and merged PDF
- Editable singles: filled but unflattened templates in a zip
- Info cover page: one-page deal summary
"""

from datetime import date
from typing import Any, Mapping, Optional

from .assembly.cover import COVER_FILE_NAME, render_info_cover
from .assembly.pipeline import build_archive, merge_flattened
from .assembly.sequencer import (
    ManifestSequencer,
    SequenceResult,
    fill_or_static,
    normalize_uploads,
)
from .assembly.sources import TemplateSource, prefetch
from .common.config import Settings
from .common.exceptions import (
    MissingDocumentError,
    MissingRecordError,
    MissingUploadError,
    TemplateNotFoundError,
)
from .common.models import FieldMap, Manifest, NamedDocument, PackageType, UploadSlot
from .common.safe_log import safe_log
from .forms.mapper import TemplateFiller
from .lenders import lender_file_name, resolve_lender_code
from .utils.coercion import lookup, sanitize_name

SINGLES_ARCHIVE_NAME = "Editable_Singles.zip"
DEFAULT_LAST_NAME = "Client"


def last_name_from_contact(contact_name: Any) -> str:
    """Last whitespace token of the contact name, safe for file names."""
    parts = str(contact_name or "").split()
    if not parts:
        return DEFAULT_LAST_NAME
    return sanitize_name(parts[-1]) or DEFAULT_LAST_NAME


def package_file_name(record: Mapping[str, Any], today: Optional[date] = None) -> str:
    """``<LastName> - Signing Pkg <YYYY-MM-DD>.pdf``."""
    last_name = last_name_from_contact(lookup(record, "Contact_Name"))
    return f"{last_name} - Signing Pkg {(today or date.today()).isoformat()}.pdf"


def _require_record(record: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if not record:
        raise MissingRecordError()
    return record


class PackageBuilder:
    """Builds signing packages from one template source.

    The manifest and field map are loaded once, at construction.
    """

    def __init__(
        self,
        source: TemplateSource,
        settings: Settings,
        manifest: Optional[Manifest] = None,
        field_map: Optional[FieldMap] = None,
    ):
        settings.validate()
        self.source = source
        self.settings = settings
        self.manifest = manifest or Manifest.from_dict(source.load_json(settings.manifest_name))
        self.field_map = field_map if field_map is not None else self._load_field_map()
        self.sequencer = ManifestSequencer(
            source, self.manifest, self.field_map, settings.fetch_workers
        )

    def _load_field_map(self) -> FieldMap:
        try:
            return FieldMap.from_dict(self.source.load_json(self.settings.field_map_name))
        except TemplateNotFoundError:
            safe_log("Field map not found, templates will not be filled", name=self.settings.field_map_name)
            return FieldMap()

    def resolve_lender(self, record: Mapping[str, Any], lender: Optional[str] = None) -> str:
        """Canonical lender code: explicit choice first, else the record's lender name."""
        name = lender if lender else lookup(record, "Lender_Name")
        return resolve_lender_code(name, self.settings.default_lender)

    def sequence(
        self,
        record: Mapping[str, Any],
        uploads: Optional[Mapping[Any, bytes]] = None,
        lender: Optional[str] = None,
        package_type: "PackageType | str" = PackageType.STANDARD,
    ) -> SequenceResult:
        """Validate inputs and run the manifest sequencer without merging."""
        record = _require_record(record)
        slots = normalize_uploads(uploads)
        for slot in UploadSlot:
            if slot.required and slot not in slots:
                raise MissingUploadError(slot.value, slot.label)

        lender_code = self.resolve_lender(record, lender)
        return self.sequencer.sequence(record, slots, lender_code, PackageType.parse(package_type))

    def build_signing_package(
        self,
        record: Mapping[str, Any],
        uploads: Optional[Mapping[Any, bytes]] = None,
        lender: Optional[str] = None,
        package_type: "PackageType | str" = PackageType.STANDARD,
        today: Optional[date] = None,
    ) -> NamedDocument:
        """Build the flattened, merged signing package.

        Raises:
            MissingRecordError: If the record is empty
            MissingUploadError: If a required upload is absent
            MissingDocumentError: If a required template is absent
        """
        safe_log("Building signing package", lender=lender, package_type=str(package_type))
        result = self.sequence(record, uploads, lender, package_type)
        merged = merge_flattened(result.parts)
        document = NamedDocument(package_file_name(record, today), merged)
        safe_log(
            "Signing package created",
            name=document.name,
            size=len(merged),
            filled=sum(1 for part in result.parts if part.filled),
            trace=result.to_dict(),
        )
        return document

    def build_editable_singles(
        self, record: Mapping[str, Any], lender: Optional[str] = None
    ) -> NamedDocument:
        """Fill the singles list and zip the documents unflattened.

        Raises:
            MissingRecordError: If the record is empty
            MissingDocumentError: If a required single is absent or none are available
        """
        record = _require_record(record)
        lender_code = self.resolve_lender(record, lender)
        safe_log("Building editable singles", lender=lender_code)

        references = [
            lender_file_name(lender_code, single.document)
            if single.lender_specific else single.document
            for single in self.manifest.singles
        ]
        templates = prefetch(self.source, references, self.settings.fetch_workers)
        filler = TemplateFiller(record, self.field_map)

        documents: list[NamedDocument] = []
        for single, reference in zip(self.manifest.singles, references):
            content = templates.get(reference)
            if content is None:
                if single.optional:
                    safe_log("Single not available", reference=reference)
                    continue
                raise MissingDocumentError(reference)
            part, _ = fill_or_static(filler, content, reference)
            documents.append(NamedDocument(single.name, part.content))

        if not documents:
            raise MissingDocumentError(
                SINGLES_ARCHIVE_NAME,
                f"No editable singles available for lender {lender_code}",
            )

        archive = build_archive(documents)
        safe_log("Editable singles created", count=len(documents), size=len(archive))
        return NamedDocument(SINGLES_ARCHIVE_NAME, archive)

    def build_info_cover(self, record: Mapping[str, Any]) -> NamedDocument:
        """Render the one-page info cover.

        Raises:
            MissingRecordError: If the record is empty
        """
        record = _require_record(record)
        return NamedDocument(COVER_FILE_NAME, render_info_cover(record))
