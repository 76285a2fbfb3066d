"""Field mapper: write CRM record values into a template's form fields.

One global field map (record key -> destination field name) is applied to
every template. Destinations a template does not carry are skipped
silently; the template is only considered filled when at least one field
was actually touched.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from ..common.exceptions import NoFieldsFilledError, TemplateUnfillableError
from ..common.models import FieldMap
from ..common.safe_log import safe_log
from ..disclosure.calculator import DisclosureResult, compute_disclosure
from ..utils.coercion import is_checked, lookup, normalize_value
from .fields import FieldKind, FormDocument, FormField, PdfForm


class FieldOutcome(str, Enum):
    """Result of writing one mapped value."""
    FILLED = "FILLED"
    RAW_TEXT = "RAW_TEXT"  # choice field given a value outside its options
    UNSET = "UNSET"  # radio value matched no state
    NOT_PRESENT = "NOT_PRESENT"  # destination not in this template
    FAILED = "FAILED"

    @property
    def touched(self) -> bool:
        return self in (FieldOutcome.FILLED, FieldOutcome.RAW_TEXT)


@dataclass
class FieldWrite:
    """Trace of one field map entry applied to one template."""

    record_key: str
    field_name: str
    outcome: FieldOutcome
    error: Optional[str] = None


@dataclass
class FillResult:
    """Filled template bytes plus the per-field outcomes."""

    reference: str
    content: bytes
    writes: list[FieldWrite] = field(default_factory=list)

    @property
    def touched_count(self) -> int:
        return sum(1 for w in self.writes if w.outcome.touched)

    @property
    def failed_fields(self) -> list[str]:
        return [w.field_name for w in self.writes if w.outcome == FieldOutcome.FAILED]

    def outcome_for(self, field_name: str) -> Optional[FieldOutcome]:
        for write in reversed(self.writes):
            if write.field_name == field_name:
                return write.outcome
        return None


def _write_text(form: FormDocument, target: FormField, value: str) -> FieldOutcome:
    form.set_text(target, value)
    return FieldOutcome.FILLED


def _write_choice(form: FormDocument, target: FormField, value: str) -> FieldOutcome:
    option = target.match_option(value)
    if option is not None:
        form.select(target, option)
        return FieldOutcome.FILLED
    form.set_text(target, value)
    return FieldOutcome.RAW_TEXT


def _write_checkbox(form: FormDocument, target: FormField, value: str) -> FieldOutcome:
    form.set_checked(target, is_checked(value))
    return FieldOutcome.FILLED


def _write_radio(form: FormDocument, target: FormField, value: str) -> FieldOutcome:
    option = target.match_option(value)
    if option is None:
        return FieldOutcome.UNSET
    form.select(target, option)
    return FieldOutcome.FILLED


_WRITERS: dict[FieldKind, Callable[[FormDocument, FormField, str], FieldOutcome]] = {
    FieldKind.TEXT: _write_text,
    FieldKind.CHOICE: _write_choice,
    FieldKind.CHECKBOX: _write_checkbox,
    FieldKind.RADIO: _write_radio,
}


def apply_field_map(
    form: FormDocument,
    record: Mapping[str, Any],
    field_map: FieldMap,
    reference: str = "",
) -> list[FieldWrite]:
    """Write every mapped record value the form has a destination for."""
    inventory = form.fields()
    writes: list[FieldWrite] = []

    for record_key, field_name in field_map.items():
        target = inventory.get(field_name)
        if target is None:
            writes.append(FieldWrite(record_key, field_name, FieldOutcome.NOT_PRESENT))
            continue

        value = normalize_value(lookup(record, record_key))
        try:
            outcome = _WRITERS[target.kind](form, target, value)
            writes.append(FieldWrite(record_key, field_name, outcome))
        except Exception as e:
            safe_log(
                "Field write failed",
                reference=reference,
                field=field_name,
                kind=target.kind.value,
                error=str(e),
            )
            writes.append(FieldWrite(record_key, field_name, FieldOutcome.FAILED, str(e)))

    return writes


def fill_form(
    form: FormDocument,
    record: Mapping[str, Any],
    field_map: FieldMap,
    reference: str = "",
) -> FillResult:
    """Fill an opened form and serialize it.

    Raises:
        TemplateUnfillableError: If the form has no fillable fields
        NoFieldsFilledError: If no mapped destination was touched
    """
    if not form.fields():
        raise TemplateUnfillableError(f"Template has no fillable fields: {reference}", reference)

    writes = apply_field_map(form, record, field_map, reference)
    result = FillResult(reference=reference, content=b"", writes=writes)
    if result.touched_count == 0:
        raise NoFieldsFilledError(
            f"No fields filled in template: {reference}",
            reference,
            failed_fields=result.failed_fields,
        )

    result.content = form.save()
    return result


def fill_template(
    template_bytes: bytes,
    record: Mapping[str, Any],
    field_map: FieldMap,
    *,
    reference: str = "",
) -> FillResult:
    """Fill a template's form fields from a record using the field map.

    The output stays editable; flattening happens at assembly.

    Raises:
        TemplateUnfillableError: If the bytes do not parse or have no fields
        NoFieldsFilledError: If no mapped destination was touched
    """
    form = PdfForm(template_bytes, reference)
    return fill_form(form, record, field_map, reference)


class TemplateFiller:
    """Fills templates for one build: one record, one field map.

    Disclosure templates get the calculator's derived fields merged over the
    record. The derived fields are computed once per filler.
    """

    def __init__(
        self,
        record: Mapping[str, Any],
        field_map: FieldMap,
        calculator: Callable[[Mapping[str, Any]], DisclosureResult] = compute_disclosure,
    ):
        self.record = record
        self.field_map = field_map
        self._calculator = calculator
        self._disclosure_fields: Optional[dict[str, Any]] = None

    def disclosure_fields(self, reference: str = "") -> dict[str, Any]:
        if self._disclosure_fields is None:
            try:
                result = self._calculator(self.record)
                safe_log("Computed disclosure figures", reference=reference, data=result.to_dict())
                self._disclosure_fields = result.to_fields()
            except ValueError as e:
                raise TemplateUnfillableError(
                    f"Disclosure figures unavailable for {reference}: {e}", reference, e
                ) from e
        return self._disclosure_fields

    def fill(self, content: bytes, reference: str, disclosure: bool = False) -> FillResult:
        record = self.record
        if disclosure:
            record = {**self.record, **self.disclosure_fields(reference)}
        return fill_template(content, record, self.field_map, reference=reference)
