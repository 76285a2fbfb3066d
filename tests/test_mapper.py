"""Tests for the field mapper."""

import io

import pytest
from pypdf import PdfReader

from signing_package.common.exceptions import NoFieldsFilledError, TemplateUnfillableError
from signing_package.common.models import FieldMap
from signing_package.forms.fields import FieldKind, FormField, PdfForm
from signing_package.forms.mapper import (
    FieldOutcome,
    TemplateFiller,
    apply_field_map,
    fill_form,
    fill_template,
)
from pdf_factory import make_form, make_pdf


class FakeForm:
    """In-memory form that records every write."""

    def __init__(self, *fields, fail_on=()):
        self._fields = {f.name: f for f in fields}
        self.fail_on = set(fail_on)
        self.values = {}
        self.saved = False

    def fields(self):
        return dict(self._fields)

    def _store(self, field, value):
        if field.name in self.fail_on:
            raise RuntimeError(f"cannot write {field.name}")
        self.values[field.name] = value

    def set_text(self, field, value):
        self._store(field, ("text", value))

    def select(self, field, option):
        self._store(field, ("select", option))

    def set_checked(self, field, checked):
        self._store(field, ("checked", checked))

    def save(self):
        self.saved = True
        return b"%PDF-filled"


def text(name):
    return FormField(name, FieldKind.TEXT)


class TestApplyFieldMap:
    """Tests for per-kind dispatch."""

    def test_text(self):
        form = FakeForm(text("Borrower"))

        writes = apply_field_map(form, {"Contact_Name": "Jane Doe"}, FieldMap({"Contact_Name": "Borrower"}))

        assert form.values["Borrower"] == ("text", "Jane Doe")
        assert writes[0].outcome == FieldOutcome.FILLED

    def test_dotted_key_falls_back_to_leaf(self):
        form = FakeForm(text("Broker"))

        apply_field_map(form, {"Broker_Name": "Acme"}, FieldMap({"Deal.Broker_Name": "Broker"}))

        assert form.values["Broker"] == ("text", "Acme")

    def test_exact_dotted_key_preferred(self):
        form = FakeForm(text("Broker"))
        record = {"Deal.Broker_Name": "Exact", "Broker_Name": "Leaf"}

        apply_field_map(form, record, FieldMap({"Deal.Broker_Name": "Broker"}))

        assert form.values["Broker"] == ("text", "Exact")

    def test_missing_value_writes_empty_string(self):
        form = FakeForm(text("Borrower"))

        apply_field_map(form, {}, FieldMap({"Contact_Name": "Borrower"}))

        assert form.values["Borrower"] == ("text", "")

    @pytest.mark.parametrize("value,expected", [(True, "Yes"), (False, "No"), (None, ""), (12.5, "12.5")])
    def test_normalization(self, value, expected):
        form = FakeForm(text("F"))

        apply_field_map(form, {"K": value}, FieldMap({"K": "F"}))

        assert form.values["F"] == ("text", expected)

    def test_choice_valid_option(self):
        form = FakeForm(FormField("Freq", FieldKind.CHOICE, options=("Monthly", "Weekly")))

        writes = apply_field_map(form, {"F": "monthly"}, FieldMap({"F": "Freq"}))

        assert form.values["Freq"] == ("select", "Monthly")
        assert writes[0].outcome == FieldOutcome.FILLED

    def test_choice_raw_text(self):
        form = FakeForm(FormField("Freq", FieldKind.CHOICE, options=("Monthly",)))

        writes = apply_field_map(form, {"F": "Quarterly"}, FieldMap({"F": "Freq"}))

        assert form.values["Freq"] == ("text", "Quarterly")
        assert writes[0].outcome == FieldOutcome.RAW_TEXT
        assert writes[0].outcome.touched

    @pytest.mark.parametrize("value,checked", [
        ("Yes", True), ("TRUE", True), ("1", True), ("x", True), (True, True),
        ("No", False), ("0", False), ("", False), ("yes please", False), (False, False),
    ])
    def test_checkbox(self, value, checked):
        form = FakeForm(FormField("Owner", FieldKind.CHECKBOX))

        apply_field_map(form, {"O": value}, FieldMap({"O": "Owner"}))

        assert form.values["Owner"] == ("checked", checked)

    def test_radio_match(self):
        form = FakeForm(FormField("Type", FieldKind.RADIO, options=("Purchase", "Refinance")))

        writes = apply_field_map(form, {"T": "refinance"}, FieldMap({"T": "Type"}))

        assert form.values["Type"] == ("select", "Refinance")
        assert writes[0].outcome == FieldOutcome.FILLED

    def test_radio_no_match_left_unset(self):
        form = FakeForm(FormField("Type", FieldKind.RADIO, options=("Purchase",)))

        writes = apply_field_map(form, {"T": "Switch"}, FieldMap({"T": "Type"}))

        assert "Type" not in form.values
        assert writes[0].outcome == FieldOutcome.UNSET
        assert not writes[0].outcome.touched

    def test_absent_destination_not_present(self):
        form = FakeForm(text("Borrower"))

        writes = apply_field_map(form, {"X": "1"}, FieldMap({"X": "Elsewhere"}))

        assert writes[0].outcome == FieldOutcome.NOT_PRESENT
        assert form.values == {}

    def test_write_error_is_failed(self):
        form = FakeForm(text("A"), text("B"), fail_on=["A"])

        writes = apply_field_map(form, {"a": "1", "b": "2"}, FieldMap({"a": "A", "b": "B"}))

        assert [w.outcome for w in writes] == [FieldOutcome.FAILED, FieldOutcome.FILLED]
        assert "cannot write A" in writes[0].error


class TestFillForm:
    """Tests for fill failure signalling."""

    def test_no_fields(self):
        with pytest.raises(TemplateUnfillableError):
            fill_form(FakeForm(), {"A": "1"}, FieldMap({"A": "A"}), "blank.pdf")

    def test_nothing_touched(self):
        form = FakeForm(text("Borrower"))

        with pytest.raises(NoFieldsFilledError) as exc:
            fill_form(form, {"A": "1"}, FieldMap({"A": "Other"}), "drifted.pdf")

        assert exc.value.reference == "drifted.pdf"
        assert not form.saved

    def test_only_failures_not_touched(self):
        form = FakeForm(text("A"), fail_on=["A"])

        with pytest.raises(NoFieldsFilledError) as exc:
            fill_form(form, {"a": "1"}, FieldMap({"a": "A"}), "t.pdf")

        assert exc.value.failed_fields == ["A"]

    def test_filled(self):
        form = FakeForm(text("A"), text("B"))

        result = fill_form(form, {"a": "1"}, FieldMap({"a": "A", "z": "Missing"}), "t.pdf")

        assert result.content == b"%PDF-filled"
        assert result.touched_count == 1
        assert result.outcome_for("A") == FieldOutcome.FILLED
        assert result.outcome_for("Missing") == FieldOutcome.NOT_PRESENT


class TestPdfForm:
    """Round trips through a real AcroForm PDF."""

    def test_inventory(self):
        content = make_form(
            text_fields=["Borrower_Name", "Closing_Date"],
            checkboxes=["Owner_Occupied"],
            choices={"Payment_Frequency": ["Monthly", "Bi-Weekly"]},
        )

        fields = PdfForm(content, "form.pdf").fields()

        assert fields["Borrower_Name"].kind == FieldKind.TEXT
        assert fields["Borrower_Name"].pages == (0,)
        assert fields["Owner_Occupied"].kind == FieldKind.CHECKBOX
        assert fields["Payment_Frequency"].kind == FieldKind.CHOICE
        assert set(fields["Payment_Frequency"].options) == {"Monthly", "Bi-Weekly"}

    def test_fill_text_fields(self):
        content = make_form(text_fields=["Borrower_Name", "Closing_Date"])
        field_map = FieldMap({"Contact_Name": "Borrower_Name", "Closing_Date": "Closing_Date"})

        result = fill_template(
            content, {"Contact_Name": "Jane Doe", "Closing_Date": "2024-06-30"}, field_map, reference="form.pdf"
        )

        values = PdfReader(io.BytesIO(result.content)).get_fields()
        assert values["Borrower_Name"]["/V"] == "Jane Doe"
        assert values["Closing_Date"]["/V"] == "2024-06-30"
        assert result.touched_count == 2

    def test_radio_inventory(self):
        fields = PdfForm(make_form(radios=["Owner_Occupied"]), "form.pdf").fields()

        assert fields["Owner_Occupied"].kind == FieldKind.RADIO
        assert "Yes" in fields["Owner_Occupied"].options

    def test_fill_radio(self):
        content = make_form(text_fields=["Borrower_Name"], radios=["Owner_Occupied"])
        field_map = FieldMap({"Owner_Occupied": "Owner_Occupied"})

        result = fill_template(content, {"Owner_Occupied": "yes"}, field_map, reference="form.pdf")

        assert result.outcome_for("Owner_Occupied") == FieldOutcome.FILLED
        values = PdfReader(io.BytesIO(result.content)).get_fields()
        assert values["Owner_Occupied"]["/V"] == "/Yes"

    def test_radio_without_matching_state_left_unset(self):
        content = make_form(text_fields=["Borrower_Name"], radios=["Owner_Occupied"])
        field_map = FieldMap({"Contact_Name": "Borrower_Name", "Owner_Occupied": "Owner_Occupied"})

        result = fill_template(
            content, {"Contact_Name": "Jane Doe", "Owner_Occupied": "Rental"}, field_map, reference="form.pdf"
        )

        assert result.outcome_for("Owner_Occupied") == FieldOutcome.UNSET
        assert result.touched_count == 1

    def test_blank_pdf_is_unfillable(self):
        with pytest.raises(TemplateUnfillableError):
            fill_template(make_pdf("static"), {"A": "1"}, FieldMap({"A": "A"}), reference="static.pdf")

    def test_garbage_bytes_unfillable(self):
        with pytest.raises(TemplateUnfillableError) as exc:
            fill_template(b"not a pdf", {}, FieldMap(), reference="broken.pdf")

        assert exc.value.reference == "broken.pdf"


class TestTemplateFiller:
    """Tests for disclosure merging."""

    def test_disclosure_fields_merged(self):
        form_pdf = make_form(text_fields=["COB_APR", "Borrower_Name"])
        record = {
            "Contact_Name": "Jane Doe",
            "Total_Mortgage_Amount_incl_Insurance": 300000,
            "Interest_Rate": 5,
            "Amortization_Years": 25,
            "Term_Years": 5,
        }
        field_map = FieldMap({"COB_APR": "COB_APR", "Contact_Name": "Borrower_Name"})

        result = TemplateFiller(record, field_map).fill(form_pdf, "COB.pdf", disclosure=True)

        values = PdfReader(io.BytesIO(result.content)).get_fields()
        assert values["COB_APR"]["/V"] == "5.00"
        assert "COB_APR" not in record

    def test_calculator_computed_once(self):
        calls = []

        class Result:
            def to_fields(self):
                return {"COB_APR": "6.00"}

        def calculator(record):
            calls.append(record)
            return Result()

        filler = TemplateFiller({}, FieldMap(), calculator=calculator)
        filler.disclosure_fields("a.pdf")
        filler.disclosure_fields("b.pdf")

        assert len(calls) == 1

    def test_calculator_error_is_unfillable(self):
        filler = TemplateFiller({"Payment_Frequency": "whenever"}, FieldMap())

        with pytest.raises(TemplateUnfillableError):
            filler.fill(make_form(text_fields=["COB_APR"]), "COB.pdf", disclosure=True)
