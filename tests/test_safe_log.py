"""Tests for PII-safe logging."""

from signing_package.common.safe_log import MAX_DATA_CHARS, redact_pii, safe_log


class TestRedactPii:
    """Tests for redact_pii."""

    def test_redacts_known_fields(self):
        record = {
            "Contact_Name": "Jane Doe",
            "SIN": "123-456-789",
            "Date_Of_Birth": "1985-07-22",
            "Email": "jane.doe@example.com",
            "Contact_Email_2": "john@example.com",
        }

        redacted = redact_pii(record)

        assert redacted["Contact_Name"] == "Jane Doe"
        assert redacted["SIN"] == "***-***-789"
        assert redacted["Date_Of_Birth"] == "****-**-** (1985)"
        assert redacted["Email"] == "j***@example.com"
        assert redacted["Contact_Email_2"] == "j***@example.com"

    def test_does_not_mutate_input(self):
        record = {"Email": "jane@example.com"}

        redact_pii(record)

        assert record["Email"] == "jane@example.com"

    def test_nested_and_dotted_keys(self):
        data = {"borrowers": [{"Deal.SIN": "987654321"}], "meta": {"dob": "March 1990"}}

        redacted = redact_pii(data)

        assert redacted["borrowers"][0]["Deal.SIN"] == "***-***-321"
        assert redacted["meta"]["dob"] == "****-**-** (1990)"

    def test_blank_values_left_alone(self):
        assert redact_pii({"SIN": "", "Email": None}) == {"SIN": "", "Email": None}

    def test_none(self):
        assert redact_pii(None) is None


class TestSafeLog:
    """Tests for safe_log output."""

    def test_message_and_kwargs(self, capsys):
        safe_log("Building signing package", lender="TD", parts=3)

        out = capsys.readouterr().out
        assert out.startswith("[")
        assert "Building signing package lender=TD parts=3" in out

    def test_data_redacted(self, capsys):
        safe_log("Record", data={"Email": "jane@example.com", "City": "Toronto"})

        out = capsys.readouterr().out
        assert "jane@example.com" not in out
        assert "j***@example.com" in out
        assert "Toronto" in out

    def test_dict_kwargs_redacted(self, capsys):
        safe_log("Record", record={"SIN": "123456789"})

        out = capsys.readouterr().out
        assert "123456789" not in out

    def test_bytes_summarized(self, capsys):
        safe_log("Upload", data={"content": b"%PDF-1.7 ..."})

        out = capsys.readouterr().out
        assert "<12 bytes>" in out

    def test_long_data_truncated(self, capsys):
        safe_log("Big", data={"blob": "x" * (MAX_DATA_CHARS * 2)})

        out = capsys.readouterr().out
        assert "[TRUNCATED]" in out
        assert len(out) < MAX_DATA_CHARS + 200

    def test_bytes_in_kwargs_summarized(self, capsys):
        safe_log("Upload", uploads={"UPLOAD_Commitment.pdf": b"%PDF-1.7"})

        out = capsys.readouterr().out
        assert "%PDF" not in out
        assert "<8 bytes>" in out

    def test_unknown_types_stringified(self, capsys):
        class Slot:
            def __str__(self):
                return "slot-1"

        safe_log("Slot", data={"slot": Slot()})

        assert '"slot": "slot-1"' in capsys.readouterr().out
