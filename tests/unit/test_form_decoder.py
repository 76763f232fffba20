"""
Unit tests for the multipart form decoder.

Tests cover:
- Base64 body decoding
- Content-Type parsing and boundary extraction
- Multipart splitting into text fields and file parts
- In-memory budget and spilling to temporary files
"""

import base64
from unittest.mock import patch

import pytest

from contact_form.exceptions import FormDecodeError, FormFormatError, FormTooLargeError
from tests.utils.event_generator import UploadedFile, encode_multipart


# ============================================================================
# Body Decoding Tests
# ============================================================================

class TestDecodeBody:
    """Tests for decode_body function."""

    def test_decode_valid_base64(self):
        """Test standard alphabet round trip."""
        from lambdas.submit_contact_form.form_decoder import decode_body

        raw = b"\x00\xffbinary\xfe"
        assert decode_body(base64.b64encode(raw).decode("ascii")) == raw

    def test_decode_accepts_bytes(self):
        """Test bytes input is decoded the same as str."""
        from lambdas.submit_contact_form.form_decoder import decode_body

        assert decode_body(base64.b64encode(b"hello")) == b"hello"

    def test_decode_ignores_line_breaks(self):
        """Test wrapped base64 bodies still decode."""
        from lambdas.submit_contact_form.form_decoder import decode_body

        encoded = base64.encodebytes(b"x" * 200).decode("ascii")
        assert "\n" in encoded
        assert decode_body(encoded) == b"x" * 200

    def test_decode_invalid_character_raises(self):
        """Test characters outside the alphabet are rejected."""
        from lambdas.submit_contact_form.form_decoder import decode_body

        with pytest.raises(FormDecodeError):
            decode_body("not*base64!")

    def test_decode_bad_padding_raises(self):
        """Test truncated base64 is rejected."""
        from lambdas.submit_contact_form.form_decoder import decode_body

        with pytest.raises(FormDecodeError):
            decode_body("aGVsbG8")

    def test_decode_urlsafe_alphabet_raises(self):
        """Test the URL-safe alphabet is not accepted."""
        from lambdas.submit_contact_form.form_decoder import decode_body

        with pytest.raises(FormDecodeError):
            decode_body(base64.urlsafe_b64encode(b"\xfb\xff\xfe").decode("ascii"))

    def test_decode_missing_body_raises(self):
        """Test a request without a body."""
        from lambdas.submit_contact_form.form_decoder import decode_body

        with pytest.raises(FormDecodeError):
            decode_body(None)


# ============================================================================
# Content-Type Tests
# ============================================================================

class TestParseBoundary:
    """Tests for parse_boundary function."""

    def test_boundary_extracted(self):
        """Test a browser style multipart/form-data header."""
        from lambdas.submit_contact_form.form_decoder import parse_boundary

        boundary = parse_boundary("multipart/form-data; boundary=----WebKitFormBoundaryABC")
        assert boundary == b"----WebKitFormBoundaryABC"

    def test_quoted_boundary(self):
        """Test a quoted boundary parameter."""
        from lambdas.submit_contact_form.form_decoder import parse_boundary

        assert parse_boundary('multipart/form-data; boundary="a b c"') == b"a b c"

    def test_media_type_and_parameter_case_insensitive(self):
        """Test upper case media type and parameter name."""
        from lambdas.submit_contact_form.form_decoder import parse_boundary

        assert parse_boundary("Multipart/Form-Data; Boundary=xyz") == b"xyz"

    def test_any_multipart_subtype_accepted(self):
        """Test multipart/* rather than only form-data."""
        from lambdas.submit_contact_form.form_decoder import parse_boundary

        assert parse_boundary("multipart/mixed; boundary=xyz") == b"xyz"

    def test_json_raises_format_error(self):
        """Test a non-multipart payload."""
        from lambdas.submit_contact_form.form_decoder import parse_boundary

        with pytest.raises(FormFormatError) as exc_info:
            parse_boundary("application/json")

        assert exc_info.value.media_type == "application/json"
        assert exc_info.value.kind == "format"

    def test_missing_header_raises_decode_error(self):
        """Test absent Content-Type."""
        from lambdas.submit_contact_form.form_decoder import parse_boundary

        with pytest.raises(FormDecodeError):
            parse_boundary(None)
        with pytest.raises(FormDecodeError):
            parse_boundary("   ")

    def test_unparseable_header_raises_decode_error(self):
        """Test a value that is not a media type."""
        from lambdas.submit_contact_form.form_decoder import parse_boundary

        with pytest.raises(FormDecodeError):
            parse_boundary("garbage")

    def test_non_latin1_header_raises_decode_error(self):
        """Test a header value that cannot be encoded as latin-1."""
        from lambdas.submit_contact_form.form_decoder import parse_boundary

        with pytest.raises(FormDecodeError) as exc_info:
            parse_boundary('multipart/form-data; boundary="XyZ€"')

        assert exc_info.value.kind == "decode"

    def test_missing_boundary_raises_decode_error(self):
        """Test multipart without a boundary parameter."""
        from lambdas.submit_contact_form.form_decoder import parse_boundary

        with pytest.raises(FormDecodeError):
            parse_boundary("multipart/form-data; charset=utf-8")


class TestGetHeader:
    """Tests for get_header helper function."""

    def test_lookup_is_case_insensitive(self):
        """Test header names match regardless of casing."""
        from lambdas.submit_contact_form.form_decoder import get_header

        assert get_header({"content-type": "a/b"}, "Content-Type") == "a/b"
        assert get_header({"Content-Type": "a/b"}, "content-type") == "a/b"
        assert get_header({"CONTENT-TYPE": "a/b"}, "Content-Type") == "a/b"

    def test_missing_header(self):
        """Test absent header and absent header map."""
        from lambdas.submit_contact_form.form_decoder import get_header

        assert get_header({"accept": "*/*"}, "Content-Type") is None
        assert get_header(None, "Content-Type") is None


# ============================================================================
# Multipart Parsing Tests
# ============================================================================

class TestDecodeForm:
    """Tests for decode_form function."""

    def test_text_fields(self):
        """Test text fields are collected by name."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        payload = encode_multipart([
            ("name", "Ada Lovelace"),
            ("email", "ada@example.com"),
            ("message", "Hello\r\nthere"),
        ])

        form = decode_form(payload.body_b64, payload.content_type)

        assert form.values["name"] == ["Ada Lovelace"]
        assert form.value("email") == "ada@example.com"
        assert form.value("message") == "Hello\r\nthere"
        assert form.files == {}

    def test_repeated_field_joined_with_newline(self):
        """Test multiple values under one name."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        payload = encode_multipart([("message", "one"), ("message", "two")])

        form = decode_form(payload.body_b64, payload.content_type)

        assert form.values["message"] == ["one", "two"]
        assert form.value("message") == "one\ntwo"

    def test_missing_field_is_empty(self):
        """Test value() of a field that was not submitted."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        payload = encode_multipart([("name", "Ada")])

        form = decode_form(payload.body_b64, payload.content_type)

        assert form.value("email") == ""

    def test_utf8_field_value(self):
        """Test non-ASCII text survives decoding."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        payload = encode_multipart([("name", "Zoë Ångström")])

        form = decode_form(payload.body_b64, payload.content_type)

        assert form.value("name") == "Zoë Ångström"

    def test_file_part(self, pdf_bytes):
        """Test a file input becomes a FilePart with its raw bytes."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        payload = encode_multipart(
            [("name", "Ada")],
            [UploadedFile("attachment", "cv.pdf", pdf_bytes, "application/pdf")],
        )

        form = decode_form(payload.body_b64, payload.content_type)

        [part] = form.files["attachment"]
        assert part.field_name == "attachment"
        assert part.filename == "cv.pdf"
        assert part.content_type == "application/pdf"
        assert part.size == len(pdf_bytes)
        assert part.open().read() == pdf_bytes
        form.close()

    @pytest.mark.parametrize(
        "sent,kept",
        [
            ("../../etc/x.pdf", "x.pdf"),
            ("/home/ada/cv.pdf", "cv.pdf"),
            ("C:\\Users\\Ada\\cv.pdf", "cv.pdf"),
            ("reports/", "reports"),
            ("plain.txt", "plain.txt"),
        ],
    )
    def test_filename_directories_stripped(self, sent, kept):
        """Test only the last path component of an upload's filename is kept."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        payload = encode_multipart(files=[UploadedFile("attachment", sent, b"data")])

        form = decode_form(payload.body_b64, payload.content_type)

        assert form.files["attachment"][0].filename == kept
        form.close()

    def test_file_parts_keep_submission_order(self):
        """Test several files under one input keep their order."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        payload = encode_multipart(files=[
            UploadedFile("attachment", "first.txt", b"1"),
            UploadedFile("attachment", "second.txt", b"2"),
            UploadedFile("attachment", "third.txt", b"3"),
        ])

        form = decode_form(payload.body_b64, payload.content_type)

        assert [p.filename for p in form.files["attachment"]] == [
            "first.txt",
            "second.txt",
            "third.txt",
        ]
        form.close()

    def test_empty_filename_kept_as_file_part(self):
        """Test an unused file input is still reported, with empty filename."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        payload = encode_multipart(files=[UploadedFile("attachment", "")])

        form = decode_form(payload.body_b64, payload.content_type)

        [part] = form.files["attachment"]
        assert part.filename == ""
        assert part.size == 0
        form.close()

    def test_part_header_names_case_insensitive(self):
        """Test lower case part headers from non-browser clients."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        body = (
            b"--xyz\r\n"
            b'content-disposition: form-data; name="name"\r\n'
            b"\r\n"
            b"Ada\r\n"
            b"--xyz\r\n"
            b'CONTENT-DISPOSITION: form-data; name="attachment"; filename="a.bin"\r\n'
            b"content-type: application/octet-stream\r\n"
            b"\r\n"
            b"\x01\x02\r\n"
            b"--xyz--\r\n"
        )

        form = decode_form(base64.b64encode(body), "multipart/form-data; boundary=xyz")

        assert form.value("name") == "Ada"
        assert form.files["attachment"][0].open().read() == b"\x01\x02"
        form.close()

    def test_base64_transfer_encoded_part(self):
        """Test parts with Content-Transfer-Encoding: base64 are decoded."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        body = (
            b"--xyz\r\n"
            b'Content-Disposition: form-data; name="attachment"; filename="a.bin"\r\n'
            b"Content-Transfer-Encoding: base64\r\n"
            b"\r\n"
            + base64.b64encode(b"\x00\x01binary")
            + b"\r\n--xyz--\r\n"
        )

        form = decode_form(base64.b64encode(body), "multipart/form-data; boundary=xyz")

        assert form.files["attachment"][0].open().read() == b"\x00\x01binary"
        form.close()

    def test_unnamed_part_ignored(self):
        """Test a part without a name parameter is dropped."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        body = (
            b"--xyz\r\n"
            b"Content-Disposition: form-data\r\n"
            b"\r\n"
            b"orphan\r\n"
            b"--xyz\r\n"
            b'Content-Disposition: form-data; name="name"\r\n'
            b"\r\n"
            b"Ada\r\n"
            b"--xyz--\r\n"
        )

        form = decode_form(base64.b64encode(body), "multipart/form-data; boundary=xyz")

        assert form.values == {"name": ["Ada"]}

    def test_malformed_base64_raises(self):
        """Test corrupted body fails before multipart parsing."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        payload = encode_multipart([("name", "Ada")])

        with pytest.raises(FormDecodeError):
            decode_form(payload.body_b64[:-3] + "%%%", payload.content_type)

    def test_json_content_type_raises_format_error(self):
        """Test application/json instead of multipart."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        body = base64.b64encode(b'{"name": "Ada"}').decode("ascii")

        with pytest.raises(FormFormatError):
            decode_form(body, "application/json")

    def test_wrong_boundary_raises(self):
        """Test body delimited by a different boundary."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        payload = encode_multipart([("name", "Ada")], boundary="real-boundary")

        with pytest.raises(FormDecodeError):
            decode_form(payload.body_b64, "multipart/form-data; boundary=other-boundary")

    def test_truncated_body_raises(self):
        """Test a body cut off before the closing delimiter."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        payload = encode_multipart([("name", "Ada"), ("message", "Hello")])
        truncated = base64.b64encode(payload.body[: len(payload.body) // 2])

        with pytest.raises(FormDecodeError):
            decode_form(truncated, payload.content_type)

    def test_empty_body_raises(self):
        """Test an empty body is not a valid form."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        with pytest.raises(FormDecodeError):
            decode_form("", "multipart/form-data; boundary=xyz")


class TestMemoryBudget:
    """Tests for the in-memory budget of decode_form."""

    def test_oversize_text_field_rejected(self):
        """Test text fields beyond the budget fail instead of truncating."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        payload = encode_multipart([("message", "x" * 500)])

        with pytest.raises(FormTooLargeError) as exc_info:
            decode_form(payload.body_b64, payload.content_type, max_memory=100)

        assert exc_info.value.limit == 100
        assert isinstance(exc_info.value, FormDecodeError)

    def test_file_within_budget_stays_in_memory(self):
        """Test small uploads are held in memory."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        payload = encode_multipart(files=[UploadedFile("attachment", "a.bin", b"a" * 50)])

        form = decode_form(payload.body_b64, payload.content_type, max_memory=1000)

        assert form.files["attachment"][0].in_memory is True
        form.close()

    def test_oversize_file_spills_to_disk(self, generator):
        """Test a file beyond the remaining budget goes to a temporary file intact."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        content = generator.random_bytes(4096)
        payload = encode_multipart(
            [("name", "Ada")],
            [UploadedFile("attachment", "big.bin", content)],
        )

        form = decode_form(payload.body_b64, payload.content_type, max_memory=1024)

        [part] = form.files["attachment"]
        assert part.in_memory is False
        assert part.size == len(content)
        assert part.open().read() == content
        form.close()

    def test_budget_is_additive_across_files(self):
        """Test a later file spills once earlier files used up the budget."""
        from lambdas.submit_contact_form.form_decoder import decode_form

        payload = encode_multipart(files=[
            UploadedFile("attachment", "first.bin", b"a" * 600),
            UploadedFile("attachment", "second.bin", b"b" * 600),
        ])

        form = decode_form(payload.body_b64, payload.content_type, max_memory=1000)

        first, second = form.files["attachment"]
        assert first.in_memory is True
        assert second.in_memory is False
        assert second.open().read() == b"b" * 600
        form.close()

    def test_spill_failure_releases_collected_parts(self):
        """Test parts already decoded are closed when a spill to disk fails."""
        from lambdas.submit_contact_form.form_decoder import DecodedForm, decode_form

        payload = encode_multipart(files=[
            UploadedFile("attachment", "first.bin", b"a" * 600),
            UploadedFile("attachment", "second.bin", b"b" * 600),
        ])

        with patch(
            "python_multipart.multipart.shutil.copyfileobj",
            side_effect=OSError(28, "No space left on device"),
        ), patch.object(DecodedForm, "close", autospec=True) as mock_close:
            with pytest.raises(OSError):
                decode_form(payload.body_b64, payload.content_type, max_memory=1000)

        mock_close.assert_called_once()
        [form] = mock_close.call_args[0]
        assert [part.filename for part in form.files["attachment"]] == ["first.bin"]
