"""
Form Decoder Module

Turns the base64 encoded body of an API Gateway proxy request into the
named text fields and file parts of the submitted multipart form.

The multipart grammar itself is handled by python-multipart's streaming
MultipartParser; this module wires its callbacks into a DecodedForm and
enforces the in-memory budget for one submission.
"""

import base64
import binascii
import re
from dataclasses import dataclass, field
from typing import BinaryIO

import structlog
from python_multipart.decoders import Base64Decoder, QuotedPrintableDecoder
from python_multipart.exceptions import FormParserError
from python_multipart.multipart import Field, File, MultipartParser, parse_options_header

from contact_form.exceptions import FormDecodeError, FormFormatError, FormTooLargeError

log = structlog.get_logger()

DEFAULT_MAX_MEMORY = 16 * 1024 * 1024  # 16 MiB, comfortably above a 10 MiB upload

# type "/" subtype, both RFC 2045 tokens
MEDIA_TYPE_PATTERN = re.compile(r"^[a-z0-9!#$%&'*+.^_`|~-]+/[a-z0-9!#$%&'*+.^_`|~-]+$")


@dataclass
class FilePart:
    """
    One uploaded file from the form.

    An empty filename means the browser submitted the file input without
    a file selected.
    """

    field_name: str
    filename: str
    content_type: str
    _file: File = field(repr=False)

    @property
    def size(self) -> int:
        return self._file.size

    @property
    def in_memory(self) -> bool:
        return self._file.in_memory

    def open(self) -> BinaryIO:
        """
        Return the part's content positioned at the first byte.

        The stream is the part's own storage; closing it releases that
        storage, so the content can be consumed once.
        """
        fileobj = self._file.file_object
        fileobj.seek(0)
        return fileobj

    def close(self) -> None:
        self._file.close()


@dataclass
class DecodedForm:
    """Named text values and file parts of one form submission."""

    values: dict[str, list[str]] = field(default_factory=dict)
    files: dict[str, list[FilePart]] = field(default_factory=dict)

    def value(self, name: str) -> str:
        """All values submitted under ``name`` joined by newlines."""
        return "\n".join(self.values.get(name, []))

    def close(self) -> None:
        """Release the storage held by every file part."""
        for parts in self.files.values():
            for part in parts:
                part.close()


def get_header(headers: dict[str, str] | None, name: str) -> str | None:
    """Case-insensitive lookup of a request header."""
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def parse_boundary(content_type: str | None) -> bytes:
    """
    Extract the multipart boundary from a Content-Type header value.

    Raises:
        FormDecodeError: If the header is missing, unparseable or has no boundary
        FormFormatError: If the media type is not multipart/*
    """
    if not content_type or not content_type.strip():
        raise FormDecodeError("Missing Content-Type header")

    try:
        ctype, options = parse_options_header(content_type)
    except ValueError as e:
        # python-multipart encodes str headers as latin-1
        raise FormDecodeError("Unparseable Content-Type", content_type=content_type) from e

    media_type = ctype.decode("latin-1").strip().lower()

    if not MEDIA_TYPE_PATTERN.match(media_type):
        raise FormDecodeError("Unparseable Content-Type", content_type=content_type)

    if media_type.split("/", 1)[0] != "multipart":
        raise FormFormatError(media_type=media_type)

    params = {key.lower(): value for key, value in options.items()}
    boundary = params.get(b"boundary")
    if not boundary:
        raise FormDecodeError("Multipart Content-Type has no boundary", media_type=media_type)

    return boundary


def decode_body(body: str | bytes | None) -> bytes:
    """
    Decode a base64 request body using the standard alphabet.

    Raises:
        FormDecodeError: On any invalid character or bad padding
    """
    if body is None:
        raise FormDecodeError("Request has no body")

    # Line breaks are not part of the alphabet but may wrap long bodies
    if isinstance(body, str):
        body = body.replace("\r", "").replace("\n", "")
    else:
        body = body.replace(b"\r", b"").replace(b"\n", b"")

    try:
        return base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise FormDecodeError("Request body is not valid base64", error=str(e)) from e


def _decode_text(raw: bytes | None) -> str:
    return (raw or b"").decode("utf-8", errors="replace")


def _decode_filename(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def _base_name(filename: str) -> str:
    """Last path component of a client supplied filename, either separator."""
    components = [c for c in filename.replace("\\", "/").split("/") if c]
    return components[-1] if components else ""


def parse_multipart(
    data: bytes,
    boundary: bytes,
    *,
    max_memory: int = DEFAULT_MAX_MEMORY,
) -> DecodedForm:
    """
    Split a multipart body into a DecodedForm.

    Text fields count against ``max_memory`` and exceeding it fails the
    decode. File parts are kept in memory while they fit in what is left
    of the budget and are spilled to a temporary file otherwise.

    Raises:
        FormDecodeError: On malformed multipart data
        FormTooLargeError: If text fields exceed the memory budget
    """
    form = DecodedForm()
    remaining = max_memory
    ended = False

    headers: dict[str, bytes] = {}
    header_name: list[bytes] = []
    header_value: list[bytes] = []

    current: Field | File | None = None
    current_name: str | None = None
    current_type = ""
    writer = None

    def on_part_begin() -> None:
        nonlocal headers
        headers = {}

    def on_header_field(data: bytes, start: int, end: int) -> None:
        header_name.append(data[start:end])

    def on_header_value(data: bytes, start: int, end: int) -> None:
        header_value.append(data[start:end])

    def on_header_end() -> None:
        # Part header names are case-insensitive (RFC 7578 / RFC 2045)
        name = b"".join(header_name).decode("latin-1").strip().lower()
        headers[name] = b"".join(header_value).strip()
        del header_name[:]
        del header_value[:]

    def on_headers_finished() -> None:
        nonlocal current, current_name, current_type, writer

        _, options = parse_options_header(headers.get("content-disposition"))
        field_name = options.get(b"name")
        file_name = options.get(b"filename")

        current_name = _decode_text(field_name) if field_name is not None else None
        current_type = headers.get("content-type", b"").decode("latin-1")

        if file_name is None:
            current = Field(field_name)
        else:
            current = File(
                file_name,
                field_name,
                config={"MAX_MEMORY_FILE_SIZE": max(remaining, 0)},
            )

        transfer_encoding = headers.get("content-transfer-encoding", b"7bit").lower()
        if transfer_encoding == b"base64":
            writer = Base64Decoder(current)
        elif transfer_encoding == b"quoted-printable":
            writer = QuotedPrintableDecoder(current)
        else:
            writer = current

    def on_part_data(data: bytes, start: int, end: int) -> None:
        nonlocal remaining
        if isinstance(current, Field):
            remaining -= end - start
            if remaining < 0:
                raise FormTooLargeError(limit=max_memory)
        writer.write(data[start:end])

    def on_part_end() -> None:
        nonlocal remaining
        writer.finalize()

        if current_name is None:
            log.debug("unnamed_part_ignored")
            current.close()
            return

        if isinstance(current, File):
            part = FilePart(
                field_name=current_name,
                filename=_base_name(_decode_filename(current.file_name or b"")),
                content_type=current_type,
                _file=current,
            )
            form.files.setdefault(current_name, []).append(part)
            if current.in_memory:
                remaining -= current.size
        else:
            form.values.setdefault(current_name, []).append(_decode_text(current.value))

    def on_end() -> None:
        nonlocal ended
        ended = True

    parser = MultipartParser(
        boundary,
        callbacks={
            "on_part_begin": on_part_begin,
            "on_part_data": on_part_data,
            "on_part_end": on_part_end,
            "on_header_field": on_header_field,
            "on_header_value": on_header_value,
            "on_header_end": on_header_end,
            "on_headers_finished": on_headers_finished,
            "on_end": on_end,
        },
    )

    def abort() -> None:
        if isinstance(current, File):
            current.close()
        form.close()

    try:
        try:
            parser.write(data)
            parser.finalize()
        except FormParserError as e:
            raise FormDecodeError("Malformed multipart body", error=str(e)) from e
        if not ended:
            raise FormDecodeError("Multipart body ended before the closing boundary")
    except Exception:
        abort()
        raise

    return form


def decode_form(
    body: str | bytes | None,
    content_type: str | None,
    *,
    max_memory: int = DEFAULT_MAX_MEMORY,
) -> DecodedForm:
    """
    Decode a base64 encoded multipart request body.

    Args:
        body: Base64 encoded request body as delivered by API Gateway
        content_type: Value of the request's Content-Type header
        max_memory: In-memory budget for the decoded form

    Returns:
        DecodedForm with text values and file parts

    Raises:
        FormDecodeError: Malformed base64, content type or multipart data
        FormFormatError: Content type is not multipart/*
    """
    data = decode_body(body)
    boundary = parse_boundary(content_type)
    form = parse_multipart(data, boundary, max_memory=max_memory)

    log.info(
        "form_decoded",
        body_bytes=len(data),
        fields=sorted(form.values),
        file_count=sum(len(parts) for parts in form.files.values()),
    )

    return form
