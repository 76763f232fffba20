"""
MIME Writer Module

Streaming writers for the outbound multipart/mixed body:

- MultipartWriter appends boundary delimited parts to a byte sink
- Base64Encoder turns arbitrary bytes into 76 column base64 lines

Neither writer buffers a whole part, so attachments go from their
decoded form storage into the message buffer one chunk at a time.
"""

import base64
import secrets
from typing import BinaryIO

CRLF = b"\r\n"

# 57 input bytes encode to exactly one 76 character line (RFC 2045 6.8)
BASE64_LINE_INPUT = 57


def random_boundary() -> str:
    """Random boundary token: 30 random bytes rendered as 60 hex characters."""
    return secrets.token_hex(30)


def _check_header(name: str, value: str) -> None:
    if "\r" in name or "\n" in name or "\r" in value or "\n" in value:
        raise ValueError(f"Header {name!r} contains a line break")


class PartWriter:
    """Write handle for the body of one part of a MultipartWriter."""

    def __init__(self, multipart: "MultipartWriter") -> None:
        self._multipart = multipart

    def write(self, data: bytes) -> int:
        if self._multipart.closed or self._multipart.current_part is not self:
            raise ValueError("Part is no longer writable")
        return self._multipart.sink.write(data)


class MultipartWriter:
    """
    Writes a multipart body into ``sink``.

    The boundary token is fixed when the writer is created. Every part
    starts with a delimiter line, its headers and a blank line;
    ``close()`` writes the closing delimiter.
    """

    def __init__(self, sink: BinaryIO, boundary: str | None = None) -> None:
        self.sink = sink
        self.boundary = boundary or random_boundary()
        self.current_part: PartWriter | None = None
        self.closed = False

    @property
    def content_type(self) -> str:
        return f'multipart/mixed; boundary="{self.boundary}"'

    def create_part(self, headers: dict[str, str]) -> PartWriter:
        """
        Start a new part with the given headers and return its body writer.

        Headers are written in insertion order. Any writer returned for an
        earlier part stops accepting data.
        """
        if self.closed:
            raise ValueError("Multipart writer is closed")

        for name, value in headers.items():
            _check_header(name, value)

        delimiter = f"--{self.boundary}".encode("ascii") + CRLF
        if self.current_part is not None:
            delimiter = CRLF + delimiter

        lines = [delimiter]
        for name, value in headers.items():
            lines.append(f"{name}: {value}".encode("utf-8") + CRLF)
        lines.append(CRLF)
        self.sink.write(b"".join(lines))

        self.current_part = PartWriter(self)
        return self.current_part

    def close(self) -> None:
        """Write the closing delimiter. A writer can only be closed once."""
        if self.closed:
            raise ValueError("Multipart writer is already closed")

        closing = f"--{self.boundary}--".encode("ascii") + CRLF
        if self.current_part is not None:
            closing = CRLF + closing
        self.sink.write(closing)

        self.closed = True
        self.current_part = None


class Base64Encoder:
    """
    Streaming base64 encoder writing CRLF terminated 76 column lines.

    Input that does not fill a whole line is held back until more data
    arrives or the encoder is closed. ``close()`` must be called exactly
    once to flush the final, possibly padded, line.
    """

    def __init__(self, dest) -> None:
        self._dest = dest
        self._pending = b""
        self.closed = False

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError("Base64 encoder is closed")

        buffered = self._pending + bytes(data)
        whole = len(buffered) - len(buffered) % BASE64_LINE_INPUT
        if whole:
            self._dest.write(self._encode_lines(buffered[:whole]))
        self._pending = buffered[whole:]
        return len(data)

    def close(self) -> None:
        if self.closed:
            raise ValueError("Base64 encoder is already closed")
        self.closed = True
        if self._pending:
            self._dest.write(base64.b64encode(self._pending) + CRLF)
            self._pending = b""

    def __enter__(self) -> "Base64Encoder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.closed:
            self.close()

    @staticmethod
    def _encode_lines(data: bytes) -> bytes:
        return b"".join(
            base64.b64encode(data[i:i + BASE64_LINE_INPUT]) + CRLF
            for i in range(0, len(data), BASE64_LINE_INPUT)
        )
