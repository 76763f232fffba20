"""
Outer header block of the outbound email.

The header names the boundary the message builder used, so it can only
be composed once the body is complete. Subject must stay the last line.
"""

from email.header import Header

from lambdas.submit_contact_form.mime_writer import CRLF


def _encode_subject(subject: str, charset: str) -> str:
    if subject.isascii():
        return subject
    # RFC 2047 encoded-word for non-ASCII subjects
    return Header(subject, charset).encode(maxlinelen=0)


def compose_header(
    *,
    sender: str,
    recipient: str,
    subject: str,
    charset: str,
    boundary: str,
) -> bytes:
    """
    Build the email header for a multipart/mixed body.

    Lines are written in a fixed order, each CRLF terminated, and the
    block ends with the blank line separating header from body.

    Raises:
        ValueError: If any value contains a line break
    """
    lines = [
        ("MIME-Version", "1.0"),
        ("Content-Disposition", "inline"),
        ("Content-Type", f'multipart/mixed; boundary="{boundary}"'),
        ("From", sender),
        ("To", recipient),
        ("Subject", subject),
    ]

    header = bytearray()
    for name, value in lines:
        if "\r" in value or "\n" in value:
            raise ValueError(f"Header {name!r} contains a line break")
        if name == "Subject":
            value = _encode_subject(value, charset)
        header += f"{name}: {value}".encode("utf-8") + CRLF
    header += CRLF
    return bytes(header)
