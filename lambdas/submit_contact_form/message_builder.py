"""
Message Builder Module

Writes the body of the outbound email: a multipart/mixed message whose
first part is the submitted text and whose remaining parts are the
attached files.

The text part layout is fixed:

    name:  <name>

    email: <email>

    message:

    <message>
"""

import mimetypes
import quopri
import shutil
from contextlib import closing
from email.utils import encode_rfc2231
from typing import BinaryIO

import structlog

from contact_form.exceptions import MessageBuildError
from lambdas.submit_contact_form.form_decoder import DecodedForm, FilePart
from lambdas.submit_contact_form.mime_writer import Base64Encoder, MultipartWriter

log = structlog.get_logger()

DEFAULT_ATTACHMENT_FIELD = "attachment"
WITHHELD = "(withheld)"
FALLBACK_MIME_TYPE = "application/octet-stream"
COPY_CHUNK_SIZE = 57 * 1024

# mimetypes reports these extensions as content encodings, not types
ENCODING_MIME_TYPES = {
    "gzip": "application/gzip",
    "bzip2": "application/x-bzip2",
    "xz": "application/x-xz",
    "compress": "application/x-compress",
    "br": "application/x-brotli",
}


def mime_type_for(filename: str) -> str:
    """
    Content type for an attachment, from the text after the last '.'.

    Unregistered or missing extensions map to application/octet-stream.
    """
    if "." not in filename:
        return FALLBACK_MIME_TYPE
    extension = filename.rsplit(".", 1)[1]
    if not extension:
        return FALLBACK_MIME_TYPE
    mime_type, encoding = mimetypes.guess_type(f"attachment.{extension}")
    if mime_type is None and encoding is not None:
        mime_type = ENCODING_MIME_TYPES.get(encoding)
    return mime_type or FALLBACK_MIME_TYPE


def content_disposition_for(filename: str) -> str:
    """Attachment disposition carrying ``filename`` safely quoted."""
    if filename.isascii() and filename.isprintable():
        quoted = filename.replace("\\", "\\\\").replace('"', '\\"')
        return f'attachment; filename="{quoted}"'
    # RFC 2231 extended parameter for names that need encoding
    return f"attachment; filename*={encode_rfc2231(filename, 'utf-8')}"


def render_text(form: DecodedForm) -> str:
    """Text part contents with ``(withheld)`` for every empty field."""
    name = form.value("name") or WITHHELD
    email = form.value("email") or WITHHELD
    message = form.value("message") or WITHHELD
    return f"name:  {name}\n\nemail: {email}\n\nmessage:\n\n{message}"


def encode_quoted_printable(text: str) -> bytes:
    """UTF-8 quoted-printable body with CRLF line breaks."""
    normalized = text.replace("\r\n", "\n").replace("\r", "\n").replace("\n", "\r\n")
    return quopri.encodestring(normalized.encode("utf-8"))


def write_text_part(writer: MultipartWriter, form: DecodedForm) -> None:
    body = writer.create_part({
        "Content-Type": "text/plain; charset=utf-8",
        "Content-Transfer-Encoding": "quoted-printable",
    })
    body.write(encode_quoted_printable(render_text(form)))


def write_attachment_part(writer: MultipartWriter, part: FilePart) -> None:
    """
    Stream one file part into the message as a base64 attachment.

    The source stream is closed and the encoder finalized whether or not
    the copy succeeds.
    """
    mime_type = mime_type_for(part.filename)

    with closing(part.open()) as source:
        dest = writer.create_part({
            "Content-Type": mime_type,
            "Content-Transfer-Encoding": "base64",
            "Content-Disposition": content_disposition_for(part.filename),
        })
        with Base64Encoder(dest) as encoder:
            shutil.copyfileobj(source, encoder, COPY_CHUNK_SIZE)

    log.debug(
        "attachment_written",
        filename=part.filename,
        content_type=mime_type,
        size_bytes=part.size,
    )


def build_message_body(
    form: DecodedForm,
    buffer: BinaryIO,
    *,
    attachment_field: str = DEFAULT_ATTACHMENT_FIELD,
) -> str:
    """
    Write the complete multipart/mixed body into ``buffer``.

    File parts with an empty filename stand for an unused file input and
    are skipped.

    Args:
        form: Decoded form submission
        buffer: Append-only byte sink for the message body
        attachment_field: Name of the form's file input

    Returns:
        Boundary token used for every delimiter written to ``buffer``

    Raises:
        MessageBuildError: If any part cannot be written or the writer
            cannot be closed. The buffer contents must then be discarded.
    """
    writer = MultipartWriter(buffer)
    attached = 0

    try:
        write_text_part(writer, form)

        for part in form.files.get(attachment_field, []):
            if part.filename == "":
                continue
            write_attachment_part(writer, part)
            attached += 1

        writer.close()
    except (OSError, ValueError) as e:
        log.error(
            "message_build_failed",
            error=str(e),
            attachments_written=attached,
        )
        raise MessageBuildError(
            "Failed to build outbound message",
            error=str(e),
            attachments_written=attached,
        ) from e

    log.info(
        "message_built",
        boundary=writer.boundary,
        attachment_count=attached,
    )

    return writer.boundary
