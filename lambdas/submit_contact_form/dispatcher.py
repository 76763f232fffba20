"""
Dispatch Module

Runs one submission through decode → honeypot → build → send and turns
the result into exactly one of two redirects.

Every failure, whatever its kind, ends on the same failure page. The
error kind is only written to the logs.
"""

import io
from dataclasses import dataclass
from typing import Any

import structlog

from contact_form.config import Settings
from contact_form.exceptions import ContactFormError, MessageBuildError
from contact_form.state_machine import SubmissionState, validate_transition
from contact_form.tools.ses import MailSender
from lambdas.submit_contact_form.form_decoder import DecodedForm, decode_form
from lambdas.submit_contact_form.header_composer import compose_header
from lambdas.submit_contact_form.message_builder import build_message_body
from lambdas.submit_contact_form.spam_guard import check_honeypot

log = structlog.get_logger()

REDIRECT_STATUS = 301  # the form posts expect a redirect, never an inline 200


def redirect(url: str) -> dict[str, Any]:
    """API Gateway proxy response sending the browser to ``url``."""
    return {
        "statusCode": REDIRECT_STATUS,
        "headers": {"Location": url},
    }


@dataclass(frozen=True)
class SubmissionOutcome:
    """Final result of one submission."""

    state: SubmissionState
    redirect_url: str
    error_kind: str | None = None
    message_id: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is SubmissionState.SUCCEEDED

    def to_response(self) -> dict[str, Any]:
        return redirect(self.redirect_url)


def assemble_message(form: DecodedForm, settings: Settings) -> bytes:
    """
    Build the complete raw email for a decoded form.

    Raises:
        MessageBuildError: If the body or header cannot be written
    """
    buffer = io.BytesIO()
    boundary = build_message_body(
        form,
        buffer,
        attachment_field=settings.attachment_field,
    )

    try:
        header = compose_header(
            sender=settings.sender,
            recipient=settings.recipient,
            subject=settings.subject,
            charset=settings.charset,
            boundary=boundary,
        )
    except (ValueError, LookupError) as e:
        raise MessageBuildError("Failed to compose message header", error=str(e)) from e

    return header + buffer.getvalue()


def _failed(
    state: SubmissionState,
    settings: Settings,
    error_kind: str,
) -> SubmissionOutcome:
    return SubmissionOutcome(
        state=validate_transition(state, SubmissionState.FAILED),
        redirect_url=settings.failure_page,
        error_kind=error_kind,
    )


def process_submission(
    body: str | bytes | None,
    content_type: str | None,
    *,
    settings: Settings,
    sender: MailSender,
) -> SubmissionOutcome:
    """
    Decode, check, build and send one contact form submission.

    Args:
        body: Base64 encoded multipart request body
        content_type: Request Content-Type header value
        settings: Addressing, redirect targets and form layout
        sender: Outbound mail transport, called at most once

    Returns:
        SubmissionOutcome in state SUCCEEDED or FAILED
    """
    state = SubmissionState.DECODING
    form: DecodedForm | None = None

    try:
        form = decode_form(body, content_type, max_memory=settings.max_memory_bytes)
        check_honeypot(form, settings.honeypot_field)
        state = validate_transition(state, SubmissionState.BUILDING)

        raw_message = assemble_message(form, settings)
        state = validate_transition(state, SubmissionState.SENDING)

        message_id = sender.send_raw(raw_message)
        state = validate_transition(state, SubmissionState.SUCCEEDED)

    except ContactFormError as e:
        log.warning(
            "submission_failed",
            state=state.value,
            error_kind=e.kind,
            error=str(e),
        )
        return _failed(state, settings, e.kind)

    except Exception as e:
        log.error(
            "submission_failed_unexpectedly",
            state=state.value,
            error=str(e),
            exc_info=True,
        )
        return _failed(state, settings, "internal")

    finally:
        if form is not None:
            form.close()

    log.info("submission_sent", message_id=message_id)

    return SubmissionOutcome(
        state=state,
        redirect_url=settings.success_page,
        message_id=message_id,
    )
