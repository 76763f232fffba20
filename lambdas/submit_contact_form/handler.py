"""
SubmitContactForm Lambda Handler

Main entry point for web page contact forms with binary attachments.
Mails each submission through SES and redirects the browser.

Trigger: API Gateway proxy integration (binary media type multipart/form-data)
Output: 301 redirect to the success or failure page

Flow:
1. Decode the base64 body as multipart/form-data
2. Reject submissions with a filled-in honeypot field
3. Build a multipart/mixed email with the text fields and attachments
4. Send it with the SES raw message API
5. Redirect to the success page, or to the failure page on any error
"""

import logging
from typing import Any

import structlog

from contact_form.config import get_settings
from contact_form.tools.ses import SesMailSender
from lambdas.submit_contact_form.dispatcher import process_submission, redirect
from lambdas.submit_contact_form.form_decoder import get_header

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logging.getLogger().setLevel(get_settings().log_level)

log = structlog.get_logger()


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    AWS Lambda handler for contact form submissions.

    Args:
        event: API Gateway proxy event with a base64 encoded body
        context: Lambda context

    Returns:
        API Gateway proxy response with status 301 and a Location header
    """
    request_id = getattr(context, "aws_request_id", "local")
    settings = get_settings()

    if not isinstance(event, dict):
        log.error("unknown_event_format", request_id=request_id)
        return redirect(settings.failure_page)

    content_type = get_header(event.get("headers"), "Content-Type")

    log.info(
        "processing_contact_form",
        request_id=request_id,
        content_type=content_type,
        is_base64_encoded=event.get("isBase64Encoded"),
    )

    outcome = process_submission(
        event.get("body"),
        content_type,
        settings=settings,
        sender=SesMailSender(settings),
    )

    log.info(
        "contact_form_processed",
        request_id=request_id,
        state=outcome.state.value,
        error_kind=outcome.error_kind,
        message_id=outcome.message_id,
    )

    return outcome.to_response()
