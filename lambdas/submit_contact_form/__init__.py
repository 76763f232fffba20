"""
SubmitContactForm Lambda

Mails web page contact form submissions, attachments included.

Flow:
    Browser form post
    → API Gateway (base64 encoded multipart/form-data)
    → This Lambda
    → SES SendRawEmail
    → 301 redirect to the success or failure page
"""

from lambdas.submit_contact_form.dispatcher import (
    SubmissionOutcome,
    process_submission,
    redirect,
)
from lambdas.submit_contact_form.form_decoder import (
    DecodedForm,
    FilePart,
    decode_form,
)
from lambdas.submit_contact_form.handler import lambda_handler
from lambdas.submit_contact_form.header_composer import compose_header
from lambdas.submit_contact_form.message_builder import build_message_body
from lambdas.submit_contact_form.spam_guard import check_honeypot

__all__ = [
    "DecodedForm",
    "FilePart",
    "SubmissionOutcome",
    "build_message_body",
    "check_honeypot",
    "compose_header",
    "decode_form",
    "lambda_handler",
    "process_submission",
    "redirect",
]
