# Shared Infrastructure for the Contact Form Mailer
"""
Shared infrastructure used by the submission Lambda.

This package provides:
- Submission state machine (SubmissionState, valid transitions)
- SES mail sender
- Configuration management
- Custom exceptions
"""

from contact_form.config import Settings, get_settings
from contact_form.exceptions import (
    ContactFormError,
    FormDecodeError,
    FormFormatError,
    FormTooLargeError,
    InvalidStateTransitionError,
    MailSendError,
    MessageBuildError,
    SpamSuspectedError,
)
from contact_form.state_machine import SubmissionState, VALID_TRANSITIONS, validate_transition

__all__ = [
    # State machine
    "SubmissionState",
    "VALID_TRANSITIONS",
    "validate_transition",
    # Exceptions
    "ContactFormError",
    "FormDecodeError",
    "FormFormatError",
    "FormTooLargeError",
    "InvalidStateTransitionError",
    "MailSendError",
    "MessageBuildError",
    "SpamSuspectedError",
    # Config
    "Settings",
    "get_settings",
]
