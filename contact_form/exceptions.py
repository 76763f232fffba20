"""
Custom Exceptions for the Contact Form Mailer

Every failure in the submission pipeline is one of the errors below.
The dispatch controller catches them all and answers with the same
failure redirect; the context carried here only goes to the logs.
"""

from dataclasses import dataclass
from typing import Any, ClassVar


class ContactFormError(Exception):
    """Base exception for the contact form mailer."""

    kind: ClassVar[str] = "internal"

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class FormDecodeError(ContactFormError):
    """Request body or content type could not be decoded."""

    kind: ClassVar[str] = "decode"


@dataclass
class FormTooLargeError(FormDecodeError):
    """Text fields exceeded the in-memory decoding budget."""

    limit: int

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(
            f"Form fields exceed the {limit} byte memory budget",
            limit=limit,
        )


@dataclass
class FormFormatError(ContactFormError):
    """Request body is not a multipart payload."""

    kind: ClassVar[str] = "format"

    media_type: str

    def __init__(self, media_type: str) -> None:
        self.media_type = media_type
        super().__init__(
            f"Expected a multipart payload, got '{media_type}'",
            media_type=media_type,
        )


@dataclass
class SpamSuspectedError(ContactFormError):
    """Honeypot field was filled in."""

    kind: ClassVar[str] = "spam"

    field_name: str

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(
            "Spambot attack suspected",
            field_name=field_name,
        )


class MessageBuildError(ContactFormError):
    """Writing the outbound MIME message failed."""

    kind: ClassVar[str] = "build"


@dataclass
class MailSendError(ContactFormError):
    """Outbound mail transport rejected or failed to deliver the message."""

    kind: ClassVar[str] = "send"

    recipient: str | None = None

    def __init__(
        self,
        recipient: str | None = None,
        error_message: str | None = None,
    ) -> None:
        self.recipient = recipient
        super().__init__(
            f"Sending raw email failed{f' for {recipient}' if recipient else ''}: "
            f"{error_message or 'Unknown error'}",
            recipient=recipient,
            error_message=error_message,
        )


@dataclass
class InvalidStateTransitionError(ContactFormError):
    """Attempted invalid submission state transition."""

    current_state: str
    new_state: str
    allowed_transitions: list[str]

    def __init__(
        self,
        current_state: str,
        new_state: str,
        allowed_transitions: list[str],
    ) -> None:
        self.current_state = current_state
        self.new_state = new_state
        self.allowed_transitions = allowed_transitions
        super().__init__(
            f"Cannot transition from '{current_state}' to '{new_state}'. "
            f"Allowed transitions: {allowed_transitions}",
            current_state=current_state,
            new_state=new_state,
            allowed_transitions=allowed_transitions,
        )
