"""
SES Tools

Outbound mail delivery through the SES raw message API. The submission
pipeline only depends on the MailSender protocol, so tests and local
runs can hand it any object with a ``send_raw`` method.
"""

from typing import Protocol

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from contact_form.config import Settings, get_settings
from contact_form.exceptions import MailSendError

log = structlog.get_logger()


class MailSender(Protocol):
    """Anything that can deliver a complete raw RFC 5322 message."""

    def send_raw(self, data: bytes) -> str:
        """Deliver ``data`` and return the transport's message id."""
        ...


def _get_client(settings: Settings):
    """Get SES client."""
    return boto3.client("ses", **settings.ses_config)


class SesMailSender:
    """
    MailSender backed by ``ses.send_raw_email``.

    The From/To addresses are taken from the raw message headers, so the
    sender and recipient must both be verified SES identities while the
    account is in the SES sandbox.
    """

    def __init__(self, settings: Settings | None = None, client=None) -> None:
        self._settings = settings or get_settings()
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = _get_client(self._settings)
        return self._client

    def send_raw(self, data: bytes) -> str:
        """
        Send a raw email via SES.

        Args:
            data: Header bytes followed by the MIME body

        Returns:
            SES message ID

        Raises:
            MailSendError: If SES rejects the message or cannot be reached
        """
        send_params = {"RawMessage": {"Data": data}}
        if self._settings.ses_configuration_set:
            send_params["ConfigurationSetName"] = self._settings.ses_configuration_set

        log.info(
            "sending_raw_email",
            to=self._settings.recipient,
            size_bytes=len(data),
        )

        try:
            response = self.client.send_raw_email(**send_params)
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            error_message = e.response["Error"]["Message"]

            log.error(
                "ses_send_raw_failed",
                to=self._settings.recipient,
                error_code=error_code,
                error_message=error_message,
            )

            raise MailSendError(
                recipient=self._settings.recipient,
                error_message=f"{error_code}: {error_message}",
            ) from e
        except BotoCoreError as e:
            log.error(
                "ses_unreachable",
                to=self._settings.recipient,
                error=str(e),
            )
            raise MailSendError(
                recipient=self._settings.recipient,
                error_message=str(e),
            ) from e

        message_id = response["MessageId"]
        log.info(
            "raw_email_sent",
            message_id=message_id,
            to=self._settings.recipient,
        )
        return message_id
