"""
Honeypot check for contact form submissions.

The form carries a field hidden with display:none in the page's CSS.
People never see it, so any value in it came from a bot.
"""

import structlog

from contact_form.exceptions import SpamSuspectedError
from lambdas.submit_contact_form.form_decoder import DecodedForm

log = structlog.get_logger()

DEFAULT_HONEYPOT_FIELD = "office"


def check_honeypot(form: DecodedForm, field_name: str = DEFAULT_HONEYPOT_FIELD) -> None:
    """
    Reject the submission if the honeypot field was filled in.

    Raises:
        SpamSuspectedError: If the joined honeypot value is non-empty
    """
    if form.value(field_name) != "":
        log.warning("honeypot_triggered", field_name=field_name)
        raise SpamSuspectedError(field_name=field_name)
