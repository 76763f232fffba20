"""
Tool implementations for the contact form mailer.

Each tool wraps one external service behind a small, mockable surface.
"""

from contact_form.tools.ses import MailSender, SesMailSender

__all__ = [
    "MailSender",
    "SesMailSender",
]
