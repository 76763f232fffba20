"""
Integration tests for the contact form mailer.

These tests use mocked AWS services (moto) to run complete submissions
from an API Gateway event through to the SES outbox.
"""
