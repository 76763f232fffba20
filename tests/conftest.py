"""
Pytest Configuration and Shared Fixtures

Provides moto AWS mocking, settings, multipart payloads and test utilities.
"""

import os
from unittest.mock import MagicMock

import boto3
import pytest
from moto import mock_aws

# Set test environment before importing application modules
os.environ["CONTACT_FORM_SENDER"] = "form@test.example.com"
os.environ["CONTACT_FORM_RECIPIENT"] = "owner@test.example.com"
os.environ["CONTACT_FORM_SUCCESS_PAGE"] = "https://test.example.com/thankyou.html"
os.environ["CONTACT_FORM_FAILURE_PAGE"] = "https://test.example.com/problem.html"
os.environ["CONTACT_FORM_AWS_REGION"] = "us-west-2"
os.environ["AWS_DEFAULT_REGION"] = "us-west-2"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"

from contact_form.config import Settings, get_settings  # noqa: E402
from tests.utils.event_generator import MockSubmissionGenerator  # noqa: E402


# --- Settings Fixtures ---


@pytest.fixture
def settings() -> Settings:
    """Explicit settings object handed to the pipeline."""
    return Settings(
        sender="form@test.example.com",
        recipient="owner@test.example.com",
        subject="contact me",
        success_page="https://test.example.com/thankyou.html",
        failure_page="https://test.example.com/problem.html",
        aws_region="us-west-2",
    )


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Make every test read the environment afresh."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# --- Payload Fixtures ---


@pytest.fixture
def generator() -> MockSubmissionGenerator:
    """Seeded submission generator for deterministic payloads."""
    return MockSubmissionGenerator(seed=42)


@pytest.fixture
def pdf_bytes() -> bytes:
    """Small binary blob posing as a PDF, including bytes that are not UTF-8."""
    return b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n" + bytes(range(256)) * 4 + b"\n%%EOF\n"


# --- Collaborator Fixtures ---


@pytest.fixture
def mail_sender() -> MagicMock:
    """MailSender double that accepts every message."""
    sender = MagicMock()
    sender.send_raw.return_value = "msg-0001"
    return sender


# --- AWS Mocking Fixtures ---


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    return {
        "aws_access_key_id": "testing",
        "aws_secret_access_key": "testing",
        "region_name": "us-west-2",
    }


@pytest.fixture
def mock_ses(aws_credentials):
    """Create a mocked SES client with verified sender and recipient."""
    with mock_aws():
        ses = boto3.client("ses", **aws_credentials)
        ses.verify_email_identity(EmailAddress="form@test.example.com")
        ses.verify_email_identity(EmailAddress="owner@test.example.com")
        yield ses
