"""
FastAPI Server for Local Development

Serves a sample contact form and runs real browser posts through the
SubmitContactForm Lambda handler in-process. SES is mocked with moto, so
nothing is ever delivered; sent messages can be inspected at /outbox.

Run:
    python -m scripts.local_api_server
"""

import base64
import logging
import os
from contextlib import asynccontextmanager
from typing import Any

# Set environment for local mode BEFORE any other imports
PORT = int(os.environ.get("CONTACT_FORM_LOCAL_PORT", "8000"))
os.environ["CONTACT_FORM_SES_ENDPOINT_URL"] = "mock"
os.environ.setdefault("CONTACT_FORM_SUCCESS_PAGE", f"http://localhost:{PORT}/thankyou.html")
os.environ.setdefault("CONTACT_FORM_FAILURE_PAGE", f"http://localhost:{PORT}/problem.html")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

from moto import mock_aws
from moto.core import DEFAULT_ACCOUNT_ID
from moto.ses.models import ses_backends

mock = mock_aws()
mock.start()

import boto3
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse

# Clear settings cache so the env vars above take effect
from contact_form.config import get_settings

get_settings.cache_clear()

from lambdas.submit_contact_form.handler import lambda_handler

logging.basicConfig(level=logging.INFO, format="%(message)s")

# Console logging for local runs, replacing the handler's JSON renderer
structlog.configure(
    processors=[
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=False,
)

log = structlog.get_logger()

FORM_PAGE = """<!doctype html>
<html>
<head>
<title>contact me</title>
<style>.office { display: none; }</style>
</head>
<body>
<form action="/contact" method="post" enctype="multipart/form-data">
  <p><label>name <input name="name"></label></p>
  <p><label>email <input name="email" type="email"></label></p>
  <p class="office"><label>office <input name="office" tabindex="-1" autocomplete="off"></label></p>
  <p><label>message <textarea name="message" rows="8" cols="60"></textarea></label></p>
  <p><input name="attachment" type="file"></p>
  <p><input name="attachment" type="file"></p>
  <p><button type="submit">send</button></p>
</form>
<p><a href="/outbox">outbox</a></p>
</body>
</html>
"""


def setup_local_ses() -> None:
    """Verify the configured identities in the mocked SES backend."""
    settings = get_settings()
    ses = boto3.client("ses", region_name=settings.aws_region)
    for address in (settings.sender, settings.recipient):
        ses.verify_email_identity(EmailAddress=address)
    log.info("local_ses_ready", sender=settings.sender, recipient=settings.recipient)


def build_proxy_event(request: Request, body: bytes) -> dict[str, Any]:
    """Shape a browser request like an API Gateway proxy event."""
    return {
        "resource": "/contact",
        "path": request.url.path,
        "httpMethod": request.method,
        "headers": dict(request.headers),
        "body": base64.b64encode(body).decode("ascii"),
        "isBase64Encoded": True,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    setup_local_ses()
    yield
    mock.stop()
    log.info("shutting_down")


app = FastAPI(
    title="Contact Form Mailer (local)",
    lifespan=lifespan,
)


@app.get("/", response_class=HTMLResponse)
def form_page() -> str:
    return FORM_PAGE


@app.post("/contact")
async def submit(request: Request) -> RedirectResponse:
    body = await request.body()
    response = lambda_handler(build_proxy_event(request, body), None)
    return RedirectResponse(
        url=response["headers"]["Location"],
        status_code=response["statusCode"],
    )


@app.get("/thankyou.html", response_class=HTMLResponse)
def thank_you() -> str:
    return "<p>Thanks, your message was sent.</p><p><a href=\"/\">back</a></p>"


@app.get("/problem.html", response_class=HTMLResponse)
def problem() -> str:
    return "<p>Sorry, your message could not be sent.</p><p><a href=\"/\">back</a></p>"


@app.get("/outbox")
def outbox() -> list[dict[str, Any]]:
    """Raw messages accepted by the mocked SES backend."""
    backend = ses_backends[DEFAULT_ACCOUNT_ID][get_settings().aws_region]
    return [
        {
            "id": message.id,
            "source": message.source,
            "destinations": message.destinations,
            "raw_data": message.raw_data,
        }
        for message in backend.sent_messages
    ]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=PORT)
