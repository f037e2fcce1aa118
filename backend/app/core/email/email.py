import logging
import os
from functools import lru_cache
from typing import Any, Dict, List, Optional, Union

import boto3
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from jinja2 import Template

from app.config import settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")


@lru_cache(maxsize=1)
def get_ses_client():
    return boto3.client(
        "ses",
        region_name=settings.SES_REGION,
        aws_access_key_id=settings.SES_ACCESS_KEY,
        aws_secret_access_key=settings.SES_SECRET_KEY,
    )


def render_template(
    template_path: Optional[str] = None,
    template_str: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Render a Jinja2 template from either a file under ``templates/`` or a
    template string.
    """
    if template_path:
        template_path = os.path.join(TEMPLATE_DIR, template_path)
        if not os.path.exists(template_path):
            raise FileNotFoundError(f"Template file not found: {template_path}")

        with open(template_path, "r", encoding="utf-8") as file:
            template_str = file.read()

    if not template_str:
        raise ValueError("Either template_path or template_str must be provided")

    return Template(template_str).render(context or {})


def send_email(
    recipients: Union[str, List[str]],
    subject: str,
    body_text: Optional[str] = None,
    body_html: Optional[str] = None,
    sender: Optional[str] = None,
) -> Dict:
    """
    Send an email through SES and return the SES response.

    Errors from SES propagate; callers decide how a failed delivery is
    recorded.
    """
    if isinstance(recipients, str):
        recipients = [recipients]
    if not settings.EMAIL_SENDER and not sender:
        raise RuntimeError("APP_EMAIL_SENDER is not configured")

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = sender or formataddr(
        (settings.EMAIL_SENDER_NAME, settings.EMAIL_SENDER)
    )
    msg["To"] = ", ".join(recipients)

    if body_text:
        msg.attach(MIMEText(body_text, "plain"))
    if body_html:
        msg.attach(MIMEText(body_html, "html"))

    response = get_ses_client().send_raw_email(
        Source=msg["From"],
        Destinations=recipients,
        RawMessage={"Data": msg.as_string()},
    )
    logger.info("email sent to %s, message id %s", recipients, response["MessageId"])
    return response
