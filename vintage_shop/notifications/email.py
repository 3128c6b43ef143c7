import asyncio
import logging
import re
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from pathlib import Path

import aiosmtplib
from jinja2 import Environment, FileSystemLoader

from vintage_shop.core.config import Settings
from vintage_shop.core.logging import mask_email

logger = logging.getLogger(__name__)

_template_dir = Path(__file__).parent / "templates"
_jinja_env = Environment(loader=FileSystemLoader(str(_template_dir)), autoescape=True)


def format_price(amount: int) -> str:
    """Render minor units as a złoty amount, e.g. 12345 -> '123,45 zł'."""
    return f"{amount // 100},{amount % 100:02d} zł"


_jinja_env.filters["price"] = format_price

ALLOWED_TEMPLATES = {"order_confirmation.html"}

_RETRY_DELAYS = (1, 2, 4)
_SMTP_TIMEOUT_SECONDS = 30

_TRANSIENT_EXCEPTIONS = (
    aiosmtplib.SMTPConnectError,
    aiosmtplib.SMTPConnectTimeoutError,
    aiosmtplib.SMTPServerDisconnected,
)


def _sanitize_header(value: str) -> str:
    """Strip newline characters to prevent email header injection."""
    return value.replace("\r", "").replace("\n", "")


def _html_to_plaintext(html_body: str) -> str:
    text = re.sub(r"<br\s*/?>", "\n", html_body)
    text = re.sub(r"</(?:p|div|tr|li|h[1-6])>", "\n", text)
    text = re.sub(r"<[^>]+>", "", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _smtp_config(settings: Settings) -> dict:
    port = settings.smtp_port
    return {
        "hostname": settings.smtp_host,
        "port": port,
        "username": settings.smtp_username or None,
        "password": settings.smtp_password or None,
        "start_tls": settings.smtp_use_tls and port != 465,
        "use_tls": port == 465,
        "timeout": _SMTP_TIMEOUT_SECONDS,
    }


async def _send_with_retry(message: MIMEMultipart, smtp: dict) -> None:
    """Send a message, retrying connection drops and 4xx replies."""
    last_exc: Exception | None = None
    for attempt, delay in enumerate(_RETRY_DELAYS, 1):
        try:
            await aiosmtplib.send(message, **smtp)
            return
        except aiosmtplib.SMTPResponseException as exc:
            if exc.code >= 500:
                raise
            logger.warning("Transient SMTP error (attempt %d/%d): %s", attempt, len(_RETRY_DELAYS), exc)
            last_exc = exc
        except _TRANSIENT_EXCEPTIONS as exc:
            logger.warning("Transient SMTP error (attempt %d/%d): %s", attempt, len(_RETRY_DELAYS), exc)
            last_exc = exc
        if attempt < len(_RETRY_DELAYS):
            await asyncio.sleep(delay)
    raise last_exc  # type: ignore[misc]


def render_template(template_name: str, context: dict) -> str:
    return _jinja_env.get_template(template_name).render(**context)


async def send_email(
    to: str,
    subject: str,
    template_name: str,
    context: dict,
    *,
    settings: Settings,
) -> bool:
    smtp = _smtp_config(settings)
    if not smtp["hostname"]:
        logger.debug("SMTP not configured, skipping email to %s", mask_email(to))
        return False

    if template_name not in ALLOWED_TEMPLATES:
        logger.error("Blocked email with disallowed template: %s", template_name)
        return False

    from_address = settings.smtp_from_address
    if not from_address.strip():
        logger.warning("SMTP from-address is not configured, skipping email")
        return False

    try:
        context.setdefault("shop_name", settings.shop_name)
        context.setdefault("frontend_url", settings.frontend_url)
        html_body = render_template(template_name, context)

        if "\n" in to or "\r" in to:
            raise ValueError("Invalid email recipient: contains newline characters")

        message = MIMEMultipart("alternative")
        message["From"] = formataddr((_sanitize_header(settings.shop_name), from_address))
        message["To"] = to
        message["Subject"] = _sanitize_header(subject)
        message["Date"] = formatdate(localtime=True)
        domain = from_address.split("@")[-1] if "@" in from_address else "localhost"
        message["Message-ID"] = make_msgid(domain=domain)
        message.attach(MIMEText(_html_to_plaintext(html_body), "plain"))
        message.attach(MIMEText(html_body, "html"))

        await _send_with_retry(message, smtp)
        logger.info("Email sent to %s: %s", mask_email(to), subject)
        return True
    except Exception:
        logger.exception("Failed to send email to %s", mask_email(to))
        return False
