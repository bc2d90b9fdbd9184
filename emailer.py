import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List

from config import EMAIL_CONFIG
from logger import get_logger
from models import EmailResult

log = get_logger("emailer")

def send_email(to_addrs: List[str], subject: str, html: str) -> EmailResult:
    """
    Send one HTML email over SMTP. Never raises for transport problems:
    the outcome comes back as EmailResult so callers decide what a failure means.
    """
    to_addrs = [a.strip() for a in (to_addrs or []) if a and a.strip()]
    if not to_addrs:
        log.warning(f"No recipients for email '{subject}'; not sent.")
        return EmailResult(False, "no recipients")

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = EMAIL_CONFIG["from_addr"]
    msg["To"] = ", ".join(to_addrs)

    msg.attach(MIMEText(html, "html"))

    try:
        with smtplib.SMTP(
            EMAIL_CONFIG["smtp_server"],
            EMAIL_CONFIG["smtp_port"],
            timeout=EMAIL_CONFIG["timeout"],
        ) as server:
            server.starttls()
            if EMAIL_CONFIG["smtp_password"]:
                server.login(EMAIL_CONFIG["smtp_username"], EMAIL_CONFIG["smtp_password"])
            server.sendmail(msg["From"], to_addrs, msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        log.error(f"Failed sending email '{subject}' -> {to_addrs}: {e}")
        return EmailResult(False, str(e) or e.__class__.__name__)

    log.info(f"Email sent: {subject} -> {to_addrs}")
    return EmailResult(True)
