"""Mailbox listing through the IServ mail API and sending over SMTPS."""

import logging
import mimetypes
import smtplib
import ssl
from email.message import EmailMessage
from pathlib import Path

from requests import RequestException

from .session import IServError, IServSession

logger = logging.getLogger(__name__)

DEFAULT_SMTPS_PORT = 465


def get_emails(
    session: IServSession,
    path: str = "INBOX",
    length: int = 50,
    start: int = 0,
    order: str = "date",
    dir: str = "desc",
) -> dict:
    """List messages of a mailbox folder.

    Args:
        session: Authenticated IServSession
        path: Mailbox folder path
        length: Number of messages to return; 0 returns only the counters
        start: Index of the first message
        order: Column to sort by
        dir: Sort direction, "asc" or "desc"

    Returns:
        Decoded JSON message list
    """
    params = {
        "path": path,
        "length": length,
        "start": start,
        "order[column]": order,
        "order[dir]": dir,
    }
    try:
        data = session.fetch_json("mail", "api", "message", "list", params=params)
    except (RequestException, ValueError) as e:
        logger.error(f"Error getting emails: {e}")
        raise IServError("Error getting emails") from e
    logger.info("Got emails successfully")
    return data


def get_email_info(
    session: IServSession,
    path: str = "INBOX",
    length: int = 0,
    start: int = 0,
    order: str = "date",
    dir: str = "desc",
) -> dict:
    """Return mailbox metadata (totals, unread counts) without messages."""
    return get_emails(session, path, length, start, order, dir)


def get_email_source(session: IServSession, uid: int, path: str = "INBOX") -> str:
    """Return the raw RFC 822 source of message ``uid``."""
    try:
        source = session.fetch_text(
            "mail", "show", "source", params={"path": path, "msg": uid}
        )
    except RequestException as e:
        logger.error(f"Error getting email source: {e}")
        raise IServError("Error getting email source") from e
    logger.info("Got email source")
    return source


def get_mail_folders(session: IServSession) -> dict:
    try:
        data = session.fetch_json("mail", "api", "folder", "list")
    except (RequestException, ValueError) as e:
        logger.error(f"Error getting mail folders: {e}")
        raise IServError("Error getting mail folders") from e
    logger.info("Got email folders")
    return data


def build_message(
    sender: str,
    receiver: str,
    subject: str,
    body: str,
    html_body: str | None = None,
    attachments: list[Path] | None = None,
) -> EmailMessage:
    """Assemble a plain text (optionally HTML alternative) message."""
    message = EmailMessage()
    message["From"] = sender
    message["To"] = receiver
    message["Subject"] = subject
    message.set_content(body)
    if html_body:
        message.add_alternative(html_body, subtype="html")

    for attachment in attachments or []:
        attachment = Path(attachment)
        mime_type, _ = mimetypes.guess_type(attachment.name)
        maintype, subtype = (mime_type or "application/octet-stream").split("/", 1)
        message.add_attachment(
            attachment.read_bytes(),
            maintype=maintype,
            subtype=subtype,
            filename=attachment.name,
        )
        logger.debug(f"Added attachment: {attachment}")
    return message


def send_email(
    username: str,
    password: str,
    host: str,
    receiver: str,
    subject: str,
    body: str,
    html_body: str | None = None,
    smtp_server: str | None = None,
    smtps_port: int = DEFAULT_SMTPS_PORT,
    attachments: list[Path] | None = None,
) -> None:
    """Send a message from ``<username>@<host>`` over SMTPS.

    The IServ host doubles as SMTP server unless ``smtp_server`` is given.

    Raises:
        IServError: If the message cannot be built, connected or delivered
    """
    smtp_server = smtp_server or host
    try:
        message = build_message(
            f"{username}@{host}", receiver, subject, body, html_body, attachments
        )
        context = ssl.create_default_context()
        with smtplib.SMTP_SSL(smtp_server, smtps_port, context=context) as server:
            server.login(username, password)
            server.send_message(message)
    except (OSError, smtplib.SMTPException) as e:
        logger.error(f"Failed to send email: {e}")
        raise IServError("Failed to send email") from e
    logger.info(f"Email sent successfully via SMTPS (port {smtps_port})")
