"""Disk usage and file storage queries."""

import logging

from requests import RequestException

from .parser import parse_disk_usage
from .session import IServError, IServSession

logger = logging.getLogger(__name__)


def get_disk_space(session: IServSession) -> dict:
    """Return the account's disk usage data embedded in /iserv/du/account."""
    try:
        html = session.fetch_text("du", "account")
        usage = parse_disk_usage(html)
    except (RequestException, ValueError) as e:
        logger.error(f"Error getting disk space: {e}")
        raise IServError("Error getting disk space") from e

    if usage is None:
        raise IServError("Could not find disk usage data")
    logger.info("Got disk space")
    return usage


def get_folder_size(session: IServSession, path: str) -> dict:
    """Ask the file module to calculate the size of ``path``."""
    try:
        data = session.fetch_json("file", "calc", params={"path": path})
    except (RequestException, ValueError) as e:
        logger.error(f"Error getting folder size: {e}")
        raise IServError("Error getting folder size") from e
    logger.info(f"Got folder size for {path}")
    return data
