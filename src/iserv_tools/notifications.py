"""Notification, badge and service health endpoints."""

import logging

from requests import RequestException

from .session import IServError, IServSession, fetch_api_json

logger = logging.getLogger(__name__)

NOTIFICATION_API = ("notification", "api", "v1", "notifications")


def get_notifications(session: IServSession) -> dict:
    return fetch_api_json(session, "notifications", "user", "api", "notifications")


def get_badges(session: IServSession) -> dict:
    """Return the unread counters shown in the navigation bar."""
    return fetch_api_json(session, "badges", "app", "navigation", "badges")


def get_conference_health(session: IServSession) -> dict:
    return fetch_api_json(
        session, "conference health", "videoconference", "api", "health"
    )


def read_all_notifications(session: IServSession):
    """Mark every notification as read and return the response."""
    try:
        response = session.post_form(*NOTIFICATION_API, "readall")
    except RequestException as e:
        logger.error(f"Error marking notifications as read: {e}")
        raise IServError("Error marking notifications as read") from e
    logger.info("Read all notifications")
    return response


def read_notification(session: IServSession, notification_id: int):
    """Mark one notification as read and return the response."""
    try:
        response = session.post_form(*NOTIFICATION_API, notification_id, "read")
    except RequestException as e:
        logger.error(f"Error marking notification as read: {e}")
        raise IServError("Error marking notification as read") from e
    logger.info(f"Read notification {notification_id}")
    return response
