"""IServ calendar feeds and event creation/deletion."""

import logging
from collections.abc import Sequence
from datetime import date, datetime
from enum import Enum

from requests import RequestException

from .parser import parse_form_errors, parse_form_token
from .recurrence import (
    EncodedForm,
    IntervalType,
    RecurrenceSpec,
    encode,
    encode_alarms,
    form_fields,
)
from .session import IServError, IServSession, fetch_api_json
from .users import search_users_autocomplete

logger = logging.getLogger(__name__)

FORM = "eventForm"
RECURRING_FORM = f"{FORM}[recurring]"
TOKEN_INPUT_ID = "eventForm__token"
DATE_FORMAT = "%d.%m.%Y"
TIME_FORMAT = "%H:%M"


class ShowMeAs(Enum):
    OPAQUE = "OPAQUE"
    TRANSPARENT = "TRANSPARENT"


class Privacy(Enum):
    PUBLIC = "PUBLIC"
    CONFIDENTIAL = "CONFIDENTIAL"
    PRIVATE = "PRIVATE"


def get_upcoming_events(session: IServSession) -> dict:
    return fetch_api_json(session, "upcoming events", "calendar", "api", "upcoming")


def get_event_sources(session: IServSession) -> dict:
    """Return the calendars (event sources) visible to the user."""
    return fetch_api_json(session, "event sources", "calendar", "api", "eventsources")


def get_events(session: IServSession, start: date, end: date) -> list:
    """Return the events of all calendars between ``start`` and ``end``."""
    params = {"start": start.strftime("%Y-%m-%d"), "end": end.strftime("%Y-%m-%d")}
    return fetch_api_json(
        session,
        f"calendar events from {params['start']} to {params['end']}",
        "calendar",
        "feed",
        "calendar-multi",
        params=params,
    )


def _lookup_timestamp(moment: datetime) -> str:
    return f"{moment:%Y-%m-%dT%H:%M:%S}.{moment.microsecond // 1000:03d}Z"


def search_event(
    session: IServSession, query: str, start: datetime, end: datetime
) -> list:
    """Look up events whose summary matches ``query`` within a time range."""
    params = {
        "summary": query,
        "start": _lookup_timestamp(start),
        "end": _lookup_timestamp(end),
    }
    return fetch_api_json(
        session,
        f"calendar events matching '{query}'",
        "calendar",
        "api",
        "lookup_event",
        params=params,
    )


def get_calendar_plugin_events(
    session: IServSession, plugin: str, start: datetime, end: datetime
) -> list:
    """Return events provided by a calendar plugin (holidays, timetables)."""
    params = {"plugin": plugin, "start": start.isoformat(), "end": end.isoformat()}
    return fetch_api_json(
        session, f"{plugin} events", "calendar", "feed", "plugin", params=params
    )


def delete_event(
    session: IServSession,
    uid: str,
    hash: str,
    calendar: str,
    start: datetime,
    series: bool = False,
) -> dict:
    """Delete one occurrence of an event, or its whole series.

    Returns:
        Decoded JSON response of the portal
    """
    params = {
        "uid": uid,
        "hash": hash,
        "cal": calendar,
        "start": start.isoformat(timespec="seconds"),
        "edit_series": "series" if series else "single",
    }
    try:
        result = session.post_form("calendar", "delete", params=params).json()
    except (RequestException, ValueError) as e:
        logger.error(f"Error deleting event: {e}")
        raise IServError("Error deleting event") from e
    logger.info(f"Deleted event {uid}")
    return result


def build_event_form(
    subject: str,
    calendar: str,
    start: datetime,
    end: datetime,
    token: str,
    category: str = "",
    location: str = "",
    description: str = "",
    show_me_as: ShowMeAs = ShowMeAs.OPAQUE,
    privacy: Privacy = Privacy.PUBLIC,
    recurrence: EncodedForm | None = None,
    alarms: EncodedForm | None = None,
    participants: Sequence[str] = (),
) -> dict[str, str]:
    """Build the complete event form body.

    ``recurrence`` and ``alarms`` are the already encoded fragments from
    recurrence.encode() and recurrence.encode_alarms(). Without a recurrence
    the event is sent as non-recurring.
    """
    form = {
        f"{FORM}[uid]": "",
        f"{FORM}[etag]": "",
        f"{FORM}[hash]": "",
        f"{FORM}[calendarOrg]": "",
        f"{FORM}[startOrg]": "",
        f"{FORM}[action]": "create",
        f"{FORM}[seriesAction]": "",
        f"{FORM}[invited]": "",
        f"{FORM}[subscription]": "",
        f"{FORM}[subject]": subject,
        f"{FORM}[calendar]": calendar,
        f"{FORM}[category]": category,
        f"{FORM}[location]": location,
        f"{FORM}[startDate]": start.strftime(DATE_FORMAT),
        f"{FORM}[startTime]": start.strftime(TIME_FORMAT),
        f"{FORM}[endDate]": end.strftime(DATE_FORMAT),
        f"{FORM}[endTime]": end.strftime(TIME_FORMAT),
        f"{FORM}[description]": description,
        f"{FORM}[showMeAs]": ShowMeAs(show_me_as).value,
        f"{FORM}[privacy]": Privacy(privacy).value,
        f"{RECURRING_FORM}[intervalType]": IntervalType.NONE.value,
        f"{RECURRING_FORM}[endType]": "NEVER",
    }
    if recurrence:
        form.update(form_fields(recurrence, RECURRING_FORM))
    if alarms:
        form.update(form_fields(alarms, FORM))
    for i, participant in enumerate(participants):
        form[f"{FORM}[participants][{i}]"] = participant
    form[f"{FORM}[submit]"] = ""
    form[f"{FORM}[_token]"] = token
    return form


def resolve_participants(session: IServSession, names: Sequence[str]) -> list[str]:
    """Map participant names to the values the event form expects.

    Raises:
        IServError: If a name matches no user
    """
    values = []
    for name in names:
        matches = search_users_autocomplete(session, name, limit=1)
        if not matches:
            raise IServError(f"User '{name}' not found!")
        values.append(matches[0]["value"])
    return values


def create_event(
    session: IServSession,
    subject: str,
    calendar: str,
    start: datetime,
    end: datetime,
    category: str = "",
    location: str = "",
    alarms: Sequence[str] | None = None,
    all_day: bool = False,
    description: str = "",
    participants: Sequence[str] | None = None,
    show_me_as: ShowMeAs = ShowMeAs.OPAQUE,
    privacy: Privacy = Privacy.PUBLIC,
    recurrence: RecurrenceSpec | None = None,
) -> list[str]:
    """Create a calendar event, optionally recurring and with alarms.

    Recurrence and alarms are validated before anything is sent, so invalid
    options never reach the portal.

    Args:
        session: Authenticated IServSession
        subject: Event title
        calendar: Calendar id, e.g. "/user.name/home"
        start: Start date and time
        end: End date and time
        category: Event category
        location: Event location
        alarms: Alarm offset tokens such as "15M" or "1D"
        all_day: Whether the event lasts all day
        description: Event description
        participants: Names to invite, resolved through the user search
        show_me_as: Availability shown to others
        privacy: Visibility of the event
        recurrence: Recurrence options; None or NONE creates a single event

    Returns:
        Error messages the portal displayed after the submission

    Raises:
        RecurrenceError: If the recurrence or alarm options are invalid
        IServError: If a participant is unknown or the request fails
    """
    encoded_recurrence = None
    if recurrence is not None and recurrence.interval_type is not IntervalType.NONE:
        encoded_recurrence = encode(recurrence)
    encoded_alarms = encode_alarms(alarms, start) if alarms else None

    participant_values = resolve_participants(session, participants or [])

    try:
        token_html = session.fetch_text("calendar", "create_simple")
    except RequestException as e:
        logger.error(f"Error creating event: {e}")
        raise IServError("Error creating event") from e
    token = parse_form_token(token_html, TOKEN_INPUT_ID)

    form = build_event_form(
        subject,
        calendar,
        start,
        end,
        token,
        category=category,
        location=location,
        description=description,
        show_me_as=show_me_as,
        privacy=privacy,
        recurrence=encoded_recurrence,
        alarms=encoded_alarms,
        participants=participant_values,
    )
    params = {
        "subject": subject,
        "calendar": calendar,
        "start": start.strftime(DATE_FORMAT),
        "end": end.strftime(DATE_FORMAT),
        "startTime": start.strftime(TIME_FORMAT),
        "endTime": end.strftime(TIME_FORMAT),
        "allDay": str(all_day),
    }
    try:
        response = session.post_form("calendar", "create", data=form, params=params)
    except RequestException as e:
        logger.error(f"Error creating event: {e}")
        raise IServError("Error creating event") from e

    errors = parse_form_errors(response.text)
    for message in errors:
        logger.warning(f"Event creation warning: {message}")
    logger.info("Event created")
    return errors
