"""User profile, address book and group operations."""

import logging
from pathlib import Path

from requests import RequestException

from .parser import (
    PUBLIC_CONTACT_PREFIX,
    PUBLIC_INFO_FIELDS,
    UserInfo,
    UserSearchResult,
    parse_groups,
    parse_profile,
    parse_public_info,
    parse_user_search,
    parse_user_table,
)
from .session import IServError, IServSession

logger = logging.getLogger(__name__)

TOO_MANY_RESULTS_MARKERS = ("Too many results", "Zu viele Treffer")


def get_own_user_info(session: IServSession) -> UserInfo:
    """Retrieve groups, roles, rights and public contact data of the user.

    The profile page and the public contact edit form are fetched in
    parallel.
    """
    urls = [
        session.url("profile"),
        session.url("profile", "public", "edit"),
    ]
    try:
        profile_html, public_html = session.fetch_concurrently(urls)
    except RequestException as e:
        logger.error(f"Error retrieving user information: {e}")
        raise IServError("Error retrieving user information") from e

    info = parse_profile(profile_html)
    info.public_info = parse_public_info(public_html)
    logger.info("Retrieved own user info")
    return info


def build_public_info_form(info: UserInfo, updates: dict[str, str]) -> dict[str, str]:
    """Build the public contact edit form from current values plus updates.

    ``updates`` keys are publiccontact form field names (``city``,
    ``mobilePhone``, ...). Unknown keys are skipped with a warning.
    """
    public = info.public_info
    values = {
        form_name: getattr(public, attribute)
        for attribute, form_name in PUBLIC_INFO_FIELDS.items()
    }
    for key, value in updates.items():
        if key not in values:
            logger.warning(f"Ignoring unknown profile field {key}")
            continue
        values[key] = value
        logger.info(f"Changed {key} to {value}")

    form = {f"{PUBLIC_CONTACT_PREFIX}[{name}]": value for name, value in values.items()}
    form[f"{PUBLIC_CONTACT_PREFIX}[hidden]"] = "0"
    form[f"{PUBLIC_CONTACT_PREFIX}[actions][submit]"] = ""
    form[f"{PUBLIC_CONTACT_PREFIX}[_token]"] = public.token
    return form


def set_own_user_info(session: IServSession, **updates) -> int:
    """Update the user's public contact information.

    Args:
        session: Authenticated IServSession
        **updates: publiccontact field name -> new value

    Returns:
        HTTP status code of the form submission
    """
    info = get_own_user_info(session)
    form = build_public_info_form(info, updates)
    try:
        response = session.post_form("profile", "public", "edit", data=form)
    except RequestException as e:
        logger.error(f"Error setting user information: {e}")
        raise IServError("Error setting user information") from e
    logger.info("Public info changed successfully")
    return response.status_code


def search_users(session: IServSession, query: str) -> list[UserSearchResult]:
    """Search the public address book."""
    try:
        html = session.fetch_text(
            "addressbook", "public", params={"filter[search]": query}
        )
    except RequestException as e:
        logger.error(f"Error searching users: {e}")
        raise IServError("Error searching users") from e

    if any(marker in html for marker in TOO_MANY_RESULTS_MARKERS):
        raise IServError("Too many results, please restrict filter criteria!")

    results = parse_user_search(html)
    logger.info(f"Searched users, {len(results)} found")
    return results


def search_users_autocomplete(session: IServSession, query: str, limit: int = 50):
    """Search users and mailing lists through the autocomplete API."""
    params = {"type": "list,mail", "query": query, "limit": limit}
    try:
        results = session.fetch_json("core", "autocomplete", "api", params=params)
    except (RequestException, ValueError) as e:
        logger.error(f"Error in autocomplete search: {e}")
        raise IServError("Error in autocomplete search") from e
    logger.info("Searched users (autocomplete)")
    return results


def get_user_info(session: IServSession, username: str) -> dict[str, str]:
    """Return the address book details of ``username``."""
    try:
        html = session.fetch_text("addressbook", "public", "show", username)
    except RequestException as e:
        logger.error(f"Error getting user info: {e}")
        raise IServError(f"Error getting user info for {username}") from e

    details = parse_user_table(html)
    if details is None:
        raise IServError("No such user found!")
    logger.info(f"Got info of user {username}")
    return details


def get_user_profile_picture(
    session: IServSession, username: str, output_folder: Path
) -> Path:
    """Download the avatar of ``username`` into ``output_folder``.

    SVG avatars are saved as ``<username>.svg``, everything else as
    ``<username>.webp``.

    Returns:
        Path of the written file
    """
    try:
        response = session.fetch("core", "avatar", "user", username)
    except RequestException as e:
        logger.error(f"Error downloading profile picture: {e}")
        raise IServError("Error downloading profile picture") from e

    content_type = response.headers.get("Content-Type", "")
    suffix = ".svg" if "svg" in content_type else ".webp"
    output_folder = Path(output_folder)
    output_folder.mkdir(parents=True, exist_ok=True)
    picture_file = output_folder / f"{username}{suffix}"
    picture_file.write_bytes(response.content)
    logger.info(f"Downloaded profile picture for {username} to {picture_file}")
    return picture_file


def get_groups(session: IServSession) -> dict[str, str]:
    """Return the groups offered on the group request form (name -> id)."""
    try:
        html = session.fetch_text("profile", "grouprequest", "add")
    except RequestException as e:
        logger.error(f"Error getting groups: {e}")
        raise IServError("Error getting groups") from e
    groups = parse_groups(html)
    logger.info("Got groups")
    return groups
