"""IServ page parsing utilities.

This module provides the structural HTML queries used to pull data out of
server-rendered IServ pages. All parsing functions take raw HTML text and
return plain values or dataclasses; none of them perform requests.

The module handles:
- Own profile pages (groups, roles, rights)
- Public contact edit form (contact fields and CSRF token)
- Address book search results and user detail tables
- Group request options and disk usage data
- Form error banners returned after a submission
"""

import json
from dataclasses import dataclass
from dataclasses import field as dc_field
from logging import getLogger

from bs4 import BeautifulSoup

logger = getLogger(__name__)

PUBLIC_CONTACT_PREFIX = "publiccontact"

# PublicInfo attribute -> publiccontact form field name
PUBLIC_INFO_FIELDS = {
    "title": "title",
    "company": "company",
    "birthday": "birthday",
    "nickname": "nickname",
    "class_name": "class",
    "street": "street",
    "zipcode": "zipcode",
    "city": "city",
    "country": "country",
    "phone": "phone",
    "mobile_phone": "mobilePhone",
    "fax": "fax",
    "mail": "mail",
    "homepage": "homepage",
    "icq": "icq",
    "jabber": "jabber",
    "msn": "msn",
    "skype": "skype",
    "note": "note",
}


@dataclass
class PublicInfo:
    """Public contact information shown in the IServ address book.

    ``token`` is the CSRF token of the edit form and is needed to submit
    changes.
    """

    title: str = ""
    company: str = ""
    birthday: str = ""
    nickname: str = ""
    class_name: str = ""
    street: str = ""
    zipcode: str = ""
    city: str = ""
    country: str = ""
    phone: str = ""
    mobile_phone: str = ""
    fax: str = ""
    mail: str = ""
    homepage: str = ""
    icq: str = ""
    jabber: str = ""
    msn: str = ""
    skype: str = ""
    note: str = ""
    token: str = ""


@dataclass
class UserInfo:
    """Profile of the logged-in user.

    Args:
        groups: Group name -> group page URL
        roles: Role names assigned to the user
        rights: Right names granted to the user
        public_info: Public contact information
    """

    groups: dict[str, str] = dc_field(default_factory=dict)
    roles: list[str] = dc_field(default_factory=list)
    rights: list[str] = dc_field(default_factory=list)
    public_info: PublicInfo = dc_field(default_factory=PublicInfo)


@dataclass
class UserSearchResult:
    name: str
    user_url: str


def make_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def parse_profile(html: str) -> UserInfo:
    """Parse groups, roles and rights from the /iserv/profile page.

    The first panel body holds three lists: group links, roles, rights.
    """
    soup = make_soup(html)
    info = UserInfo()
    panel = soup.find("div", class_="panel-body")
    if panel is None:
        logger.warning("No profile panel found")
        return info

    lists = panel.find_all("ul")
    if len(lists) > 0:
        for link in lists[0].find_all("a"):
            info.groups[link.get_text(strip=True)] = link.get("href", "")
    if len(lists) > 1:
        info.roles = [item.get_text(strip=True) for item in lists[1].find_all("li")]
    if len(lists) > 2:
        info.rights = [item.get_text(strip=True) for item in lists[2].find_all("li")]

    logger.debug(
        f"found {len(info.groups)} groups, {len(info.roles)} roles, "
        f"{len(info.rights)} rights"
    )
    return info


def input_value(soup: BeautifulSoup, input_id: str) -> str:
    """Return the value attribute of the input with ``input_id``, or ""."""
    node = soup.find("input", id=input_id)
    if node is None:
        return ""
    return node.get("value", "")


def parse_public_info(html: str) -> PublicInfo:
    """Parse the public contact edit form into a PublicInfo."""
    soup = make_soup(html)
    info = PublicInfo()
    for attribute, form_name in PUBLIC_INFO_FIELDS.items():
        if attribute == "note":
            continue
        value = input_value(soup, f"{PUBLIC_CONTACT_PREFIX}_{form_name}")
        setattr(info, attribute, value)

    note = soup.find("textarea", id=f"{PUBLIC_CONTACT_PREFIX}_note")
    info.note = note.get_text() if note is not None else ""
    info.token = input_value(soup, f"{PUBLIC_CONTACT_PREFIX}__token")
    return info


def parse_form_token(html: str, input_id: str) -> str:
    """Return the CSRF token held by the hidden input ``input_id``."""
    return input_value(make_soup(html), input_id)


def parse_user_search(html: str) -> list[UserSearchResult]:
    """Parse address book search result rows into UserSearchResults."""
    soup = make_soup(html)
    results = []
    for row in soup.select("table tbody tr"):
        link = row.find("a")
        if link is not None:
            results.append(
                UserSearchResult(link.get_text(strip=True), link.get("href", ""))
            )
    return results


def parse_user_table(html: str) -> dict[str, str] | None:
    """Parse the two-column detail table of an address book entry.

    Returns:
        Label -> value mapping, or None when the page has no table
    """
    table = make_soup(html).find("table")
    if table is None:
        return None

    result = {}
    for row in table.find_all("tr"):
        cells = row.find_all("td")
        if len(cells) >= 2:
            result[cells[0].get_text(strip=True)] = cells[1].get_text(strip=True)
    return result


def parse_groups(html: str) -> dict[str, str]:
    """Parse the group request select box into group name -> group id."""
    select = make_soup(html).find("select", class_="select2")
    if select is None:
        return {}
    return {
        option.get_text(strip=True): option.get("value", "")
        for option in select.find_all("option")
    }


def parse_disk_usage(html: str) -> dict | None:
    """Extract the JSON disk usage data embedded in the account usage page.

    The data sits in ``<script id="user-diskusage-data">`` and may be wrapped
    in parentheses.
    """
    script = make_soup(html).find("script", id="user-diskusage-data")
    if script is None:
        return None
    text = script.get_text().strip().strip("()")
    return json.loads(text)


def parse_form_errors(html: str) -> list[str]:
    """Return the text of every error banner on a form response page."""
    soup = make_soup(html)
    return [
        node.get_text(" ", strip=True)
        for node in soup.find_all(attrs={"data-type": "error"})
    ]
