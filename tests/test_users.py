"""Tests for profile, address book and group operations."""

from pytest import raises
from requests import ConnectionError

from iserv_tools.parser import PublicInfo, UserInfo, UserSearchResult
from iserv_tools.session import IServError
from iserv_tools.users import (
    build_public_info_form,
    get_groups,
    get_own_user_info,
    get_user_info,
    get_user_profile_picture,
    search_users,
    search_users_autocomplete,
    set_own_user_info,
)


def test_get_own_user_info(mock_session, load_fixture):
    mock_session.fetch_concurrently.return_value = [
        load_fixture("profile"),
        load_fixture("public_edit"),
    ]

    info = get_own_user_info(mock_session)

    mock_session.fetch_concurrently.assert_called_once_with(
        [
            "https://school.example/iserv/profile",
            "https://school.example/iserv/profile/public/edit",
        ]
    )
    assert "Klasse 7b" in info.groups
    assert info.roles == ["Schüler"]
    assert info.public_info.city == "Musterstadt"
    assert info.public_info.token == "tok3n+/="


def test_get_own_user_info_wraps_request_errors(mock_session):
    mock_session.fetch_concurrently.side_effect = ConnectionError("down")

    with raises(IServError, match="Error retrieving user information"):
        get_own_user_info(mock_session)


def test_build_public_info_form_applies_known_updates():
    info = UserInfo(public_info=PublicInfo(city="Alt", phone="1", token="t"))

    updates = {"city": "Neu", "mobilePhone": "0170", "x": "y"}
    form = build_public_info_form(info, updates)

    assert form["publiccontact[city]"] == "Neu"
    assert form["publiccontact[mobilePhone]"] == "0170"
    assert form["publiccontact[phone]"] == "1"
    assert form["publiccontact[hidden]"] == "0"
    assert form["publiccontact[actions][submit]"] == ""
    assert form["publiccontact[_token]"] == "t"
    assert "publiccontact[x]" not in form
    assert len(form) == 22


def test_set_own_user_info(mock_session, load_fixture, make_response):
    mock_session.fetch_concurrently.return_value = [
        load_fixture("profile"),
        load_fixture("public_edit"),
    ]
    mock_session.post_form.return_value = make_response(status_code=200)

    status = set_own_user_info(mock_session, city="Neustadt")

    assert status == 200
    args, kwargs = mock_session.post_form.call_args
    assert args == ("profile", "public", "edit")
    form = kwargs["data"]
    assert form["publiccontact[city]"] == "Neustadt"
    assert form["publiccontact[street]"] == "Schulweg 1"
    assert form["publiccontact[note]"] == "Hello there"
    assert form["publiccontact[_token]"] == "tok3n+/="


def test_search_users(mock_session, load_fixture):
    mock_session.fetch_text.return_value = load_fixture("addressbook_search")

    results = search_users(mock_session, "Muster")

    mock_session.fetch_text.assert_called_once_with(
        "addressbook", "public", params={"filter[search]": "Muster"}
    )
    assert results[0] == UserSearchResult(
        "Muster, Max", "/iserv/addressbook/public/show/max.muster"
    )


def test_search_users_too_many_results(mock_session):
    mock_session.fetch_text.return_value = "<div>Zu viele Treffer</div>"

    with raises(IServError, match="Too many results"):
        search_users(mock_session, "a")


def test_search_users_autocomplete(mock_session):
    mock_session.fetch_json.return_value = [{"label": "Max", "value": "max.muster"}]

    results = search_users_autocomplete(mock_session, "Max", limit=1)

    assert results == [{"label": "Max", "value": "max.muster"}]
    mock_session.fetch_json.assert_called_once_with(
        "core",
        "autocomplete",
        "api",
        params={"type": "list,mail", "query": "Max", "limit": 1},
    )


def test_search_users_autocomplete_bad_json(mock_session):
    mock_session.fetch_json.side_effect = ValueError("Expecting value")

    with raises(IServError, match="autocomplete"):
        search_users_autocomplete(mock_session, "Max")


def test_get_user_info(mock_session, load_fixture):
    mock_session.fetch_text.return_value = load_fixture("addressbook_show")

    details = get_user_info(mock_session, "max.muster")

    mock_session.fetch_text.assert_called_once_with(
        "addressbook", "public", "show", "max.muster"
    )
    assert details["Klasse"] == "7b"


def test_get_user_info_unknown(mock_session):
    mock_session.fetch_text.return_value = "<p>Nicht gefunden</p>"

    with raises(IServError, match="No such user found!"):
        get_user_info(mock_session, "nobody")


def test_get_user_profile_picture_svg(mock_session, make_response, tmp_path):
    mock_session.fetch.return_value = make_response(
        "<svg></svg>", headers={"Content-Type": "image/svg+xml"}
    )

    path = get_user_profile_picture(mock_session, "max.muster", tmp_path / "avatars")

    assert path == tmp_path / "avatars" / "max.muster.svg"
    assert path.read_text() == "<svg></svg>"


def test_get_user_profile_picture_webp(mock_session, make_response, tmp_path):
    mock_session.fetch.return_value = make_response(
        "RIFF", headers={"Content-Type": "image/webp"}
    )

    path = get_user_profile_picture(mock_session, "max.muster", tmp_path)

    assert path.name == "max.muster.webp"


def test_get_groups(mock_session, load_fixture):
    mock_session.fetch_text.return_value = load_fixture("grouprequest")

    groups = get_groups(mock_session)

    assert groups == {"AG Chor": "ag.chor", "AG Robotik": "ag.robotik"}
