"""IServSession class for handling IServ authentication and requests."""

import http.cookiejar as cookiejar
import logging
from concurrent.futures import ThreadPoolExecutor

from bs4 import BeautifulSoup
from requests import RequestException, Response, Session

from .utils import fetch_password, load_cookies

logger = logging.getLogger(__name__)

DEFAULT_COOKIE_FILE = "iserv-cookies.txt"
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
)
SESSION_COOKIES = ("IServSAT", "IServSATId", "IServSession")
ACCOUNT_MISSING_MARKER = "Account existiert nicht!"
LOGIN_FAILED_MARKER = "Anmeldung fehlgeschlagen!"
LOGIN_FORM_MARKER = 'name="_password"'


class IServError(Exception):
    """Exception raised when an IServ request fails or returns unusable data."""

    def __init__(self, message: str, response: Response = None):
        super().__init__(message)
        self.response = response


class IServSession(Session):
    """Session class for interacting with an IServ portal.

    Args:
        host: Portal host name, e.g. "school.iserv.de"
        cookie_file: Mozilla-format cookie jar kept between runs
    """

    def __init__(self, host: str, cookie_file: str = DEFAULT_COOKIE_FILE):
        super().__init__()
        self.host = host
        self.base_url = f"https://{host}/iserv"
        self.headers["User-Agent"] = USER_AGENT
        self.cookies: cookiejar.CookieJar = load_cookies(cookie_file)
        self.session_cookies: dict[str, str] = {}

    def authenticate(self, username: str, password: str | None = None) -> None:
        """Log in unless the stored cookies still grant access."""
        if self.check_authorized():
            logger.debug("Stored cookies are still valid")
            return
        if password is None:
            password = fetch_password(username)
        self.login(username, password)

    def check_authorized(self) -> bool:
        """Check if the session is already authorized."""
        try:
            response = self.get(self.url() + "/", allow_redirects=False)
        except RequestException as e:
            raise IServError("Error establishing connection") from e
        return response.status_code == 200 and LOGIN_FORM_MARKER not in response.text

    def login(self, username: str, password: str) -> None:
        """Submit the login form and save the resulting session cookies.

        Raises:
            IServError: If the account is unknown, the password is rejected,
                or the portal cannot be reached
        """
        login_url = self.url("auth", "login")
        try:
            self.get(login_url).raise_for_status()
            form_data = {"_username": username, "_password": password}
            response = self.post(login_url, data=form_data)

            if ACCOUNT_MISSING_MARKER in response.text:
                raise IServError("Account does not exist!", response)
            if LOGIN_FAILED_MARKER in response.text:
                raise IServError("Login failed! Probably wrong password.", response)

            # Walk through the landing pages so the portal sets every cookie
            self.get(self.url("auth", "home"))
            self.get(self.url() + "/")
        except RequestException as e:
            raise IServError("Error establishing connection") from e

        self.session_cookies = self.extract_session_cookies()
        self.cookies.save(ignore_discard=True, ignore_expires=True)
        logger.info("Login successful")

    def extract_session_cookies(self) -> dict[str, str]:
        """Return the IServ session cookies currently held by the jar."""
        found = {
            cookie.name: cookie.value
            for cookie in self.cookies
            if cookie.name in SESSION_COOKIES
        }
        logger.debug(f"Session cookies present: {sorted(found)}")
        return found

    def logout(self) -> None:
        """Logout from IServ and clear cookies."""
        self.get(self.url("auth", "logout"))
        self.cookies.clear()
        self.cookies.save()
        logger.info("Logged out")

    def url(self, *parts) -> str:
        """Generate a portal URL using any supplied parts."""
        return "/".join([self.base_url] + [str(part) for part in parts])

    def fetch(self, *parts, params=None) -> Response:
        """GET a portal URL and raise on HTTP errors."""
        response = self.get(self.url(*parts), params=params)
        response.raise_for_status()
        return response

    def fetch_text(self, *parts, params=None) -> str:
        return self.fetch(*parts, params=params).text

    def fetch_json(self, *parts, params=None):
        return self.fetch(*parts, params=params).json()

    def fetch_html(self, *parts, params=None) -> BeautifulSoup:
        return BeautifulSoup(self.fetch_text(*parts, params=params), "html.parser")

    def post_form(self, *parts, data=None, params=None) -> Response:
        """POST form data to a portal URL and raise on HTTP errors."""
        response = self.post(self.url(*parts), data=data, params=params)
        response.raise_for_status()
        return response

    def fetch_concurrently(self, urls: list[str]) -> list[str]:
        """GET several URLs in parallel and return their bodies in input order."""

        def fetch_one(url: str) -> str:
            response = self.get(url)
            response.raise_for_status()
            return response.text

        with ThreadPoolExecutor(max_workers=len(urls) or 1) as pool:
            return list(pool.map(fetch_one, urls))

    def print_cookies(self) -> None:
        """Print all cookies in the session."""
        if self.cookies:
            print("Cookies received:")
            for cookie in self.cookies:
                print(f"  {cookie.name}: {cookie.value}")
        else:
            print("No cookies received")


def fetch_api_json(session: IServSession, description: str, *parts, params=None):
    """GET a JSON endpoint, wrapping transport and decoding errors in IServError."""
    try:
        data = session.fetch_json(*parts, params=params)
    except (RequestException, ValueError) as e:
        logger.error(f"Error getting {description}: {e}")
        raise IServError(f"Error getting {description}") from e
    logger.info(f"Got {description}")
    return data
