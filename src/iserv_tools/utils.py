"""Utility functions for IServ tools."""

import http.cookiejar as cookiejar
import logging
import os
from getpass import getpass
from subprocess import CalledProcessError, run

import yaml

logger = logging.getLogger(__name__)

PASSWORD_ENV_VAR = "ISERV_PASSWORD"
PARTIAL_EXTERNAL_COMMAND = [
    "/usr/bin/security",
    "find-generic-password",
    "-w",
    "-s",
    "iserv",
    "-a",
]


def load_cookies(cookie_file: str) -> cookiejar.CookieJar:
    """Load cookies from file, creating empty jar if file doesn't exist."""
    cookie_jar = cookiejar.MozillaCookieJar(cookie_file)
    try:  # If file exists, load existing cookies
        cookie_jar.load(ignore_discard=True, ignore_expires=True)
        logger.debug(f"Loaded existing cookies from {cookie_file}")
    except FileNotFoundError:
        logger.debug(f"Cookie file {cookie_file} not found, starting with empty jar")
    return cookie_jar


def fetch_password(user: str) -> str:
    """Fetch the IServ password for ``user``.

    Tries $ISERV_PASSWORD, then the macOS keychain, then prompts.
    """
    password = os.environ.get(PASSWORD_ENV_VAR)
    if password:
        logger.debug(f"Using password from ${PASSWORD_ENV_VAR}")
        return password

    command = PARTIAL_EXTERNAL_COMMAND + [user]
    try:
        logger.debug(f"Executing command: {' '.join(command[:3])} ...")
        cli_response = run(command, capture_output=True, text=True, check=True)
        logger.debug("Password fetched successfully")
        return cli_response.stdout.rstrip()
    except CalledProcessError as e:
        logger.warning(f"Keychain lookup failed with exit code {e.returncode}")
        logger.debug(f"Error output: {e.stderr}")
    except FileNotFoundError:
        logger.debug(f"External program not found: {command[0]}")

    return getpass(f"IServ password for {user}: ")


def dump_yaml(data) -> str:
    """Render API results as block-style YAML."""
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
