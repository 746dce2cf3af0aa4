"""Command line interface for IServ tools."""

import logging
import os
import sys
import tomllib
from argparse import ArgumentParser, Namespace
from dataclasses import asdict
from datetime import date, datetime
from getpass import getuser
from pathlib import Path

from .calendar import Privacy, ShowMeAs, create_event, get_events
from .mail import send_email
from .notifications import get_badges, get_notifications, read_all_notifications
from .recurrence import (
    ALARM_TOKENS,
    EndType,
    IntervalType,
    MonthlyKind,
    RecurrenceError,
    RecurrenceSpec,
    Weekday,
)
from .session import DEFAULT_COOKIE_FILE, IServError, IServSession
from .users import get_own_user_info
from .utils import dump_yaml, fetch_password

logger = logging.getLogger(__name__)

CONFIG_PATH = "~/.config/iserv-tools/config.toml"


def whoami_cli():
    """Entry point for printing the logged-in user's profile."""
    parser = make_parser("Show your IServ profile, groups and rights")
    parser.add_argument(
        "--logout", action="store_true", help="End the portal session afterwards"
    )
    args = parser.parse_args()
    config_logging(args)
    with open_session(args) as session:
        print(dump_yaml(asdict(run_or_exit(get_own_user_info, session))), end="")
        if args.logout:
            session.logout()


def notifications_cli():
    """Entry point for listing notifications and unread counters."""
    parser = make_parser("Show IServ notifications")
    parser.add_argument(
        "--badges", action="store_true", help="Show unread counters instead"
    )
    parser.add_argument(
        "--mark-read", action="store_true", help="Mark all notifications as read"
    )
    args = parser.parse_args()
    config_logging(args)
    with open_session(args) as session:
        fetch = get_badges if args.badges else get_notifications
        print(dump_yaml(run_or_exit(fetch, session)), end="")
        if args.mark_read:
            run_or_exit(read_all_notifications, session)


def events_cli():
    """Entry point for listing calendar events in a date range."""
    parser = make_parser("List IServ calendar events")
    parser.add_argument("start", type=date.fromisoformat, help="First day (YYYY-MM-DD)")
    parser.add_argument("end", type=date.fromisoformat, help="Last day (YYYY-MM-DD)")
    args = parser.parse_args()
    config_logging(args)
    with open_session(args) as session:
        print(dump_yaml(run_or_exit(get_events, session, args.start, args.end)), end="")


def create_event_cli():
    """Entry point for creating a calendar event."""
    args = parse_create_event_arguments()
    config_logging(args)
    recurrence = run_or_exit(recurrence_from_args, args)
    with open_session(args) as session:
        errors = run_or_exit(
            create_event,
            session,
            args.subject,
            args.calendar,
            args.start,
            args.end,
            category=args.category,
            location=args.location,
            alarms=args.alarm,
            all_day=args.all_day,
            description=args.description,
            participants=args.participant,
            show_me_as=args.show_me_as,
            privacy=args.privacy,
            recurrence=recurrence,
        )
    if errors:
        sys.exit(1)


def parse_create_event_arguments(argv=None) -> Namespace:
    """Parse command line arguments for create-event."""
    parser = make_parser("Create an IServ calendar event")
    parser.add_argument("subject", help="Event title")
    parser.add_argument("calendar", help="Calendar id, e.g. /user.name/home")
    parser.add_argument(
        "start", type=datetime.fromisoformat, help="Start (YYYY-MM-DDTHH:MM)"
    )
    parser.add_argument(
        "end", type=datetime.fromisoformat, help="End (YYYY-MM-DDTHH:MM)"
    )
    parser.add_argument("--category", default="")
    parser.add_argument("--location", default="")
    parser.add_argument("--description", default="")
    parser.add_argument("--all-day", action="store_true")
    parser.add_argument(
        "--alarm",
        action="append",
        choices=ALARM_TOKENS,
        help="Alarm offset, repeatable",
    )
    parser.add_argument(
        "--participant", action="append", help="User to invite, repeatable"
    )
    parser.add_argument(
        "--show-me-as", choices=[s.value for s in ShowMeAs], default="OPAQUE"
    )
    parser.add_argument(
        "--privacy", choices=[p.value for p in Privacy], default="PUBLIC"
    )

    recurring = parser.add_argument_group("recurrence")
    recurring.add_argument(
        "--repeat",
        choices=[t.name for t in IntervalType],
        default=IntervalType.NONE.name,
        help="Recurrence interval type",
    )
    recurring.add_argument("--interval", type=int, help="Repeat every N units (1-30)")
    recurring.add_argument(
        "--weekday",
        action="append",
        choices=[d.name for d in Weekday],
        help="Weekday for WEEKLY recurrence, repeatable",
    )
    recurring.add_argument("--month-day", type=int, help="Day of month for MONTHLY")
    recurring.add_argument(
        "--month-ordinal",
        type=int,
        help="1-4 or -1 (last) for MONTHLY by weekday, needs --month-weekday",
    )
    recurring.add_argument(
        "--month-weekday", choices=[d.name for d in Weekday], help="Weekday for MONTHLY"
    )
    recurring.add_argument("--count", type=int, help="End after N occurrences")
    recurring.add_argument("--until", metavar="DD.MM.YYYY", help="End on this date")
    return parser.parse_args(argv)


def recurrence_from_args(args: Namespace) -> RecurrenceSpec | None:
    """Translate create-event options into a RecurrenceSpec."""
    interval_type = IntervalType[args.repeat]
    if interval_type is IntervalType.NONE:
        return None

    monthly_kind = None
    if interval_type is IntervalType.MONTHLY:
        if args.month_ordinal is not None or args.month_weekday is not None:
            monthly_kind = MonthlyKind.BY_WEEKDAY_ORDINAL
        elif args.month_day is not None:
            monthly_kind = MonthlyKind.BY_MONTH_DAY

    if args.count is not None:
        end_type = EndType.COUNT
    elif args.until:
        end_type = EndType.UNTIL
    else:
        end_type = EndType.NEVER

    return RecurrenceSpec(
        interval_type,
        interval=args.interval,
        monthly_kind=monthly_kind,
        month_day_of_month=args.month_day,
        month_ordinal=args.month_ordinal,
        month_weekday=args.month_weekday,
        weekly_days=tuple(args.weekday) if args.weekday else None,
        end_type=end_type,
        end_count=args.count,
        until_date=args.until,
    )


def send_mail_cli():
    """Entry point for sending mail through the IServ SMTP server."""
    parser = make_parser("Send an email from your IServ account")
    parser.add_argument("receiver", help="Recipient address")
    parser.add_argument("subject", help="Subject line")
    parser.add_argument("--body", help="Plain text body (default: read stdin)")
    parser.add_argument("--html", type=Path, help="File with an HTML alternative body")
    parser.add_argument(
        "--attach", action="append", type=Path, help="File to attach, repeatable"
    )
    parser.add_argument("--smtp-server", help="SMTP server (default: IServ host)")
    parser.add_argument("--port", type=int, default=465, help="SMTPS port")
    args = parser.parse_args()
    config_logging(args)

    settings = resolve_settings(args)
    body = args.body if args.body is not None else sys.stdin.read()
    html_body = args.html.read_text() if args.html else None
    run_or_exit(
        send_email,
        settings["username"],
        fetch_password(settings["username"]),
        settings["host"],
        args.receiver,
        args.subject,
        body,
        html_body=html_body,
        smtp_server=args.smtp_server,
        smtps_port=args.port,
        attachments=args.attach,
    )


def load_config(config_path: str = CONFIG_PATH) -> dict:
    """Read the optional TOML config file."""
    path = os.path.expanduser(config_path)
    if not os.path.exists(path):
        return {}
    with open(path, "rb") as f:
        return tomllib.load(f)


def resolve_settings(args: Namespace, config_path: str = CONFIG_PATH) -> dict:
    """Resolve host, username and cookie file.

    Resolution order for each setting:
    1. command line option
    2. $ISERV_HOST / $ISERV_USER / $ISERV_COOKIE_FILE
    3. config file
    4. default (no default for the host)
    """
    config = load_config(config_path)
    host = args.host or os.environ.get("ISERV_HOST") or config.get("host")
    if not host:
        logger.error(
            f"No IServ host given; use --host, $ISERV_HOST or 'host' in {config_path}"
        )
        sys.exit(1)
    username = (
        args.user or os.environ.get("ISERV_USER") or config.get("username") or getuser()
    )
    cookie_file = (
        args.cookie_file
        or os.environ.get("ISERV_COOKIE_FILE")
        or config.get("cookie_file")
        or DEFAULT_COOKIE_FILE
    )
    return {
        "host": host,
        "username": username,
        "cookie_file": os.path.expanduser(cookie_file),
    }


def open_session(args: Namespace) -> IServSession:
    """Create an authenticated session from resolved settings."""
    settings = resolve_settings(args)
    session = IServSession(settings["host"], settings["cookie_file"])
    run_or_exit(session.authenticate, settings["username"])
    if args.verbose:
        session.print_cookies()
    return session


def run_or_exit(func, *args, **kwargs):
    """Call ``func`` and exit with status 1 on IServ or recurrence errors."""
    try:
        return func(*args, **kwargs)
    except (IServError, RecurrenceError) as e:
        logger.error(str(e))
        sys.exit(1)


def make_parser(description: str) -> ArgumentParser:
    parser = ArgumentParser(description=description)
    parser.add_argument("--host", help="IServ host, e.g. school.iserv.de")
    parser.add_argument("--user", help="IServ account name")
    parser.add_argument("--cookie-file", help="Cookie jar file")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Suppress INFO and below messages"
    )
    return parser


def config_logging(args) -> None:
    """Configure logging based on command line arguments."""
    if args.quiet:
        log_level = logging.WARNING
    elif args.verbose:
        log_level = logging.DEBUG
    else:
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


if __name__ == "__main__":
    whoami_cli()
