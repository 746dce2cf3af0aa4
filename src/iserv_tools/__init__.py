"""IServ Tools package for interacting with IServ school portals."""

from importlib.metadata import PackageNotFoundError, version

from .calendar import Privacy, ShowMeAs, create_event, delete_event, get_events
from .parser import PublicInfo, UserInfo, UserSearchResult
from .recurrence import (
    EndType,
    IntervalType,
    InvalidEnumerationMember,
    MissingRequiredField,
    MonthlyKind,
    OutOfRangeValue,
    RecurrenceError,
    RecurrenceSpec,
    Weekday,
    encode,
    encode_alarms,
    validate,
)
from .session import IServError, IServSession
from .users import get_own_user_info, search_users, set_own_user_info

try:
    __version__ = version("iserv-tools")
except PackageNotFoundError:
    # Package is not installed, use fallback version
    __version__ = "UNKNOWN"

__all__ = [
    "EndType",
    "IServError",
    "IServSession",
    "IntervalType",
    "InvalidEnumerationMember",
    "MissingRequiredField",
    "MonthlyKind",
    "OutOfRangeValue",
    "Privacy",
    "PublicInfo",
    "RecurrenceError",
    "RecurrenceSpec",
    "ShowMeAs",
    "UserInfo",
    "UserSearchResult",
    "Weekday",
    "create_event",
    "delete_event",
    "encode",
    "encode_alarms",
    "get_events",
    "get_own_user_info",
    "search_users",
    "set_own_user_info",
    "validate",
]
