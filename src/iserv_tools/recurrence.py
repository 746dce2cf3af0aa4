"""Recurrence rule and alarm encoding for IServ calendar event forms.

The IServ event form describes a recurring event with a handful of
``eventForm[recurring][...]`` fields whose required subset depends on the
chosen interval type, monthly kind and end type. This module validates a
RecurrenceSpec against those rules and serializes it into a flat mapping of
field names to string values. Alarms are serialized the same way.

Encoding is one-directional: nothing here interprets recurrence rules back
into occurrences.

Validation is fail-fast. The first violated rule raises and nothing is
emitted, so callers never see a partially encoded recurrence.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from enum import Enum

EncodedForm = dict[str, str]

INTERVAL_RANGE = (1, 30)
MONTH_DAY_RANGE = (1, 31)
MONTH_ORDINALS = (1, 2, 3, 4, -1)
ALARM_TOKENS = ("0M", "5M", "15M", "30M", "1H", "2H", "12H", "1D", "2D", "7D")

# Companion values the portal expects next to every alarm trigger type.
ALARM_INTERVAL_DAYS = "0"
ALARM_INTERVAL_HOURS = "0"
ALARM_INTERVAL_MINUTES = "15"
ALARM_BEFORE = "1"
ALARM_TIME_SUFFIX = "+00:00"


class IntervalType(Enum):
    """How often an event repeats. NONE is sent to the portal as ``NO``."""

    NONE = "NO"
    DAILY = "DAILY"
    WEEKDAYS = "WEEKDAYS"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class MonthlyKind(Enum):
    """Monthly recurrence by day of month or by ordinal weekday."""

    BY_MONTH_DAY = "BYMONTHDAY"
    BY_WEEKDAY_ORDINAL = "BYDAY"


class Weekday(Enum):
    MON = "MON"
    TUE = "TUE"
    WED = "WED"
    THU = "THU"
    FRI = "FRI"
    SAT = "SAT"
    SUN = "SUN"


class EndType(Enum):
    NEVER = "NEVER"
    COUNT = "COUNT"
    UNTIL = "UNTIL"


class RecurrenceError(ValueError):
    """Base class for recurrence and alarm validation failures."""


class MissingRequiredField(RecurrenceError):
    """A field required by the chosen recurrence shape is absent."""

    def __init__(self, field_name: str, context: str):
        super().__init__(f"{field_name} required {context}")
        self.field_name = field_name
        self.context = context


class OutOfRangeValue(RecurrenceError):
    """A numeric field lies outside its allowed values."""

    def __init__(self, field_name: str, value, allowed_range):
        super().__init__(
            f"{field_name} out of range: {value!r} (allowed: {allowed_range})"
        )
        self.field_name = field_name
        self.value = value
        self.allowed_range = allowed_range


class InvalidEnumerationMember(RecurrenceError):
    """A value is not a member of its fixed closed set."""

    def __init__(self, field_name: str, value):
        super().__init__(f"invalid {field_name} value: {value!r}")
        self.field_name = field_name
        self.value = value


def _coerce(enum_cls, value):
    """Accept an enum member, a member name or a wire value."""
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls[value]
    except KeyError:
        pass
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidEnumerationMember(enum_cls.__name__, value) from None


@dataclass(frozen=True)
class RecurrenceSpec:
    """Recurrence options for a calendar event.

    Only the fields relevant to ``interval_type``, ``monthly_kind`` and
    ``end_type`` need to be set; the rest are ignored when encoding. The
    classmethod constructors build each shape with exactly its fields.

    Args:
        interval_type: How often the event repeats
        interval: Repeat every N units (1-30); not used for NONE or WEEKDAYS
        monthly_kind: Required for MONTHLY recurrence
        month_day_of_month: Day of month (1-31) for BY_MONTH_DAY
        month_ordinal: 1-4 or -1 (last) for BY_WEEKDAY_ORDINAL
        month_weekday: Weekday for BY_WEEKDAY_ORDINAL
        weekly_days: Weekdays for WEEKLY recurrence, in output order
        end_type: How the series ends
        end_count: Number of occurrences for COUNT
        until_date: Last date for UNTIL, preformatted as DD.MM.YYYY
    """

    interval_type: IntervalType = IntervalType.NONE
    interval: int | None = None
    monthly_kind: MonthlyKind | None = None
    month_day_of_month: int | None = None
    month_ordinal: int | None = None
    month_weekday: Weekday | None = None
    weekly_days: tuple[Weekday, ...] | None = None
    end_type: EndType = EndType.NEVER
    end_count: int | None = None
    until_date: str | None = None

    def __post_init__(self):
        object.__setattr__(
            self, "interval_type", _coerce(IntervalType, self.interval_type)
        )
        object.__setattr__(
            self, "monthly_kind", _coerce(MonthlyKind, self.monthly_kind)
        )
        object.__setattr__(self, "month_weekday", _coerce(Weekday, self.month_weekday))
        object.__setattr__(self, "end_type", _coerce(EndType, self.end_type))
        if self.weekly_days is not None:
            days = tuple(_coerce(Weekday, day) for day in self.weekly_days)
            object.__setattr__(self, "weekly_days", days)

    @classmethod
    def daily(cls, interval: int, **end) -> "RecurrenceSpec":
        return cls(IntervalType.DAILY, interval=interval, **end)

    @classmethod
    def weekdays(cls, **end) -> "RecurrenceSpec":
        return cls(IntervalType.WEEKDAYS, **end)

    @classmethod
    def weekly(
        cls, interval: int, days: Iterable[Weekday], **end
    ) -> "RecurrenceSpec":
        return cls(
            IntervalType.WEEKLY, interval=interval, weekly_days=tuple(days), **end
        )

    @classmethod
    def monthly_by_day(cls, interval: int, day: int, **end) -> "RecurrenceSpec":
        return cls(
            IntervalType.MONTHLY,
            interval=interval,
            monthly_kind=MonthlyKind.BY_MONTH_DAY,
            month_day_of_month=day,
            **end,
        )

    @classmethod
    def monthly_by_weekday(
        cls, interval: int, ordinal: int, weekday: Weekday, **end
    ) -> "RecurrenceSpec":
        return cls(
            IntervalType.MONTHLY,
            interval=interval,
            monthly_kind=MonthlyKind.BY_WEEKDAY_ORDINAL,
            month_ordinal=ordinal,
            month_weekday=weekday,
            **end,
        )

    @classmethod
    def yearly(cls, interval: int, **end) -> "RecurrenceSpec":
        return cls(IntervalType.YEARLY, interval=interval, **end)


def _check_range(field_name: str, value: int, bounds: tuple[int, int]) -> None:
    low, high = bounds
    if not low <= value <= high:
        raise OutOfRangeValue(field_name, value, f"{low}..{high}")


def validate(spec: RecurrenceSpec) -> None:
    """Check that ``spec`` carries the fields its recurrence shape requires.

    Rules are checked in a fixed order and the first violation is raised.
    Fields that do not apply to the chosen interval type are ignored.

    Raises:
        MissingRequiredField: A required field is absent
        OutOfRangeValue: A numeric field is outside its allowed values
    """
    kind = spec.interval_type
    if kind not in (IntervalType.NONE, IntervalType.WEEKDAYS) and spec.interval is None:
        raise MissingRequiredField("interval", f"for interval type {kind.name}")

    if spec.interval is not None:
        _check_range("interval", spec.interval, INTERVAL_RANGE)

    if kind is IntervalType.MONTHLY:
        if spec.monthly_kind is None:
            raise MissingRequiredField("monthlyKind", "for MONTHLY recurrence")
        if spec.monthly_kind is MonthlyKind.BY_WEEKDAY_ORDINAL:
            if spec.month_ordinal is None:
                raise MissingRequiredField("monthOrdinal", "for BY_WEEKDAY_ORDINAL")
            if spec.month_weekday is None:
                raise MissingRequiredField("monthWeekday", "for BY_WEEKDAY_ORDINAL")
            if spec.month_ordinal not in MONTH_ORDINALS:
                raise OutOfRangeValue(
                    "monthOrdinal", spec.month_ordinal, MONTH_ORDINALS
                )
        elif spec.monthly_kind is MonthlyKind.BY_MONTH_DAY:
            if spec.month_day_of_month is None:
                raise MissingRequiredField("monthDayOfMonth", "for BY_MONTH_DAY")
            _check_range("monthDayOfMonth", spec.month_day_of_month, MONTH_DAY_RANGE)

    if kind is IntervalType.WEEKLY and not spec.weekly_days:
        raise MissingRequiredField("weeklyDays", "for WEEKLY recurrence")

    if spec.end_type is EndType.COUNT:
        if spec.end_count is None:
            raise MissingRequiredField("endCount", "for end type COUNT")
        if spec.end_count < 1:
            raise OutOfRangeValue("endCount", spec.end_count, "positive integers")

    if spec.end_type is EndType.UNTIL and not spec.until_date:
        raise MissingRequiredField("untilDate", "for end type UNTIL")


def encode(spec: RecurrenceSpec) -> EncodedForm:
    """Validate ``spec`` and serialize it into recurrence form fields.

    Keys are the bare recurrence field names (``intervalType``, ``interval``,
    ...); use form_fields() to nest them under the event form prefix.

    Returns:
        Ordered mapping of field name to string value
    """
    validate(spec)

    form = {"intervalType": spec.interval_type.value}
    if spec.interval is not None:
        form["interval"] = str(spec.interval)
    if spec.monthly_kind is not None:
        form["monthlyIntervalType"] = spec.monthly_kind.value
    if spec.month_day_of_month is not None:
        form["monthDayInMonth"] = str(spec.month_day_of_month)
    if spec.month_ordinal is not None:
        form["monthInterval"] = str(spec.month_ordinal)
    if spec.month_weekday is not None:
        form["monthDay"] = spec.month_weekday.value
    if spec.weekly_days:
        form["recurrenceDays"] = ",".join(day.value for day in spec.weekly_days)
    form["endType"] = spec.end_type.value
    if spec.end_type is EndType.COUNT:
        form["endInterval"] = str(spec.end_count)
    if spec.end_type is EndType.UNTIL:
        form["untilDate"] = spec.until_date
    return form


def encode_alarms(alarms: Iterable[str], event_start: date) -> EncodedForm:
    """Serialize alarm offset tokens into per-index alarm form fields.

    Every alarm index gets its trigger type plus the fixed companion fields
    the portal's form processor requires, whatever the token.

    Args:
        alarms: Offset tokens such as "15M" or "1D", in alarm index order
        event_start: Start of the event; only its calendar date is used

    Returns:
        Ordered mapping of ``alarms[i][trigger][...]`` keys to values

    Raises:
        InvalidEnumerationMember: A token is not in ALARM_TOKENS
    """
    alarms = list(alarms)
    for token in alarms:
        if token not in ALARM_TOKENS:
            raise InvalidEnumerationMember("alarm", token)

    date_time = event_start.strftime("%d.%m.%Y") + ALARM_TIME_SUFFIX
    form = {}
    for i, token in enumerate(alarms):
        trigger = f"alarms[{i}][trigger]"
        form[f"{trigger}[type]"] = f"PT{token}"
        form[f"{trigger}[interval][days]"] = ALARM_INTERVAL_DAYS
        form[f"{trigger}[interval][hours]"] = ALARM_INTERVAL_HOURS
        form[f"{trigger}[interval][minutes]"] = ALARM_INTERVAL_MINUTES
        form[f"{trigger}[before]"] = ALARM_BEFORE
        form[f"{trigger}[dateTime]"] = date_time
    return form


LIST_FIELDS = {"recurrenceDays"}


def form_fields(fragment: EncodedForm, prefix: str) -> EncodedForm:
    """Nest bare encoded keys under a bracketed form prefix.

    ``interval`` becomes ``eventForm[recurring][interval]`` for the prefix
    ``eventForm[recurring]``, ``alarms[0][trigger][type]`` becomes
    ``eventForm[alarms][0][trigger][type]`` for ``eventForm``. List-valued
    fields get the ``[]`` suffix the portal expects.
    """
    nested = {}
    for key, value in fragment.items():
        head, bracket, rest = key.partition("[")
        name = f"{prefix}[{head}]{bracket}{rest}"
        if head in LIST_FIELDS:
            name += "[]"
        nested[name] = value
    return nested
