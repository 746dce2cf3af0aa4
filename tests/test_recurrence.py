"""Unit tests for recurrence rule and alarm encoding."""

from datetime import date, datetime

from pytest import mark, raises

from iserv_tools.recurrence import (
    ALARM_TOKENS,
    EndType,
    IntervalType,
    InvalidEnumerationMember,
    MissingRequiredField,
    MonthlyKind,
    OutOfRangeValue,
    RecurrenceSpec,
    Weekday,
    encode,
    encode_alarms,
    form_fields,
    validate,
)


@mark.parametrize(
    "interval_type",
    [
        IntervalType.DAILY,
        IntervalType.WEEKLY,
        IntervalType.MONTHLY,
        IntervalType.YEARLY,
    ],
)
def test_interval_required(interval_type):
    """Missing interval is the first error whatever else is missing."""
    spec = RecurrenceSpec(interval_type, end_type=EndType.UNTIL)

    with raises(MissingRequiredField) as excinfo:
        validate(spec)

    assert excinfo.value.field_name == "interval"


@mark.parametrize("interval_type", [IntervalType.NONE, IntervalType.WEEKDAYS])
def test_interval_optional(interval_type):
    validate(RecurrenceSpec(interval_type))


@mark.parametrize("interval", [1, 2, 15, 29, 30])
def test_interval_in_range(interval):
    validate(RecurrenceSpec(IntervalType.DAILY, interval=interval))


@mark.parametrize("interval", [0, 31, -1])
def test_interval_out_of_range(interval):
    with raises(OutOfRangeValue) as excinfo:
        validate(RecurrenceSpec(IntervalType.DAILY, interval=interval))

    assert excinfo.value.field_name == "interval"
    assert excinfo.value.value == interval


def test_interval_range_checked_for_weekdays():
    with raises(OutOfRangeValue):
        validate(RecurrenceSpec(IntervalType.WEEKDAYS, interval=31))


def test_monthly_kind_required():
    spec = RecurrenceSpec(IntervalType.MONTHLY, interval=1)

    with raises(MissingRequiredField) as excinfo:
        validate(spec)

    assert excinfo.value.field_name == "monthlyKind"


def test_monthly_by_weekday_names_missing_ordinal():
    spec = RecurrenceSpec(
        IntervalType.MONTHLY,
        interval=1,
        monthly_kind=MonthlyKind.BY_WEEKDAY_ORDINAL,
        month_weekday=Weekday.TUE,
    )

    with raises(MissingRequiredField) as excinfo:
        validate(spec)

    assert excinfo.value.field_name == "monthOrdinal"


def test_monthly_by_weekday_names_missing_weekday():
    spec = RecurrenceSpec(
        IntervalType.MONTHLY,
        interval=1,
        monthly_kind=MonthlyKind.BY_WEEKDAY_ORDINAL,
        month_ordinal=2,
    )

    with raises(MissingRequiredField) as excinfo:
        validate(spec)

    assert excinfo.value.field_name == "monthWeekday"


def test_monthly_by_month_day_requires_day():
    spec = RecurrenceSpec(
        IntervalType.MONTHLY, interval=1, monthly_kind=MonthlyKind.BY_MONTH_DAY
    )

    with raises(MissingRequiredField) as excinfo:
        validate(spec)

    assert excinfo.value.field_name == "monthDayOfMonth"


def test_weekly_requires_days():
    with raises(MissingRequiredField) as excinfo:
        validate(RecurrenceSpec(IntervalType.WEEKLY, interval=1))
    assert excinfo.value.field_name == "weeklyDays"

    with raises(MissingRequiredField):
        validate(RecurrenceSpec(IntervalType.WEEKLY, interval=1, weekly_days=()))


def test_count_requires_end_count():
    spec = RecurrenceSpec(IntervalType.DAILY, interval=1, end_type=EndType.COUNT)

    with raises(MissingRequiredField) as excinfo:
        validate(spec)

    assert excinfo.value.field_name == "endCount"


@mark.parametrize("day", [0, 32, -1])
def test_month_day_out_of_range(day):
    with raises(OutOfRangeValue) as excinfo:
        validate(RecurrenceSpec.monthly_by_day(1, day))

    assert excinfo.value.field_name == "monthDayOfMonth"
    assert excinfo.value.value == day


@mark.parametrize("day", [1, 31])
def test_month_day_bounds_accepted(day):
    validate(RecurrenceSpec.monthly_by_day(1, day))


@mark.parametrize("ordinal", [0, 5, -2])
def test_month_ordinal_out_of_range(ordinal):
    with raises(OutOfRangeValue) as excinfo:
        validate(RecurrenceSpec.monthly_by_weekday(1, ordinal, Weekday.MON))

    assert excinfo.value.field_name == "monthOrdinal"
    assert excinfo.value.value == ordinal


def test_missing_month_weekday_reported_before_bad_ordinal():
    with raises(MissingRequiredField) as excinfo:
        validate(RecurrenceSpec.monthly_by_weekday(1, 5, None))

    assert excinfo.value.field_name == "monthWeekday"


@mark.parametrize("count", [0, -1])
def test_end_count_must_be_positive(count):
    spec = RecurrenceSpec.daily(1, end_type=EndType.COUNT, end_count=count)

    with raises(OutOfRangeValue) as excinfo:
        validate(spec)

    assert excinfo.value.field_name == "endCount"
    assert excinfo.value.value == count


def test_until_requires_until_date():
    spec = RecurrenceSpec(IntervalType.DAILY, interval=1, end_type=EndType.UNTIL)

    with raises(MissingRequiredField) as excinfo:
        encode(spec)

    assert excinfo.value.field_name == "untilDate"


def test_unrelated_fields_are_ignored():
    """Monthly and weekly fields on a daily rule are not an error."""
    spec = RecurrenceSpec(
        IntervalType.DAILY,
        interval=3,
        monthly_kind=MonthlyKind.BY_MONTH_DAY,
        weekly_days=(Weekday.MON,),
    )

    validate(spec)


def test_encode_monthly_by_month_day():
    spec = RecurrenceSpec(
        IntervalType.MONTHLY,
        interval=1,
        monthly_kind=MonthlyKind.BY_MONTH_DAY,
        month_day_of_month=15,
    )

    form = encode(spec)

    assert form["intervalType"] == "MONTHLY"
    assert form["monthlyIntervalType"] == "BYMONTHDAY"
    assert form["monthDayInMonth"] == "15"
    assert "monthInterval" not in form
    assert "monthDay" not in form


def test_encode_monthly_by_weekday_ordinal():
    spec = RecurrenceSpec.monthly_by_weekday(1, 1, Weekday.MON)

    form = encode(spec)

    assert form["monthlyIntervalType"] == "BYDAY"
    assert form["monthInterval"] == "1"
    assert form["monthDay"] == "MON"
    assert "monthDayInMonth" not in form


def test_encode_last_weekday_of_month():
    form = encode(RecurrenceSpec.monthly_by_weekday(2, -1, Weekday.FRI))

    assert form["monthInterval"] == "-1"
    assert form["interval"] == "2"


def test_encode_weekly_with_count():
    spec = RecurrenceSpec(
        IntervalType.WEEKLY,
        interval=1,
        weekly_days=(Weekday.MON, Weekday.WED, Weekday.FRI),
        end_type=EndType.COUNT,
        end_count=20,
    )

    form = encode(spec)

    assert form == {
        "intervalType": "WEEKLY",
        "interval": "1",
        "recurrenceDays": "MON,WED,FRI",
        "endType": "COUNT",
        "endInterval": "20",
    }


def test_encode_keeps_weekday_input_order():
    spec = RecurrenceSpec.weekly(2, [Weekday.FRI, Weekday.MON])

    assert encode(spec)["recurrenceDays"] == "FRI,MON"


def test_encode_until_passes_date_through():
    spec = RecurrenceSpec.daily(1, end_type=EndType.UNTIL, until_date="31.12.2024")

    form = encode(spec)

    assert form["endType"] == "UNTIL"
    assert form["untilDate"] == "31.12.2024"
    assert "endInterval" not in form


def test_encode_weekdays_without_interval():
    form = encode(RecurrenceSpec.weekdays())

    assert form == {"intervalType": "WEEKDAYS", "endType": "NEVER"}


def test_encode_none_uses_portal_value():
    assert encode(RecurrenceSpec())["intervalType"] == "NO"


def test_encode_key_order():
    spec = RecurrenceSpec.monthly_by_day(3, 26, end_type=EndType.COUNT, end_count=4)

    assert list(encode(spec)) == [
        "intervalType",
        "interval",
        "monthlyIntervalType",
        "monthDayInMonth",
        "endType",
        "endInterval",
    ]


def test_encode_is_idempotent():
    spec = RecurrenceSpec.weekly(
        1, [Weekday.TUE, Weekday.THU], end_type=EndType.COUNT, end_count=5
    )

    assert encode(spec) == encode(spec)
    assert list(encode(spec).items()) == list(encode(spec).items())


def test_spec_accepts_names():
    spec = RecurrenceSpec("WEEKLY", interval=1, weekly_days=["MON", "SUN"])

    assert spec.interval_type is IntervalType.WEEKLY
    assert spec.weekly_days == (Weekday.MON, Weekday.SUN)


def test_spec_rejects_unknown_weekday():
    with raises(InvalidEnumerationMember):
        RecurrenceSpec("WEEKLY", interval=1, weekly_days=["MONDAY"])


def test_encode_alarms_two_groups():
    form = encode_alarms(["15M", "1H"], date(2024, 12, 20))

    assert len(form) == 12
    assert form["alarms[0][trigger][type]"] == "PT15M"
    assert form["alarms[1][trigger][type]"] == "PT1H"
    for i in (0, 1):
        trigger = f"alarms[{i}][trigger]"
        assert form[f"{trigger}[interval][days]"] == "0"
        assert form[f"{trigger}[interval][hours]"] == "0"
        assert form[f"{trigger}[interval][minutes]"] == "15"
        assert form[f"{trigger}[before]"] == "1"
        assert form[f"{trigger}[dateTime]"] == "20.12.2024+00:00"


def test_encode_alarms_uses_date_of_datetime():
    form = encode_alarms(["0M"], datetime(2024, 3, 5, 17, 45))

    assert form["alarms[0][trigger][dateTime]"] == "05.03.2024+00:00"


def test_encode_alarms_accepts_every_token():
    form = encode_alarms(list(ALARM_TOKENS), date(2024, 1, 1))

    assert len(form) == 6 * len(ALARM_TOKENS)


def test_encode_alarms_invalid_token():
    with raises(InvalidEnumerationMember) as excinfo:
        encode_alarms(["99X"], date(2024, 12, 20))

    assert excinfo.value.value == "99X"


def test_encode_alarms_invalid_token_after_valid_one():
    with raises(InvalidEnumerationMember) as excinfo:
        encode_alarms(["15M", "3H"], date(2024, 12, 20))

    assert excinfo.value.value == "3H"


def test_encode_alarms_accepts_generator():
    form = encode_alarms((token for token in ["15M", "1D"]), date(2024, 12, 20))

    assert form["alarms[0][trigger][type]"] == "PT15M"
    assert form["alarms[1][trigger][type]"] == "PT1D"


def test_encode_alarms_empty():
    assert encode_alarms([], date(2024, 12, 20)) == {}


def test_form_fields_nesting():
    fragment = {"intervalType": "WEEKLY", "recurrenceDays": "MON,FRI"}

    assert form_fields(fragment, "eventForm[recurring]") == {
        "eventForm[recurring][intervalType]": "WEEKLY",
        "eventForm[recurring][recurrenceDays][]": "MON,FRI",
    }


def test_form_fields_nesting_alarms():
    fragment = encode_alarms(["5M"], date(2024, 12, 20))

    nested = form_fields(fragment, "eventForm")

    assert nested["eventForm[alarms][0][trigger][type]"] == "PT5M"
    assert nested["eventForm[alarms][0][trigger][interval][minutes]"] == "15"
