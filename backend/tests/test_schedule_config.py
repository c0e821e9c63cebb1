from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from scheduler.cron_manager import build_cron_trigger
from scheduler.schedule_config import (
    ScheduleConfig,
    build_cron_expression,
    get_schedule_description,
    parse_cron_expression,
    to_apscheduler_weekdays,
    validate_cron_expression,
)


@pytest.mark.parametrize("expression", ["0 6 * * *", "*/15 * * * *", "30 7 * * 1,3,5", "0 0 1 * *"])
def test_validate_accepts_five_field_expressions(expression):
    assert validate_cron_expression(expression)


@pytest.mark.parametrize("expression", ["", "0 6 * *", "0 0 6 * * *", "61 6 * * *", "a b c d e", None])
def test_validate_rejects_malformed_expressions(expression):
    assert not validate_cron_expression(expression)


def test_build_cron_expression_from_days():
    assert build_cron_expression(["Friday", "monday"], 6, 30) == "30 6 * * 1,5"


def test_build_cron_expression_every_day():
    all_days = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]
    assert build_cron_expression([], 8, 0) == "0 8 * * *"
    assert build_cron_expression(all_days, 8, 0) == "0 8 * * *"


def test_build_cron_expression_unknown_day():
    with pytest.raises(KeyError):
        build_cron_expression(["someday"], 8, 0)


def test_parse_cron_expression_reads_weekly_schedule():
    assert parse_cron_expression("15 8 * * 0,3") == {"days": ["sunday", "wednesday"], "hour": 8, "minute": 15}


def test_parse_cron_expression_gives_up_on_complex_schedule():
    assert parse_cron_expression("*/5 * * * *") is None
    assert parse_cron_expression("0 6 1 * *") is None


def test_schedule_description():
    assert get_schedule_description("0 6 * * *") == "Every day at 06:00"
    assert get_schedule_description("5 18 * * 1") == "Every Monday at 18:05"
    assert get_schedule_description("0 6 * * 1,3,5") == "Every Monday, Wednesday and Friday at 06:00"
    assert get_schedule_description("*/5 * * * *") == "Custom schedule: */5 * * * *"


def test_apscheduler_weekday_translation():
    assert to_apscheduler_weekdays("1-5") == "mon,tue,wed,thu,fri"
    assert to_apscheduler_weekdays("0,6") == "sun,sat"
    assert to_apscheduler_weekdays("7") == "sun"
    assert to_apscheduler_weekdays("*/2") == "sun,tue,thu,sat"
    assert to_apscheduler_weekdays("*") == "*"


def test_apscheduler_weekday_ranges_starting_on_sunday():
    assert to_apscheduler_weekdays("0-4") == "sun,mon,tue,wed,thu"
    assert to_apscheduler_weekdays("0-6") == "sun,mon,tue,wed,thu,fri,sat"
    assert to_apscheduler_weekdays("5-7") == "fri,sat,sun"
    assert to_apscheduler_weekdays("sun-tue,6") == "sun,mon,tue,sat"


@pytest.mark.parametrize("field", ["5-1", "1-3/0", "xyz", "1-"])
def test_apscheduler_weekday_translation_rejects_bad_fields(field):
    with pytest.raises(ValueError):
        to_apscheduler_weekdays(field)


def test_cron_trigger_fires_on_crontab_weekday():
    trigger = build_cron_trigger("0 6 * * 1", "UTC")
    # 2024-01-07 is a Sunday
    now = datetime(2024, 1, 7, 12, 0, tzinfo=timezone.utc)
    next_fire = trigger.get_next_fire_time(None, now)
    assert next_fire.weekday() == 0
    assert (next_fire.year, next_fire.month, next_fire.day, next_fire.hour) == (2024, 1, 8, 6)


def test_cron_trigger_for_sunday_to_thursday():
    trigger = build_cron_trigger("0 6 * * 0-4", "UTC")
    # 2024-01-05 is a Friday, so the next fire is Sunday 2024-01-07
    now = datetime(2024, 1, 5, 12, 0, tzinfo=timezone.utc)
    next_fire = trigger.get_next_fire_time(None, now)
    assert (next_fire.month, next_fire.day, next_fire.hour) == (1, 7, 6)

    every_day = build_cron_trigger("0 6 * * 0-6", "UTC")
    assert every_day.get_next_fire_time(None, now).day == 6


def test_cron_trigger_rejects_invalid_expression():
    with pytest.raises(ValueError):
        build_cron_trigger("not a cron")


def test_schedule_config_defaults():
    config = ScheduleConfig()
    assert config.cron_expression == "0 6 * * *"
    assert config.enabled is True
    assert config.max_vendors_per_run == 50
    assert config.delay_between_vendors == 5.0
    assert config.retry_attempts == 3
    assert config.timeout == 60.0
    assert config.timezone == "Asia/Tehran"


def test_schedule_config_normalizes_whitespace():
    assert ScheduleConfig(cron_expression="0   6 * *  *").cron_expression == "0 6 * * *"


def test_schedule_config_accepts_week_starting_sunday():
    assert ScheduleConfig(cron_expression="0 6 * * 0-4").cron_expression == "0 6 * * 0-4"


@pytest.mark.parametrize("field, value", [
    ("cron_expression", "0 6 * *"),
    ("timezone", "Mars/Olympus"),
    ("max_vendors_per_run", -1),
    ("delay_between_vendors", -0.5),
    ("retry_attempts", -1),
    ("timeout", 0),
])
def test_schedule_config_rejects_invalid_values(field, value):
    with pytest.raises(ValidationError):
        ScheduleConfig(**{field: value})


def test_schedule_config_is_immutable():
    config = ScheduleConfig()
    with pytest.raises(ValidationError):
        config.enabled = False


def test_fallback_config_is_disabled():
    config = ScheduleConfig.fallback("UTC")
    assert config.enabled is False
    assert config.timezone == "UTC"
    assert config.cron_expression == ScheduleConfig().cron_expression


def test_next_run_time_uses_config_timezone():
    config = ScheduleConfig(cron_expression="0 6 * * *", timezone="UTC")
    next_run = config.get_next_run_time(now=datetime(2024, 1, 1, 5, 0, tzinfo=timezone.utc))
    assert next_run == datetime(2024, 1, 1, 6, 0, tzinfo=timezone.utc)


def test_same_trigger():
    config = ScheduleConfig(timezone="UTC")
    assert config.same_trigger(config.model_copy(update={"retry_attempts": 9}))
    assert not config.same_trigger(ScheduleConfig(cron_expression="0 7 * * *", timezone="UTC"))
