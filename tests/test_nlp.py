from datetime import date, datetime

from uptier.nlp import format_date, format_minutes, parse_task_input

NOW = datetime(2026, 10, 19, 10, 0)  # a Monday


def test_full_quick_add_sentence():
    parsed = parse_task_input("Buy milk tomorrow #errands !1 ~30m", NOW)
    assert parsed.clean_title == "Buy milk"
    assert parsed.due_date == date(2026, 10, 20)
    assert parsed.tags == ["errands"]
    assert parsed.priority_tier == 1
    assert parsed.estimated_minutes == 30
    assert parsed.due_time is None


def test_text_without_tokens_is_only_trimmed():
    parsed = parse_task_input("   Write the   report  ", NOW)
    assert parsed.clean_title == "Write the   report"
    assert parsed.tokens == []
    assert parsed.due_date is None
    assert parsed.tags == []


def test_tokens_are_sorted_by_position_with_spans():
    parsed = parse_task_input("Buy milk tomorrow #errands", NOW)
    assert [t.type for t in parsed.tokens] == ["date", "tag"]
    first = parsed.tokens[0]
    assert (first.raw, first.value, first.start, first.end) == ("tomorrow", "Tomorrow", 9, 17)
    assert parsed.tokens[1].value == "#errands"


def test_month_day_rolls_over_to_next_year_when_past():
    assert parse_task_input("Pay rent Jan 15", date(2026, 12, 31)).due_date == date(2027, 1, 15)
    assert parse_task_input("Pay rent Jan 15", date(2026, 1, 1)).due_date == date(2026, 1, 15)
    # today itself is not in the past
    assert parse_task_input("Pay rent Jan 15", date(2026, 1, 15)).due_date == date(2026, 1, 15)


def test_numeric_dates_follow_the_same_rollover():
    assert parse_task_input("Taxes 3/15", NOW).due_date == date(2027, 3, 15)
    assert parse_task_input("Party 12-25", NOW).due_date == date(2026, 12, 25)


def test_impossible_dates_stay_in_the_title():
    parsed = parse_task_input("Report 2/30", NOW)
    assert parsed.due_date is None
    assert parsed.clean_title == "Report 2/30"
    assert parse_task_input("Ship Feb 30", NOW).due_date is None


def test_relative_dates():
    assert parse_task_input("a today", NOW).due_date == date(2026, 10, 19)
    assert parse_task_input("a next friday", NOW).due_date == date(2026, 10, 23)
    # "next <today's weekday>" is a week out, never today
    assert parse_task_input("a next monday", NOW).due_date == date(2026, 10, 26)
    assert parse_task_input("a next week", NOW).due_date == date(2026, 10, 26)
    assert parse_task_input("a next month", NOW).due_date == date(2026, 11, 19)
    assert parse_task_input("a in 3 days", NOW).due_date == date(2026, 10, 22)
    assert parse_task_input("a in 2 weeks", NOW).due_date == date(2026, 11, 2)
    assert parse_task_input("a in 4 months", NOW).due_date == date(2027, 2, 19)


def test_clock_times():
    parsed = parse_task_input("Call mom at 3pm", NOW)
    assert parsed.due_time == "15:00"
    assert parsed.clean_title == "Call mom"
    assert parsed.tokens[0].value == "3:00 PM"
    assert parse_task_input("x at 14:30", NOW).due_time == "14:30"
    assert parse_task_input("x at 12am", NOW).due_time == "00:00"
    assert parse_task_input("x at 12:15 pm", NOW).due_time == "12:15"
    assert parse_task_input("x at noon", NOW).due_time == "12:00"
    assert parse_task_input("x at midnight", NOW).due_time == "00:00"


def test_invalid_clock_times_are_not_consumed():
    parsed = parse_task_input("Standup at 25:00", NOW)
    assert parsed.due_time is None
    assert parsed.clean_title == "Standup at 25:00"
    assert parse_task_input("x at 13pm", NOW).due_time is None


def test_first_value_wins_but_every_token_is_removed():
    parsed = parse_task_input("Ship !2 it !1 tomorrow today", NOW)
    assert parsed.priority_tier == 2
    # matchers run in a fixed order, so "today" is found before "tomorrow"
    assert parsed.due_date == date(2026, 10, 19)
    assert parsed.clean_title == "Ship it"
    assert len(parsed.tokens) == 4


def test_priority_words():
    assert parse_task_input("x !now", NOW).priority_tier == 1
    assert parse_task_input("x !soon", NOW).priority_tier == 2
    assert parse_task_input("x !backlog", NOW).priority_tier == 3
    assert parse_task_input("x !4", NOW).priority_tier is None


def test_durations():
    assert parse_task_input("x ~1h30m", NOW).estimated_minutes == 90
    assert parse_task_input("x ~2h", NOW).estimated_minutes == 120
    assert parse_task_input("x ~45min", NOW).estimated_minutes == 45
    zero = parse_task_input("Nap ~0m", NOW)
    assert zero.estimated_minutes is None
    assert zero.clean_title == "Nap"


def test_tags_accumulate_in_order_with_duplicates():
    parsed = parse_task_input("Plan #work trip #travel #work", NOW)
    assert parsed.tags == ["work", "travel", "work"]
    assert parsed.clean_title == "Plan trip"


def test_to_dict_is_json_shaped():
    d = parse_task_input("Buy milk tomorrow", NOW).to_dict()
    assert d["due_date"] == "2026-10-20"
    assert d["tokens"][0]["type"] == "date"


def test_display_helpers():
    assert format_date(date(2026, 1, 5)) == "Jan 5"
    assert format_minutes(90) == "1h 30m"
    assert format_minutes(120) == "2h"
    assert format_minutes(45) == "45m"
