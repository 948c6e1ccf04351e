from datetime import datetime

from uptier.service import OPERATIONS


def test_invalid_payloads_are_rejected_before_the_database(service):
    result = service.create_task({"list_id": "x", "title": ""})
    assert result["success"] is False
    assert result["error_type"] == "validation"
    assert result["details"][0]["field"] == "title"

    unknown_key = service.get_lists({"surprise": 1})
    assert unknown_key["error_type"] == "validation"


def test_missing_entities_are_reported_as_not_found(service):
    result = service.get_task({"id": "nope"})
    assert result == {"success": False, "error": "Task not found", "error_type": "not_found"}


def test_system_lists_cannot_be_deleted(service):
    result = service.delete_list({"id": "smart:my_day"})
    assert result["success"] is False
    assert result["error_type"] == "invalid"


def test_create_task_flags(service, inbox):
    result = service.create_task({"list_id": inbox.id, "title": "Call bank", "add_to_my_day": True,
                                  "mark_important": True, "recurrence_rule": {"frequency": "weekly"}})
    task = result["task"]
    assert (task["due_date"], task["priority_tier"]) == ("2026-10-19", 1)
    assert task["recurrence_rule"] == {"frequency": "weekly", "interval": 1}
    assert task["prioritized_at"] is not None


def test_get_task_includes_subtasks(service, inbox):
    task = service.create_task({"list_id": inbox.id, "title": "Trip"})["task"]
    service.add_subtask({"task_id": task["id"], "title": "Book flights"})
    fetched = service.get_task({"id": task["id"]})["task"]
    assert [s["title"] for s in fetched["subtasks"]] == ["Book flights"]


def test_update_with_explicit_null_clears_a_field(service, inbox):
    task = service.create_task({"list_id": inbox.id, "title": "a", "due_date": "2026-10-20",
                                "notes": "keep"})["task"]
    updated = service.update_task({"id": task["id"], "due_date": None})["task"]
    assert updated["due_date"] is None
    assert updated["notes"] == "keep"


def test_quick_add_uses_the_default_list_and_creates_tags(service):
    result = service.quick_add_task({"text": "Buy milk tomorrow #errands #Home !1 ~30m"})
    assert result["success"] is True
    task = result["task"]
    assert task["title"] == "Buy milk"
    assert task["list_name"] == "Inbox"
    assert (task["due_date"], task["priority_tier"], task["estimated_minutes"]) == ("2026-10-20", 1, 30)
    assert sorted(t["name"] for t in task["tags"]) == ["Home", "errands"]
    assert result["parsed"]["tags"] == ["errands", "Home"]

    again = service.quick_add_task({"text": "Eggs #errands"})
    assert again["task"]["list_id"] == task["list_id"]
    assert len(service.get_tags()["tags"]) == 2


def test_quick_add_needs_a_title(service):
    result = service.quick_add_task({"text": "tomorrow #errands"})
    assert result["success"] is False
    assert result["error_type"] == "validation"


def test_reminder_from_due_date(service, inbox, clock):
    task = service.create_task({"list_id": inbox.id, "title": "Dentist", "due_date": "2026-10-20",
                                "due_time": "14:00"})["task"]
    result = service.set_reminder_from_due_date({"id": task["id"]})
    assert result["reminder_at"] == "2026-10-20 13:45:00"

    undated = service.create_task({"list_id": inbox.id, "title": "Someday"})["task"]
    assert service.set_reminder_from_due_date({"id": undated["id"]})["error_type"] == "invalid"

    clock.now = datetime(2026, 10, 20, 13, 50)
    late = service.set_reminder_from_due_date({"id": task["id"]})
    assert late == {"success": False, "error": "Reminder time has already passed", "error_type": "invalid"}


def test_schedule_batch_failure_names_the_task(service, inbox):
    a = service.create_task({"list_id": inbox.id, "title": "a"})["task"]
    result = service.schedule_tasks({"date": "2026-10-19", "tasks": [
        {"task_id": a["id"], "start_time": "09:00"},
        {"task_id": "missing", "start_time": "10:00"},
    ]})
    assert result["success"] is False
    assert (result["error_type"], result["task_id"]) == ("batch_aborted", "missing")
    assert service.get_task({"id": a["id"]})["task"]["due_time"] is None


def test_schedule_and_read_the_day(service, inbox):
    a = service.create_task({"list_id": inbox.id, "title": "a", "estimated_minutes": 45})["task"]
    placed = service.schedule_tasks({"date": "2026-10-19", "tasks": [{"task_id": a["id"], "start_time": "09:10"}]})
    assert placed["scheduled"][0]["start_time"] == "09:15"
    day = service.get_day_schedule({})
    assert day["date"] == "2026-10-19"
    assert day["scheduled"][0]["end_time"] == "10:00"


def test_goal_operations(service, inbox):
    goal = service.create_goal({"name": "Run a marathon", "timeframe": "yearly"})["goal"]
    sub = service.create_goal({"name": "Run 10k", "parent_goal_id": goal["id"]})["goal"]
    task = service.create_task({"list_id": inbox.id, "title": "Buy shoes"})["task"]
    service.link_tasks_to_goal({"goal_id": sub["id"], "task_ids": [task["id"]]})
    service.complete_task({"id": task["id"]})

    progress = service.get_goal_progress({"id": sub["id"]})["progress"]
    assert progress == {"goal_id": sub["id"], "total_tasks": 1, "completed_tasks": 1, "progress_percent": 100}

    tree = service.get_goal_hierarchy({})["goals"]
    assert tree[0]["children"][0]["name"] == "Run 10k"

    cycle = service.update_goal({"id": goal["id"], "parent_goal_id": sub["id"]})
    assert cycle["error_type"] == "invalid"


def test_smart_list_lifecycle(service, inbox):
    created = service.create_smart_list({"name": "Quick", "filter": {"rules": [
        {"field": "estimated_minutes", "operator": "lte", "value": 15},
    ]}})
    smart = created["list"]
    assert (smart["is_smart_list"], smart["icon"]) == (True, "filter")
    service.create_task({"list_id": inbox.id, "title": "tiny", "estimated_minutes": 10})
    service.create_task({"list_id": inbox.id, "title": "big", "estimated_minutes": 90})
    tasks = service.get_smart_list_tasks({"id": smart["id"]})["tasks"]
    assert [t["title"] for t in tasks] == ["tiny"]

    bad_rule = service.create_smart_list({"name": "Bad", "filter": {"rules": [{"field": "mood", "operator": "equals"}]}})
    assert bad_rule["error_type"] == "validation"
    assert service.update_list({"id": inbox.id, "filter": {"rules": []}})["error_type"] == "invalid"


def test_changes_are_written_to_the_changelog(service, inbox, changelog):
    task = service.create_task({"list_id": inbox.id, "title": "a"})["task"]
    service.complete_task({"id": task["id"]})
    service.get_lists()
    entries = [(e["type"], e["op"], e["id"]) for e in changelog.read()]
    assert entries == [("task", "create", task["id"]), ("task", "complete", task["id"])]


def test_planning_flow(service, inbox):
    task = service.create_task({"list_id": inbox.id, "title": "a", "estimated_minutes": 60})["task"]
    service.add_task_to_day({"task_id": task["id"]})
    context = service.get_daily_planning_context({})
    assert context["target_date"] == "2026-10-19"
    assert context["capacity"]["planned_minutes"] == 60

    done = service.complete_planning({"date": "2026-10-19"})
    assert done["planned_dates"] == ["2026-10-19"]
    assert service.get_planned_dates()["last_planning_date"] == "2026-10-19"


def test_every_operation_has_a_unique_channel():
    channels = [op.channel for op in OPERATIONS.values()]
    assert len(channels) == len(set(channels))
    assert all(":" in channel for channel in channels)
