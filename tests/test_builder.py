from datetime import time

import pytest

from ctk.builder import PolicyBuilder, offer_save, run_session
from ctk.catalog import SYSTEM_APPS
from ctk.schema import (
    Allowance,
    AppTarget,
    LockMethod,
    NoBreak,
    Pomodoro,
    PolicySet,
    BlockPolicy,
    ScheduleKind,
    TimeWindow,
)
from ctk.serializer import encode_break, encode_policy, encode_window, load

# Answers "no" to the five website / app / title questions.
NO_EXTRAS = ["n"] * 5


class StubBrowser:
    def __init__(self, targets=None, error=None):
        self.targets = targets or []
        self.error = error

    def browse(self):
        if self.error:
            raise self.error
        return self.targets


def make_builder(prompter, browser=None):
    browser = browser or StubBrowser()
    return PolicyBuilder(prompter, browser_factory=lambda _: browser)


def test_time_range_lock(make_prompter):
    policy = BlockPolicy()
    builder = make_builder(make_prompter("3", "09:00", "17:00", "y"))
    assert builder.choose_lock_method(policy) is LockMethod.TIME_WINDOW
    assert encode_window(policy.window) == "lock@9,0@17,0"


def test_pomodoro_break(make_prompter):
    break_policy = make_builder(make_prompter("3", "25", "5")).choose_break_policy()
    assert break_policy == Pomodoro(block_minutes=25, break_minutes=5)
    assert encode_break(break_policy) == "25,5"


def test_allowance_break_bounds(make_prompter, output):
    break_policy = make_builder(make_prompter("2", "100", "99")).choose_break_policy()
    assert break_policy == Allowance(minutes=99)
    assert "Value must be between 0 and 99" in output()


def test_no_break(make_prompter):
    assert make_builder(make_prompter("1")).choose_break_policy() == NoBreak()


def test_random_text_length_bounds(make_prompter, output):
    policy = BlockPolicy()
    make_builder(make_prompter("2", "1000", "999")).choose_lock_method(policy)
    assert policy.lock_method is LockMethod.RANDOM_TEXT
    assert policy.random_text_length == 999
    assert "Value must be between 0 and 999" in output()


def test_switching_lock_keeps_other_settings(make_prompter):
    policy = BlockPolicy()
    builder = make_builder(make_prompter("2", "50", "4", "n", "1"))
    builder.choose_lock_method(policy)
    builder.choose_lock_method(policy)
    builder.choose_lock_method(policy)
    assert policy.lock_method is LockMethod.NONE
    assert policy.random_text_length == 50
    assert policy.restart_unblock is False
    assert policy.window == TimeWindow()


def test_password_lock_requires_a_password(make_prompter, output):
    policy = BlockPolicy()
    make_builder(make_prompter("5", "", "hunter2")).choose_lock_method(policy)
    assert policy.lock_method is LockMethod.PASSWORD
    assert policy.password.get_secret_value() == "hunter2"
    assert "An answer is required" in output()


def test_empty_web_list(make_prompter):
    lines = ["1", "1", "y", "", "n", "n", "n", "n", "n"]
    policy = make_builder(make_prompter(*lines)).build_policy()
    assert policy.web_rules == []
    assert policy.schedule_kind is ScheduleKind.CONTINUOUS


def test_build_policy_with_everything(make_prompter):
    lines = [
        "1",  # no lock
        "2", "10",  # allowance
        "y", "example.com", "news.site", "",
        "y", "docs.example.com", "",
        "y",  # executables, from the stub browser
        "y", "1 2", "",
        "y", "Netflix", "",
        "n",
    ]
    browser = StubBrowser([AppTarget.file("C:\\Games\\steam.exe")])
    policy = make_builder(make_prompter(*lines), browser).build_policy()

    assert policy.break_policy == Allowance(minutes=10)
    assert policy.web_rules == ["example.com", "news.site"]
    assert policy.web_exceptions == ["file://*", "docs.example.com"]
    assert policy.app_targets == [
        AppTarget.file("C:/Games/steam.exe"),
        AppTarget.system_app(SYSTEM_APPS[0]),
        AppTarget.system_app(SYSTEM_APPS[1]),
        AppTarget.window_title("Netflix"),
    ]
    assert encode_policy(policy)["apps"][0] == "file:C:/Games/steam.exe"


def test_website_history_is_shared_between_lists(make_prompter):
    lines = ["1", "1", "y", "example.com", "", "y", "!!", "", "n", "n", "n", "n"]
    policy = make_builder(make_prompter(*lines)).build_policy()
    assert policy.web_exceptions == ["file://*", "example.com"]


def test_browser_failure_skips_apps(make_prompter, output):
    lines = ["1", "1", "n", "n", "y", "n", "n", "n"]
    browser = StubBrowser(error=PermissionError("denied"))
    policy = make_builder(make_prompter(*lines), browser).build_policy()
    assert policy.app_targets == []
    assert "Cannot browse the filesystem" in output()


def test_schedule_across_midnight(make_prompter):
    lines = ["1", "1", *NO_EXTRAS, "y", "y", "2 4", "", "22:00", "00:00", "1", "n", "n"]
    policy = make_builder(make_prompter(*lines)).build_policy()

    assert policy.schedule_kind is ScheduleKind.SCHEDULED
    schedule = encode_policy(policy)["schedule"]
    assert schedule == [
        {"id": "0", "startTime": "1,22,0", "endTime": "2,0,0", "break": "none"},
        {"id": "1", "startTime": "3,22,0", "endTime": "4,0,0", "break": "none"},
    ]


def test_schedule_reprompts_bad_times(make_prompter, output):
    lines = [
        "y", "y", "1", "",
        "10:03", "10:05", "9:00",  # off-grid start, then end before start
        "10:05", "11:00",
        "3", "25", "5",
        "n", "n",
    ]
    policy = BlockPolicy()
    make_builder(make_prompter(*lines)).build_schedule(policy)

    [entry] = policy.schedule_entries
    assert entry.start.time_of_day == time(10, 5)
    assert entry.end.time_of_day == time(11, 0)
    assert entry.break_policy == Pomodoro(block_minutes=25, break_minutes=5)
    assert "Minutes must be a multiple of 5" in output()
    assert "use 0:00 to run until midnight" in output()


def test_schedule_entries_accumulate_and_can_be_removed(make_prompter):
    lines = [
        "y",
        "y", "1", "", "9:00", "12:00", "1",
        "y", "2 3", "", "13:00", "17:00", "2", "15",
        "n",
        "y", "1", "",
    ]
    policy = BlockPolicy()
    make_builder(make_prompter(*lines)).build_schedule(policy)

    assert [e.id for e in policy.schedule_entries] == [0, 1]
    assert [e.start.day_of_week for e in policy.schedule_entries] == [1, 2]
    assert all(e.break_policy == Allowance(minutes=15) for e in policy.schedule_entries)


def test_run_session_rejects_duplicate_names(make_prompter, output):
    lines = [
        "Work", "1", "1", *NO_EXTRAS, "n",
        "y",
        "Work", "Play", "1", "1", *NO_EXTRAS, "n",
        "n",
    ]
    policies = run_session(make_prompter(*lines))
    assert policies.names() == ["Work", "Play"]
    assert "Block Work already exists" in output()
    assert "Suggested Blocks" in output()


def test_run_session_end_of_input(make_prompter):
    with pytest.raises(EOFError):
        run_session(make_prompter("Work", "1"))


@pytest.fixture
def policies():
    return PolicySet({"Work": BlockPolicy(web_rules=["example.com"])})


def test_offer_save(make_prompter, policies, tmp_path, output):
    path = offer_save(make_prompter("y", "focus"), policies, directory=tmp_path)
    assert path == tmp_path / "focus.ctbbl"
    assert load(path).get("Work").web_rules == ["example.com"]
    assert "Successfully saved to" in output()


def test_offer_save_random_name(make_prompter, policies, tmp_path):
    path = offer_save(make_prompter("y", ""), policies, directory=tmp_path)
    assert path.name.startswith("ctk_")
    assert path.suffix == ".ctbbl"
    assert path.exists()


def test_offer_save_declined(make_prompter, policies, tmp_path):
    assert offer_save(make_prompter("n"), policies, directory=tmp_path) is None
    assert list(tmp_path.iterdir()) == []


def test_offer_save_retries_after_failure(make_prompter, policies, tmp_path, output):
    lines = ["y", "missing/focus", "y", "focus"]
    path = offer_save(make_prompter(*lines), policies, directory=tmp_path)
    assert path == tmp_path / "focus.ctbbl"
    assert "Could not save the block list" in output()


def test_offer_save_gives_up(make_prompter, policies, tmp_path):
    lines = ["y", "missing/focus", "n"]
    assert offer_save(make_prompter(*lines), policies, directory=tmp_path) is None
