"""
Reads and writes Cold Turkey block list files (.ctbbl).

Cold Turkey stores almost every value as a string, so booleans become "true" /
"false", numbers become decimal text and the structured fields use compact
encodings:

    window      "lock@9,0@17,0" / "unlock@22,30@6,0"
    break       "none" | "<allowance minutes>" | "<block minutes>,<break minutes>"
    apps        "file:<path>" | "folder:<path>" | "win10:<name>" | "title:<text>"
    schedule    startTime / endTime as "<day of week>,<hour>,<minute>"
"""

import json
import os
import random
import tempfile
from datetime import time
from pathlib import Path

from loguru import logger
from pydantic import SecretStr

from ctk.schema import (
    Allowance,
    AppKind,
    AppTarget,
    BlockPolicy,
    BreakPolicy,
    LockMethod,
    NoBreak,
    Pomodoro,
    PolicySet,
    ScheduleEntry,
    ScheduleKind,
    TimeWindow,
    WeekTime,
)
from ctk.settings import settings

_JSON_TYPE_NAMES = {str: "string", list: "list", dict: "object"}


def encode_bool(value: bool) -> str:
    return "true" if value else "false"


def decode_bool(text: str) -> bool:
    if text not in ("true", "false"):
        raise ValueError(f"Expected 'true' or 'false', got {text!r}")
    return text == "true"


def encode_window(window: TimeWindow) -> str:
    mode = "lock" if window.lock_during_range else "unlock"
    start, end = window.start, window.end
    return f"{mode}@{start.hour},{start.minute}@{end.hour},{end.minute}"


def decode_window(text: str) -> TimeWindow:
    try:
        mode, start, end = text.split("@")
        if mode not in ("lock", "unlock"):
            raise ValueError(mode)
        return TimeWindow(
            lock_during_range=mode == "lock",
            start=_decode_hour_minute(start),
            end=_decode_hour_minute(end),
        )
    except ValueError:
        raise ValueError(f"Invalid window {text!r}") from None


def encode_break(break_policy: BreakPolicy) -> str:
    if isinstance(break_policy, Allowance):
        return str(break_policy.minutes)
    if isinstance(break_policy, Pomodoro):
        return f"{break_policy.block_minutes},{break_policy.break_minutes}"
    return "none"


def decode_break(text: str) -> BreakPolicy:
    if text == "none":
        return NoBreak()
    try:
        parts = [int(part) for part in text.split(",")]
    except ValueError:
        raise ValueError(f"Invalid break {text!r}") from None
    if len(parts) == 1:
        return Allowance(minutes=parts[0])
    if len(parts) == 2:
        return Pomodoro(block_minutes=parts[0], break_minutes=parts[1])
    raise ValueError(f"Invalid break {text!r}")


def encode_app(target: AppTarget) -> str:
    value = target.value
    if target.kind in (AppKind.FILE, AppKind.FOLDER):
        value = value.replace("\\", "/")
    return f"{target.kind.value}:{value}"


def decode_app(text: str) -> AppTarget:
    kind, sep, value = text.partition(":")
    if not sep:
        raise ValueError(f"Invalid app {text!r}")
    # Older exports tag folders as "app:".
    if kind == "app":
        kind = AppKind.FOLDER.value
    return AppTarget(kind=AppKind(kind), value=value)


def encode_week_time(point: WeekTime) -> str:
    return f"{point.day_of_week},{point.time_of_day.hour},{point.time_of_day.minute}"


def decode_week_time(text: str) -> WeekTime:
    try:
        day, hour, minute = (int(part) for part in text.split(","))
        return WeekTime(day_of_week=day, time_of_day=time(hour, minute))
    except ValueError:
        raise ValueError(f"Invalid schedule time {text!r}") from None


def _decode_hour_minute(text: str) -> time:
    hour, minute = (int(part) for part in text.split(","))
    return time(hour, minute)


def encode_entry(entry: ScheduleEntry) -> dict:
    return {
        "id": str(entry.id),
        "startTime": encode_week_time(entry.start),
        "endTime": encode_week_time(entry.end),
        "break": encode_break(entry.break_policy),
    }


def encode_policy(policy: BlockPolicy) -> dict:
    """Maps a policy onto Cold Turkey's field names and string encodings."""
    return {
        "type": policy.schedule_kind.value,
        "lock": policy.lock_method.value,
        "lockUnblock": encode_bool(policy.lock_unblock),
        "restartUnblock": encode_bool(policy.restart_unblock),
        "password": policy.password.get_secret_value(),
        "randomTextLength": str(policy.random_text_length),
        "break": encode_break(policy.break_policy),
        "window": encode_window(policy.window),
        "users": policy.users,
        "web": list(policy.web_rules),
        "exceptions": list(policy.web_exceptions),
        "apps": [encode_app(target) for target in policy.app_targets],
        "schedule": [encode_entry(entry) for entry in policy.schedule_entries],
        "customUsers": list(policy.custom_users),
    }


def _field(data: dict, key: str, kind: type = str):
    """`data[key]`, checked to be an instance of `kind`."""
    if key not in data:
        raise ValueError(f"Missing field {key!r}")
    value = data[key]
    if not isinstance(value, kind):
        raise ValueError(
            f"Field {key!r} must be a {_JSON_TYPE_NAMES[kind]}, "
            f"got {type(value).__name__}"
        )
    return value


def _string_list(data: dict, key: str) -> list[str]:
    values = _field(data, key, list)
    for value in values:
        if not isinstance(value, str):
            raise ValueError(f"Field {key!r} must only contain strings, got {value!r}")
    return list(values)


def decode_entry(data) -> ScheduleEntry:
    if not isinstance(data, dict):
        raise ValueError(f"A schedule entry must be an object, got {type(data).__name__}")
    return ScheduleEntry(
        id=int(_field(data, "id")),
        start=decode_week_time(_field(data, "startTime")),
        end=decode_week_time(_field(data, "endTime")),
        break_policy=decode_break(_field(data, "break")),
    )


def decode_policy(data) -> BlockPolicy:
    """Inverse of `encode_policy`. Raises ValueError on missing or malformed fields."""
    if not isinstance(data, dict):
        raise ValueError(f"A block must be an object, got {type(data).__name__}")
    try:
        return BlockPolicy(
            schedule_kind=ScheduleKind(_field(data, "type")),
            lock_method=LockMethod(_field(data, "lock")),
            lock_unblock=decode_bool(_field(data, "lockUnblock")),
            restart_unblock=decode_bool(_field(data, "restartUnblock")),
            password=SecretStr(_field(data, "password")),
            random_text_length=int(_field(data, "randomTextLength")),
            break_policy=decode_break(_field(data, "break")),
            window=decode_window(_field(data, "window")),
            users=_field(data, "users"),
            web_rules=_string_list(data, "web"),
            web_exceptions=_string_list(data, "exceptions"),
            app_targets=[decode_app(app) for app in _string_list(data, "apps")],
            schedule_entries=[
                decode_entry(entry) for entry in _field(data, "schedule", list)
            ],
            custom_users=_string_list(data, "customUsers"),
        )
    except TypeError as e:
        raise ValueError(f"Malformed block: {e}") from None


def serialize(policies: PolicySet) -> str:
    """Pretty-printed JSON for a whole policy set, blocks in insertion order."""
    document = {name: encode_policy(policy) for name, policy in policies.items()}
    return json.dumps(document, indent=4)


def parse_policy_set(text: str) -> PolicySet:
    document = json.loads(text)
    if not isinstance(document, dict):
        raise ValueError("A block list file must contain a JSON object")
    policies = PolicySet()
    for name, data in document.items():
        try:
            policies.add(name, decode_policy(data))
        except ValueError as e:
            raise ValueError(f"Block {name!r}: {e}") from e
    return policies


def load(path: Path) -> PolicySet:
    with open(path, encoding="utf-8") as f:
        return parse_policy_set(f.read())


def output_path(file_name: str | None = None, directory: Path | None = None) -> Path:
    """`<file_name><ext>`, or a random `<prefix><u64><ext>` name when none is given."""
    if not file_name:
        file_name = f"{settings.random_name_prefix}{random.getrandbits(64)}"
    path = Path(f"{file_name}{settings.file_extension}")
    return directory / path if directory else path


def save(
    policies: PolicySet,
    file_name: str | None = None,
    directory: Path | None = None,
) -> Path:
    """
    Writes the policy set to disk and returns the path written.

    The document is fully serialized, written to a temporary file next to the
    target and then moved into place, so a failed write never leaves a
    truncated block list behind. An existing file of the same name is
    replaced. OSError propagates to the caller, which reports the cause.
    """
    text = serialize(policies)
    path = output_path(file_name, directory)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.info(f"Saved {len(policies)} block(s) to {path}")
    return path
