from datetime import time
from enum import Enum
from typing import Annotated, Iterator, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator

from ctk.utils.time import MIDNIGHT, format_time, is_on_granularity

DAYS_OF_WEEK = [
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
]

SCHEDULE_GRANULARITY_MINUTES = 5


class ScheduleKind(str, Enum):
    CONTINUOUS = "continuous"
    SCHEDULED = "scheduled"


class LockMethod(str, Enum):
    """How a running block is kept from being switched off early."""

    NONE = "none"
    RANDOM_TEXT = "randomText"
    TIME_WINDOW = "window"
    RESTART = "restart"
    PASSWORD = "password"


class NoBreak(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["none"] = "none"


class Allowance(BaseModel):
    """Unblocked until `minutes` have been used up."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["allowance"] = "allowance"
    minutes: int = Field(ge=0, le=99)


class Pomodoro(BaseModel):
    """Alternates `block_minutes` blocked with `break_minutes` unblocked."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["pomodoro"] = "pomodoro"
    block_minutes: int = Field(ge=0, le=99)
    break_minutes: int = Field(ge=0, le=99)


BreakPolicy = Annotated[Union[NoBreak, Allowance, Pomodoro], Field(discriminator="kind")]


class TimeWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    lock_during_range: bool = True
    start: time = time(9, 0)
    end: time = time(17, 0)


class AppKind(str, Enum):
    FILE = "file"
    FOLDER = "folder"
    SYSTEM_APP = "win10"
    WINDOW_TITLE = "title"


class AppTarget(BaseModel):
    """A blocked executable, folder, Windows 10 app or window title."""

    model_config = ConfigDict(frozen=True)

    kind: AppKind
    value: str

    @model_validator(mode="before")
    @classmethod
    def normalize_separators(cls, data):
        if isinstance(data, dict) and data.get("kind") in (AppKind.FILE, AppKind.FOLDER):
            data = {**data, "value": str(data["value"]).replace("\\", "/")}
        return data

    @classmethod
    def file(cls, path: str) -> "AppTarget":
        return cls(kind=AppKind.FILE, value=path)

    @classmethod
    def folder(cls, path: str) -> "AppTarget":
        return cls(kind=AppKind.FOLDER, value=path)

    @classmethod
    def system_app(cls, name: str) -> "AppTarget":
        return cls(kind=AppKind.SYSTEM_APP, value=name)

    @classmethod
    def window_title(cls, text: str) -> "AppTarget":
        return cls(kind=AppKind.WINDOW_TITLE, value=text)


class WeekTime(BaseModel):
    """A time of day on a given weekday (Sunday = 0)."""

    model_config = ConfigDict(frozen=True)

    day_of_week: int = Field(ge=0, le=6)
    time_of_day: time

    def __str__(self) -> str:
        return f"{DAYS_OF_WEEK[self.day_of_week]} {format_time(self.time_of_day)}"


class ScheduleEntry(BaseModel):
    """One weekly recurring block window."""

    id: int = Field(ge=0)
    start: WeekTime
    end: WeekTime
    break_policy: BreakPolicy = Field(default_factory=NoBreak)

    @model_validator(mode="after")
    def check_window(self) -> "ScheduleEntry":
        for point in (self.start, self.end):
            if not is_on_granularity(point.time_of_day, SCHEDULE_GRANULARITY_MINUTES):
                raise ValueError(
                    f"Minutes must be a multiple of {SCHEDULE_GRANULARITY_MINUTES}"
                )
        if self.end.time_of_day == MIDNIGHT:
            if self.end.day_of_week != (self.start.day_of_week + 1) % 7:
                raise ValueError("A midnight end must fall on the day after the start")
        elif (
            self.end.day_of_week != self.start.day_of_week
            or self.end.time_of_day <= self.start.time_of_day
        ):
            raise ValueError("End time must be after start time")
        return self

    @classmethod
    def spanning(
        cls,
        id: int,
        day_of_week: int,
        start: time,
        end: time,
        break_policy: BreakPolicy | None = None,
    ) -> "ScheduleEntry":
        """Builds an entry for one day, rolling a midnight end over to the next day."""
        end_day = (day_of_week + 1) % 7 if end == MIDNIGHT else day_of_week
        return cls(
            id=id,
            start=WeekTime(day_of_week=day_of_week, time_of_day=start),
            end=WeekTime(day_of_week=end_day, time_of_day=end),
            break_policy=break_policy or NoBreak(),
        )


def check_schedule_times(start: time, end: time) -> None:
    """Raises ValueError unless `end` is after `start` or exactly midnight."""
    if end != MIDNIGHT and end <= start:
        raise ValueError(
            f"End time {format_time(end)} must be after start time {format_time(start)} "
            "(use 0:00 to run until midnight)"
        )


class BlockPolicy(BaseModel):
    """Everything Cold Turkey needs to know about one block."""

    model_config = ConfigDict(validate_assignment=True)

    schedule_kind: ScheduleKind = ScheduleKind.CONTINUOUS
    lock_method: LockMethod = LockMethod.NONE
    lock_unblock: bool = True
    restart_unblock: bool = True
    password: SecretStr = SecretStr("")
    random_text_length: int = Field(default=30, ge=0, le=999)
    break_policy: BreakPolicy = Field(default_factory=NoBreak)
    window: TimeWindow = Field(default_factory=TimeWindow)
    users: str = ""
    web_rules: list[str] = Field(default_factory=list)
    web_exceptions: list[str] = Field(default_factory=lambda: ["file://*"])
    app_targets: list[AppTarget] = Field(default_factory=list)
    schedule_entries: list[ScheduleEntry] = Field(default_factory=list)
    custom_users: list[str] = Field(default_factory=list)

    @field_validator("schedule_entries")
    @classmethod
    def ids_are_contiguous(cls, entries: list[ScheduleEntry]) -> list[ScheduleEntry]:
        for index, entry in enumerate(entries):
            if entry.id != index:
                raise ValueError(f"Schedule entry {entry.id} is out of order (expected {index})")
        return entries

    def add_schedule_entries(
        self,
        days: list[int],
        start: time,
        end: time,
        break_policy: BreakPolicy | None = None,
    ) -> list[ScheduleEntry]:
        """Appends one entry per weekday, numbered after the existing entries."""
        check_schedule_times(start, end)
        added = [
            ScheduleEntry.spanning(
                len(self.schedule_entries) + offset, day, start, end, break_policy
            )
            for offset, day in enumerate(days)
        ]
        self.schedule_entries = self.schedule_entries + added
        return added

    def remove_schedule_entries(self, ids: list[int]) -> int:
        """Removes entries by id and renumbers the rest. Returns how many were removed."""
        doomed = set(ids)
        kept = [e for e in self.schedule_entries if e.id not in doomed]
        removed = len(self.schedule_entries) - len(kept)
        self.schedule_entries = [
            e.model_copy(update={"id": index}) for index, e in enumerate(kept)
        ]
        return removed


class PolicySet:
    """Block policies keyed by unique block name, in insertion order."""

    def __init__(self, policies: dict[str, BlockPolicy] | None = None):
        self._policies: dict[str, BlockPolicy] = {}
        for name, policy in (policies or {}).items():
            self.add(name, policy)

    def add(self, name: str, policy: BlockPolicy) -> None:
        if not name:
            raise ValueError("Block name cannot be empty")
        if name in self._policies:
            raise ValueError(f"Block {name} already exists")
        self._policies[name] = policy

    def remove(self, name: str) -> BlockPolicy:
        if name not in self._policies:
            raise KeyError(f"Block {name} does not exist")
        return self._policies.pop(name)

    def get(self, name: str) -> BlockPolicy | None:
        return self._policies.get(name)

    def names(self) -> list[str]:
        return list(self._policies)

    def items(self):
        return self._policies.items()

    def __contains__(self, name: object) -> bool:
        return name in self._policies

    def __len__(self) -> int:
        return len(self._policies)

    def __iter__(self) -> Iterator[str]:
        return iter(self._policies)
