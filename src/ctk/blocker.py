import json
import subprocess
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Annotated

import psutil
from loguru import logger
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel


class BlockerError(Exception):
    """Cold Turkey could not be reached or rejected a command."""


def minutes_until(
    end_time: time, end_date: date | None = None, now: datetime | None = None
) -> int:
    """
    Minutes from now until `end_time` on `end_date` (today by default).
    A time already past today with no date means tomorrow.
    """
    if now is None:
        now = datetime.now()
    end = datetime.combine(end_date or now.date(), end_time)
    if end_date is None and end <= now:
        end += timedelta(days=1)
    if end <= now:
        raise ValueError(f"{end:%Y-%m-%d %H:%M} is in the past")
    return max(1, int((end - now).total_seconds() // 60))


class ColdTurkey:
    """Sends commands to the installed Cold Turkey Blocker executable."""

    PROCESS_NAMES = {"Cold Turkey Blocker", "Cold Turkey Blocker.exe"}

    def __init__(self, executable: Path):
        self.executable = Path(executable)

    def start(self, block: str, minutes: int | None = None, password: bool = False) -> None:
        args = ["-start", block]
        if minutes is not None:
            args += ["-lock", str(minutes)]
        if password:
            args.append("-password")
        self._run(args)

    def stop(self, block: str) -> None:
        self._run(["-stop", block])

    def add(self, block: str, url: str, exception: bool = False) -> None:
        self._run(["-add", block, "-exception" if exception else "-web", url])

    def toggle(self, block: str) -> None:
        self._run(["-toggle", block])

    def is_running(self) -> bool:
        """Checks whether the blocker process is alive; commands only reach a running app."""
        for proc in psutil.process_iter(["name"]):
            try:
                if proc.info["name"] in self.PROCESS_NAMES:
                    return True
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        return False

    def _run(self, args: list[str]) -> None:
        if not self.executable.exists():
            raise BlockerError(f"Cold Turkey Blocker not found at {self.executable}")
        if not self.is_running():
            logger.warning("Cold Turkey Blocker does not seem to be running")

        cmd = [str(self.executable), *args]
        logger.debug(f"Running {cmd}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as e:
            raise BlockerError(f"Could not run Cold Turkey Blocker: {e}") from e
        if result.returncode != 0:
            raise BlockerError(
                f"Cold Turkey Blocker exited with {result.returncode}: "
                f"{(result.stderr or result.stdout).strip()}"
            )


def _string_bool(value):
    if isinstance(value, str):
        if value not in ("true", "false"):
            raise ValueError(f"Expected 'true' or 'false', got {value!r}")
        return value == "true"
    return value


def _optional_int(value):
    if value == "":
        return None
    return value


StringBool = Annotated[bool, BeforeValidator(_string_bool)]
OptionalInt = Annotated[int | None, BeforeValidator(_optional_int)]


class _ExportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class BlockInfo(_ExportModel):
    allowance: OptionalInt = None
    password: str = ""
    random_text_length: OptionalInt = None
    block_list: list[str] = Field(default_factory=list)
    exception_list: list[str] = Field(default_factory=list)
    title_list: list[str] = Field(default_factory=list)

    def is_dormant(self) -> bool:
        """True for placeholder blocks that were never configured."""
        return (
            self.allowance is None
            and not self.password
            and self.random_text_length is None
            and not self.block_list
            and not self.exception_list
            and not self.title_list
        )


class BlockListInfo(_ExportModel):
    blocks: dict[str, BlockInfo] = Field(default_factory=dict)


class ColdTurkeySettings(_ExportModel):
    """The subset of Cold Turkey's settings export that ctk reads."""

    version: int = 0
    block_list_info: BlockListInfo = Field(default_factory=BlockListInfo)
    paused: StringBool = False

    def block_names(self, include_dormant: bool = True) -> list[str]:
        return sorted(
            name
            for name, info in self.block_list_info.blocks.items()
            if include_dormant or not info.is_dormant()
        )


def read_settings_export(command: list[str]) -> ColdTurkeySettings:
    """Runs the export helper and parses the JSON it prints."""
    if not command:
        raise BlockerError(
            "No settings export command configured (set CTK_SETTINGS_EXPORT_COMMAND)"
        )
    try:
        result = subprocess.run(command, capture_output=True, text=True, check=True)
    except (OSError, subprocess.CalledProcessError) as e:
        raise BlockerError(f"Could not read Cold Turkey settings: {e}") from e

    try:
        return ColdTurkeySettings.model_validate(json.loads(result.stdout))
    except ValueError as e:
        raise BlockerError(f"Unexpected Cold Turkey settings format: {e}") from e
