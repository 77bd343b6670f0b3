import os
import sys
from pathlib import Path

from platformdirs import user_data_dir, user_log_dir

APP_NAME = "ctk"

WINDOWS_BLOCKER_PATHS = [
    Path(r"C:\Program Files\Cold Turkey\Cold Turkey Blocker.exe"),
    Path(r"C:\Program Files (x86)\Cold Turkey\Cold Turkey Blocker.exe"),
]
MACOS_BLOCKER_PATH = Path(
    "/Applications/Cold Turkey Blocker.app/Contents/MacOS/Cold Turkey Blocker"
)


def find_checkout_root() -> Path | None:
    """The source checkout ctk runs from (src/ctk/utils -> root), if any."""
    root = Path(__file__).resolve().parents[3]
    if (root / "pyproject.toml").exists() and (root / ".git").exists():
        return root
    return None


def get_default_data_dir() -> Path:
    """`outputs/` in a dev checkout, the platform data dir otherwise."""
    root = find_checkout_root()
    return root / "outputs" if root else Path(user_data_dir(appname=APP_NAME))


def get_default_log_dir() -> Path:
    root = find_checkout_root()
    return root / "outputs" if root else Path(user_log_dir(appname=APP_NAME))


def get_default_blocker_path() -> Path:
    """
    Where Cold Turkey Blocker is installed on this platform.

    On Windows the first install location that exists wins; when none does the
    64-bit location is returned so error messages point somewhere sensible.
    """
    if sys.platform == "darwin":
        return MACOS_BLOCKER_PATH
    for candidate in WINDOWS_BLOCKER_PATHS:
        if os.path.exists(candidate):
            return candidate
    return WINDOWS_BLOCKER_PATHS[0]
