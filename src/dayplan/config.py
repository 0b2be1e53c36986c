"""Configuration management for dayplan."""

import logging
import os
from dataclasses import dataclass, field
from datetime import time
from pathlib import Path
from zoneinfo import ZoneInfo

from .core.scheduling import parse_clock

logger = logging.getLogger(__name__)

DAYPLAN_HOME = Path(os.environ.get("DAYPLAN_HOME", Path.home() / "dayplan"))
CONFIG_FILE = DAYPLAN_HOME / "config" / "dayplan.conf"
DATA_DIR = DAYPLAN_HOME / "data"


@dataclass
class PomodoroSettings:
    """Pomodoro timer lengths, in minutes."""

    work_duration: int = 25
    short_break_duration: int = 5
    long_break_duration: int = 15
    long_break_interval: int = 4

    def break_after(self, completed_sessions: int) -> int:
        """Length of the break following the Nth completed work session."""
        if completed_sessions > 0 and completed_sessions % self.long_break_interval == 0:
            return self.long_break_duration
        return self.short_break_duration


@dataclass
class Config:
    """dayplan configuration."""

    timezone: str = "America/Toronto"
    workday_start: str = "09:00"
    day_end: str = "22:00"
    min_gap_minutes: int = 5
    slot_step_minutes: int = 5
    default_block_minutes: int = 60
    pomodoro: PomodoroSettings = field(default_factory=PomodoroSettings)
    # Record store settings
    store_backend: str = "json"
    store_url: str = ""
    store_token: str = ""
    data_dir: str = ""

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def workday_start_time(self) -> time:
        return parse_clock(self.workday_start)

    @property
    def day_end_time(self) -> time:
        return parse_clock(self.day_end)

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser() if self.data_dir else DATA_DIR


_INT_KEYS = {
    "min_gap_minutes": ("min_gap_minutes", None),
    "slot_step_minutes": ("slot_step_minutes", None),
    "default_block_minutes": ("default_block_minutes", None),
    "pomodoro_work_duration": ("work_duration", "pomodoro"),
    "pomodoro_short_break_duration": ("short_break_duration", "pomodoro"),
    "pomodoro_long_break_duration": ("long_break_duration", "pomodoro"),
    "pomodoro_long_break_interval": ("long_break_interval", "pomodoro"),
}


def _strip_value(value: str) -> str:
    """Handle quoted values with inline comments: "value" # comment"""
    if value.startswith('"') or value.startswith("'"):
        quote = value[0]
        end_quote = value.find(quote, 1)
        return value[1:end_quote] if end_quote != -1 else value[1:]
    # Unquoted: strip inline comments
    if "#" in value:
        value = value.split("#")[0].strip()
    return value


def load_config(path: Path | None = None) -> Config:
    """Load configuration from dayplan.conf file."""
    config = Config()
    path = path or CONFIG_FILE

    if not path.exists():
        return config

    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip().lower()
        value = _strip_value(value.strip())

        if key in _INT_KEYS:
            attr, section = _INT_KEYS[key]
            try:
                number = int(value)
            except ValueError:
                logger.warning(f"Ignoring non-integer {key.upper()}: {value!r}")
                continue
            setattr(config.pomodoro if section else config, attr, number)
            continue

        match key:
            case "timezone":
                config.timezone = value
            case "workday_start":
                config.workday_start = value
            case "day_end":
                config.day_end = value
            case "store_backend":
                config.store_backend = value.lower()
            case "store_url":
                config.store_url = value
            case "store_token":
                config.store_token = value
            case "data_dir":
                config.data_dir = value

    return config
