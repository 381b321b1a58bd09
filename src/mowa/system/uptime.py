"""System uptime reporting."""

from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ..errors import UptimeError

log = structlog.get_logger(__name__)

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 60 * SECONDS_PER_MINUTE
SECONDS_PER_DAY = 24 * SECONDS_PER_HOUR

_UP_RE = re.compile(r"\bup\b")
_USERS_RE = re.compile(r"\d+\s+users?\b")
_DAY_RE = re.compile(r"(\d+)\s+days?")
_CLOCK_RE = re.compile(r"(\d+):(\d+)")
_HOUR_RE = re.compile(r"(\d+)\s+(?:hrs?|hours?)\b")
_MINUTE_RE = re.compile(r"(\d+)\s+mins?\b")
_SECOND_RE = re.compile(r"(\d+)\s+secs?\b")


class UptimeReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uptime: str
    uptime_seconds: float = Field(alias="uptimeSeconds")
    formatted: str


def parse_uptime_string(uptime_string: str) -> float:
    """Convert clauses such as ``2 days, 3:45`` or ``17 mins`` to seconds."""
    total = 0.0

    match = _DAY_RE.search(uptime_string)
    if match:
        total += int(match.group(1)) * SECONDS_PER_DAY

    match = _CLOCK_RE.search(uptime_string)
    if match:
        total += int(match.group(1)) * SECONDS_PER_HOUR + int(match.group(2)) * SECONDS_PER_MINUTE

    match = _HOUR_RE.search(uptime_string)
    if match:
        total += int(match.group(1)) * SECONDS_PER_HOUR

    match = _MINUTE_RE.search(uptime_string)
    if match:
        total += int(match.group(1)) * SECONDS_PER_MINUTE

    match = _SECOND_RE.search(uptime_string)
    if match:
        total += int(match.group(1))

    return total


def parse_uptime_output(output: str) -> float:
    """Parse the output of the ``uptime`` command.

    Example: `` 12:34:56 up 2 days,  3:45,  2 users,  load average: 1.23, 1.45, 1.67``
    """
    match = _UP_RE.search(output)
    if match is None:
        raise UptimeError(f"could not parse uptime output: {output.strip()}")

    clauses: list[str] = []
    for part in output[match.end():].split(","):
        part = part.strip()
        if _USERS_RE.search(part) or part.startswith("load average"):
            break
        clauses.append(part)

    return parse_uptime_string(", ".join(clauses))


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def format_uptime(uptime_seconds: float) -> UptimeReport:
    seconds = int(uptime_seconds)
    days = seconds // SECONDS_PER_DAY
    hours = (seconds % SECONDS_PER_DAY) // SECONDS_PER_HOUR
    minutes = (seconds % SECONDS_PER_HOUR) // SECONDS_PER_MINUTE

    parts: list[str] = []
    if days:
        parts.append(_plural(days, "day"))
    if hours:
        parts.append(_plural(hours, "hour"))
    if minutes:
        parts.append(_plural(minutes, "minute"))

    text = ", ".join(parts) or _plural(0, "minute")
    return UptimeReport(uptime=text, uptime_seconds=uptime_seconds, formatted=text)


class UptimeReader:
    """Read uptime from ``/proc/uptime`` when present, else from the ``uptime`` command."""

    def __init__(
        self,
        proc_path: Optional[Path] = Path("/proc/uptime"),
        uptime_binary: str = "uptime",
    ) -> None:
        self._proc_path = proc_path
        self._uptime_binary = uptime_binary

    async def read(self) -> UptimeReport:
        seconds = self._read_native()
        if seconds is None:
            seconds = await self._read_shell()
        return format_uptime(seconds)

    def _read_native(self) -> Optional[float]:
        if self._proc_path is None:
            return None
        try:
            raw = self._proc_path.read_text(encoding="utf-8")
            return float(raw.split()[0])
        except (OSError, ValueError, IndexError):
            return None

    async def _read_shell(self) -> float:
        try:
            process = await asyncio.create_subprocess_exec(
                self._uptime_binary,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise UptimeError(f"failed to execute uptime command: {exc}") from exc

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            log.error("uptime.command_failed", return_code=process.returncode, stderr=detail)
            raise UptimeError(f"failed to execute uptime command: exit status {process.returncode}")

        return parse_uptime_output(stdout.decode("utf-8", errors="replace"))
