"""Send chat messages through the Messages app via AppleScript."""

from __future__ import annotations

import asyncio
import contextlib
import re
from typing import Iterable, Optional

import structlog

from ..errors import AppleScriptError, InvalidRecipientError, MessageError
from .models import MessageResult

log = structlog.get_logger(__name__)

MIN_PHONE_DIGITS = 10
_DIGITS_RE = re.compile(r"^\d+$")

APPLESCRIPT_TEMPLATE = """
tell application "Messages"
    set targetService to 1st service whose service type = iMessage
    set myBuddy to buddy "{recipient}" of targetService
    send "{message}" to myBuddy
end tell
"""


def validate_phone_number(phone_number: str) -> str:
    """Return the number with spaces removed, or raise InvalidRecipientError."""
    clean_number = phone_number.replace(" ", "")
    if not clean_number.startswith("+"):
        raise InvalidRecipientError("phone number must start with +")

    digits = clean_number[1:]
    if not _DIGITS_RE.match(digits):
        raise InvalidRecipientError("phone number can only contain digits after the +")
    if len(digits) < MIN_PHONE_DIGITS:
        raise InvalidRecipientError(f"phone number must be at least {MIN_PHONE_DIGITS} digits")
    return clean_number


def escape_applescript(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def build_applescript(recipient: str, message: str) -> str:
    return APPLESCRIPT_TEMPLATE.format(
        recipient=escape_applescript(recipient),
        message=escape_applescript(message),
    )


class MessageSender:
    """Deliver messages one recipient at a time through ``osascript``."""

    def __init__(self, osascript_binary: str = "osascript", *, timeout: Optional[float] = 30.0) -> None:
        self._osascript_binary = osascript_binary
        self._timeout = timeout

    # ------------------------------------------------------------------ public
    async def send_messages(self, recipients: Iterable[str], message: str) -> list[MessageResult]:
        results: list[MessageResult] = []
        for recipient in recipients:
            result = MessageResult(recipient=recipient)
            try:
                await self.send_message(recipient, message)
            except MessageError as exc:
                result.error = str(exc)
            else:
                result.success = True
            results.append(result)
        return results

    async def send_message(self, recipient: str, message: str) -> None:
        number = validate_phone_number(recipient)
        await self._run_applescript(build_applescript(number, message))

    # ----------------------------------------------------------------- private
    async def _run_applescript(self, script: str) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                self._osascript_binary,
                "-e",
                script,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            log.error("messages.osascript_unavailable", binary=self._osascript_binary, error=str(exc))
            raise AppleScriptError(f"AppleScript error: {exc}") from exc

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            log.error("messages.applescript_timeout", timeout=self._timeout)
            raise AppleScriptError("AppleScript error: timed out") from exc

        output = stdout.decode("utf-8", errors="replace").strip()
        if process.returncode != 0:
            log.error(
                "messages.applescript_failed",
                return_code=process.returncode,
                output=output,
                script=script,
            )
            raise AppleScriptError(f"AppleScript error: {output}")

        if output:
            log.info("messages.applescript_output", output=output)
