"""Read the device position through the Termux:API ``termux-location`` command."""
from __future__ import annotations

import json
import logging
import shutil
import subprocess
from typing import Callable, List, Optional

from ..protocol.messages import LocationFix
from .base import PollingLocationSource

LOGGER = logging.getLogger(__name__)

TERMUX_LOCATION = "termux-location"
PROVIDERS = ("gps", "network", "passive")

CommandRunner = Callable[[List[str], float], str]


def _run_command(command: List[str], timeout: float) -> str:
    completed = subprocess.run(
        command,
        capture_output=True,
        text=True,
        timeout=timeout,
        check=True,
    )
    return completed.stdout


class TermuxLocationSource(PollingLocationSource):
    """Poll ``termux-location`` for fixes of the gps/network/passive provider.

    The permission check only tells whether the command is installed; a
    location permission refused by Android surfaces as a failed command and
    is logged on every poll.
    """

    def __init__(
        self,
        *,
        timeout_s: float = 30.0,
        runner: CommandRunner | None = None,
        executable: str = TERMUX_LOCATION,
    ) -> None:
        super().__init__()
        self._timeout_s = timeout_s
        self._runner: CommandRunner = runner or _run_command
        self._executable = executable

    def has_permission(self) -> bool:
        return shutil.which(self._executable) is not None

    def last_known(self, provider_name: str) -> Optional[LocationFix]:
        fix = self._request(provider_name, "last")
        if fix is not None:
            self._remember(provider_name, fix)
            return fix
        return super().last_known(provider_name)

    def read_fix(self, provider_name: str) -> Optional[LocationFix]:
        return self._request(provider_name, "once")

    def _request(self, provider_name: str, request: str) -> Optional[LocationFix]:
        if provider_name not in PROVIDERS:
            LOGGER.warning("unsupported termux provider %r", provider_name)
            return None
        command = [self._executable, "--provider", provider_name, "--request", request]
        try:
            output = self._runner(command, self._timeout_s)
        except (OSError, subprocess.SubprocessError) as exc:
            LOGGER.warning("%s failed: %s", " ".join(command), exc)
            return None
        return parse_location_output(output)


def parse_location_output(output: str) -> Optional[LocationFix]:
    """Turn the JSON printed by ``termux-location`` into a fix."""

    text = output.strip()
    if not text:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        LOGGER.warning("invalid termux-location output: %s", exc)
        return None
    if not isinstance(data, dict):
        LOGGER.warning("unexpected termux-location output: %r", data)
        return None
    if "API_ERROR" in data:
        LOGGER.warning("termux-location error: %s", data["API_ERROR"])
        return None
    try:
        return LocationFix(latitude=float(data["latitude"]), longitude=float(data["longitude"]))
    except (KeyError, TypeError, ValueError):
        LOGGER.warning("termux-location output without coordinates: %r", data)
        return None


__all__ = ["TermuxLocationSource", "parse_location_output", "PROVIDERS"]
