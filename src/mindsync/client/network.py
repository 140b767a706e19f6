"""Network state used by the sync network gate."""

from __future__ import annotations

from typing import Protocol


class NetworkMonitor(Protocol):
    """Reports the connectivity of the device."""

    def is_online(self) -> bool: ...

    def is_unmetered(self) -> bool: ...


class StaticNetworkMonitor:
    """Monitor with fixed answers.

    The default for desktop use reports an online, unmetered connection.
    """

    def __init__(self, online: bool = True, unmetered: bool = True) -> None:
        self.online = online
        self.unmetered = unmetered

    def is_online(self) -> bool:
        return self.online

    def is_unmetered(self) -> bool:
        return self.online and self.unmetered
