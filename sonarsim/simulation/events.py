"""
Sonar World Events

Immutable notifications emitted by the detection core. Each tick returns
its events as an ordered batch: passive contacts, then active-scan events,
then a single TargetUpdateEvent.
"""

from dataclasses import dataclass
from typing import Callable, Tuple, Union


@dataclass(frozen=True)
class SonarContactEvent:
    """A target was detected passively or illuminated by a ping."""

    target_id: str
    is_passive: bool


@dataclass(frozen=True)
class ScanUpdateEvent:
    """Active scan front moved (or stopped)."""

    radius: float
    active: bool


@dataclass(frozen=True)
class ScanCompleteEvent:
    """Active scan front passed the maximum scan range."""


@dataclass(frozen=True)
class PingEchoEvent:
    """Echo strength and distance for an illuminated target."""

    volume: float
    distance: float


@dataclass(frozen=True)
class TargetUpdateEvent:
    """End-of-tick notification listing every target id."""

    target_ids: Tuple[str, ...]


SonarEvent = Union[
    SonarContactEvent, ScanUpdateEvent, ScanCompleteEvent, PingEchoEvent, TargetUpdateEvent
]
EventListener = Callable[[SonarEvent], None]
