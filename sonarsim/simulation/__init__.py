"""
SonarSim Simulation Package

Target motion, fixed-step engine, detection core and headless runner.
"""

from .engine import SimulationEngine
from .events import (
    PingEchoEvent,
    ScanCompleteEvent,
    ScanUpdateEvent,
    SonarContactEvent,
    TargetUpdateEvent,
)
from .headless_runner import HeadlessConfig, HeadlessResult, HeadlessRunner
from .objects import OwnShip, Target, TargetType, TrackState
from .rng import Mulberry32
from .world import SonarConfig, SonarWorld

__all__ = [
    "SimulationEngine",
    "SonarWorld",
    "SonarConfig",
    "Target",
    "TargetType",
    "TrackState",
    "OwnShip",
    "Mulberry32",
    # Events
    "SonarContactEvent",
    "ScanUpdateEvent",
    "ScanCompleteEvent",
    "PingEchoEvent",
    "TargetUpdateEvent",
    # Headless
    "HeadlessRunner",
    "HeadlessConfig",
    "HeadlessResult",
]
