"""
SonarSim Source Package

Passive/active sonar detection simulation with:
- Layered ocean environment (thermocline, sound channel, sea state)
- Seeded target motion and scenario generation
- Passive detection, classification and active scanning
- Operator contact management and campaign objectives
"""

from sonarsim.io import ScenarioLoader, ValidationError
from sonarsim.physics import (
    OCEAN_PROFILES,
    EnvironmentModel,
    SeabedMap,
    calculate_passive_snr,
)
from sonarsim.simulation import (
    HeadlessConfig,
    HeadlessRunner,
    OwnShip,
    SimulationEngine,
    SonarConfig,
    SonarWorld,
    Target,
    TargetType,
    TrackState,
)
from sonarsim.tracking import CampaignManager, ContactManager

__version__ = "1.0.0"
__author__ = "SonarSim Contributors"

__all__ = [
    # Physics
    "EnvironmentModel",
    "OCEAN_PROFILES",
    "SeabedMap",
    "calculate_passive_snr",
    # Simulation
    "SimulationEngine",
    "SonarWorld",
    "SonarConfig",
    "Target",
    "TargetType",
    "TrackState",
    "OwnShip",
    "HeadlessRunner",
    "HeadlessConfig",
    # I/O
    "ScenarioLoader",
    "ValidationError",
    # Tracking
    "ContactManager",
    "CampaignManager",
]
