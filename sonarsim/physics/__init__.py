"""
SonarSim Physics Package

Underwater acoustic calculations for sonar simulation.

Modules:
    - constants: Acoustic constants (SI units)
    - environment: Water column temperature, sound speed and noise
    - sonar_equation: Passive sonar equation, multipath and echo strength
    - seabed: Procedural seabed and line-of-sight physics
"""

from .constants import (
    MAX_SOUND_SPEED,
    MIN_SOUND_SPEED,
    NOMINAL_SOUND_SPEED,
)
from .environment import (
    OCEAN_PROFILES,
    AcousticModifiers,
    EnvironmentModel,
    OceanProfile,
    WaterSample,
)
from .seabed import (
    SeabedConfig,
    SeabedMap,
    TerrainHeightProvider,
    check_line_of_sight,
    create_flat_seabed,
    create_ridge_seabed,
)
from .sonar_equation import (
    calculate_detection_range,
    calculate_passive_snr,
    multipath_interference,
    scaled_range,
    transmission_loss,
)

__all__ = [
    # Constants
    "NOMINAL_SOUND_SPEED",
    "MIN_SOUND_SPEED",
    "MAX_SOUND_SPEED",
    # Environment
    "EnvironmentModel",
    "OceanProfile",
    "OCEAN_PROFILES",
    "AcousticModifiers",
    "WaterSample",
    # Sonar Equation
    "calculate_passive_snr",
    "calculate_detection_range",
    "transmission_loss",
    "multipath_interference",
    "scaled_range",
    # Seabed
    "SeabedConfig",
    "SeabedMap",
    "TerrainHeightProvider",
    "check_line_of_sight",
    "create_flat_seabed",
    "create_ridge_seabed",
]
