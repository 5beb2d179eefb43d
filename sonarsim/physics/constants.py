"""
Acoustic Constants for Sonar Simulation

All values are SI unless noted. Levels are dB re 1 µPa @ 1 m.

References:
    - Urick, R.J. (1983). "Principles of Underwater Sound", 3rd Ed.
    - Medwin, H. (1975). "Speed of sound in water: A simple equation
      for realistic parameters", JASA 58(6)
"""

from typing import Final

# =============================================================================
# WATER COLUMN
# =============================================================================

NOMINAL_SOUND_SPEED: Final[float] = 1500.0
"""Nominal sound speed in sea water [m/s] - used for echo travel time"""

MIN_SOUND_SPEED: Final[float] = 1450.0
"""Lower bound of the modelled sound speed profile [m/s]"""

MAX_SOUND_SPEED: Final[float] = 1600.0
"""Upper bound of the modelled sound speed profile [m/s]"""

STANDARD_SALINITY: Final[float] = 35.0
"""Standard ocean salinity [ppt]"""

DEEP_ISOTHERMAL_TEMPERATURE: Final[float] = 4.0
"""Temperature of the deep isothermal layer [°C]"""

# =============================================================================
# PROPAGATION
# =============================================================================

SPHERICAL_SPREADING_FACTOR: Final[float] = 20.0
"""TL = 20 log10(R) for spherical spreading"""

MIN_RANGE_M: Final[float] = 1.0
"""Range floor applied before any log10 [m]"""

SURFACE_DUCT_GAIN_DB: Final[float] = 3.0
"""SNR bonus when both ends of the path sit in the surface duct [dB]"""

SURFACE_DUCT_ECHO_GAIN: Final[float] = 1.15
"""Echo gain multiplier inside the surface duct"""

CONVERGENCE_ZONE_GAIN_DB: Final[float] = 4.0
"""SNR bonus inside a convergence-zone annulus [dB]"""

CONVERGENCE_ZONE_ECHO_GAIN: Final[float] = 1.25
"""Echo gain multiplier inside a convergence-zone annulus"""

CONVERGENCE_ZONE_INTERVAL_M: Final[float] = 1000.0
"""Spacing between convergence-zone annuli (scaled world) [m]"""

CONVERGENCE_ZONE_HALF_WIDTH_M: Final[float] = 100.0
"""Half width of each convergence-zone annulus [m]"""

# =============================================================================
# TARGET SOURCE LEVELS (dB re 1 µPa @ 1 m)
# =============================================================================

SOURCE_LEVEL_SHIP: Final[float] = 155.0
SOURCE_LEVEL_SUBMARINE: Final[float] = 130.0
SOURCE_LEVEL_BIOLOGICAL: Final[float] = 140.0
SOURCE_LEVEL_STATIC: Final[float] = 110.0
SOURCE_LEVEL_TORPEDO: Final[float] = 170.0
SOURCE_LEVEL_DEFAULT: Final[float] = 120.0

FLOW_NOISE_SPEED_SCALE: Final[float] = 10.0
"""Speed scale inside the flow/cavitation term"""

FLOW_NOISE_SPEED_EXPONENT: Final[float] = 1.5
"""Flow/cavitation noise grows super-linearly with speed"""

MACHINERY_NOISE_FACTOR: Final[float] = 5.0
"""Machinery term: 5 log10(1 + rpm/60)"""
