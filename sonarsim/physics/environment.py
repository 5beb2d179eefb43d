"""
Ocean Environment Model

Depth-dependent water column properties for passive/active sonar:
temperature, sound speed, ambient noise, layer geometry and the
acoustic modifiers produced by ducts and convergence zones.

References:
    - Medwin, H. (1975). "Speed of sound in water", JASA 58(6)
    - Wenz, G.M. (1962). "Acoustic Ambient Noise in the Ocean"
    - Urick, R.J. (1983). "Principles of Underwater Sound", Chapter 5-7
"""

from dataclasses import dataclass, field
from typing import Dict, List

import numba
import numpy as np

from .constants import (
    CONVERGENCE_ZONE_ECHO_GAIN,
    CONVERGENCE_ZONE_GAIN_DB,
    CONVERGENCE_ZONE_HALF_WIDTH_M,
    CONVERGENCE_ZONE_INTERVAL_M,
    DEEP_ISOTHERMAL_TEMPERATURE,
    MAX_SOUND_SPEED,
    MIN_SOUND_SPEED,
    STANDARD_SALINITY,
    SURFACE_DUCT_ECHO_GAIN,
    SURFACE_DUCT_GAIN_DB,
)

# =============================================================================
# PROFILES
# =============================================================================


@dataclass(frozen=True)
class OceanProfile:
    """
    Water column profile.

    Attributes:
        name: Profile identifier
        surface_temp_c: Sea surface temperature [°C]
        thermocline_depth_m: Depth of the main thermocline [m]
        isothermal_depth_m: Top of the deep isothermal layer [m]
        bottom_depth_m: Nominal bottom depth [m]
        duct_depth_m: Bottom of the surface duct [m]
        supports_convergence_zones: Deep water allows CZ propagation
    """

    name: str
    surface_temp_c: float
    thermocline_depth_m: float
    isothermal_depth_m: float
    bottom_depth_m: float
    duct_depth_m: float
    supports_convergence_zones: bool


OCEAN_PROFILES: Dict[str, OceanProfile] = {
    "DEEP_OCEAN": OceanProfile(
        name="DEEP_OCEAN",
        surface_temp_c=20.0,
        thermocline_depth_m=200.0,
        isothermal_depth_m=1000.0,
        bottom_depth_m=4000.0,
        duct_depth_m=50.0,
        supports_convergence_zones=True,
    ),
    "COASTAL": OceanProfile(
        name="COASTAL",
        surface_temp_c=15.0,
        thermocline_depth_m=50.0,
        isothermal_depth_m=150.0,
        bottom_depth_m=300.0,
        duct_depth_m=20.0,
        supports_convergence_zones=False,
    ),
}


@dataclass
class AcousticModifiers:
    """Path-dependent propagation bonuses."""

    snr_modifier_db: float = 0.0
    echo_gain: float = 1.0
    notes: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class WaterSample:
    """One sample of the water column."""

    depth: float
    temperature: float
    sound_speed: float


# =============================================================================
# NUMBA JIT-COMPILED FUNCTIONS
# =============================================================================


@numba.jit(nopython=True, cache=True)
def _temperature_jit(
    depth: float,
    surface_temp: float,
    thermocline_depth: float,
    isothermal_depth: float,
    deep_temp: float,
) -> float:
    """
    Piecewise-linear temperature profile.

    Mixed layer cools by 1 °C down to the thermocline, the main
    thermocline drops a further 15 °C, and the deep layer is isothermal.
    """
    if depth < 0.0:
        depth = 0.0

    if depth < thermocline_depth:
        return surface_temp - (depth / thermocline_depth) * 1.0
    elif depth < isothermal_depth:
        progress = (depth - thermocline_depth) / (isothermal_depth - thermocline_depth)
        return (surface_temp - 1.0) - progress * 15.0
    return deep_temp


@numba.jit(nopython=True, cache=True)
def _sound_speed_jit(temp: float, salinity: float, depth: float) -> float:
    """
    Medwin's simplified sound speed equation.

    c = 1449.2 + 4.6T - 0.055T² + 0.00029T³ + (1.34 - 0.01T)(S - 35) + 0.016z
    """
    return (
        1449.2
        + 4.6 * temp
        - 0.055 * temp**2
        + 0.00029 * temp**3
        + (1.34 - 0.01 * temp) * (salinity - 35.0)
        + 0.016 * depth
    )


# =============================================================================
# ENVIRONMENT MODEL
# =============================================================================


class EnvironmentModel:
    """
    Physical properties of the water column.

    All queries are pure functions of depth (and range for modifiers);
    the only state is the selected profile and sea state.
    """

    def __init__(self, profile: str = "DEEP_OCEAN", sea_state: int = 2) -> None:
        """
        Initialize environment.

        Args:
            profile: Key into OCEAN_PROFILES
            sea_state: Douglas sea state (0-9)
        """
        if profile not in OCEAN_PROFILES:
            raise ValueError(
                f"Unknown ocean profile '{profile}', expected one of {sorted(OCEAN_PROFILES)}"
            )
        self.profile = OCEAN_PROFILES[profile]
        self.sea_state = sea_state

    @property
    def thermocline_depth(self) -> float:
        """Main thermocline depth [m]."""
        return self.profile.thermocline_depth_m

    def temperature(self, depth: float) -> float:
        """
        Water temperature at depth.

        Args:
            depth: Depth [m], positive down

        Returns:
            Temperature [°C]
        """
        return float(
            _temperature_jit(
                float(depth),
                self.profile.surface_temp_c,
                self.profile.thermocline_depth_m,
                self.profile.isothermal_depth_m,
                DEEP_ISOTHERMAL_TEMPERATURE,
            )
        )

    def sound_speed(self, depth: float) -> float:
        """
        Sound speed at depth (temperature + hydrostatic pressure).

        Args:
            depth: Depth [m]

        Returns:
            Sound speed [m/s], bounded to [1450, 1600]
        """
        depth = max(0.0, float(depth))
        speed = _sound_speed_jit(self.temperature(depth), STANDARD_SALINITY, depth)
        return float(np.clip(speed, MIN_SOUND_SPEED, MAX_SOUND_SPEED))

    def ambient_noise(self, depth: float, frequency_hz: float = 1000.0) -> float:
        """
        Ambient noise level (Wenz/Knudsen approximation).

        Args:
            depth: Receiver depth [m]
            frequency_hz: Analysis band centre [Hz]

        Returns:
            Noise level [dB re 1 µPa]
        """
        sea_state_noise = 40.0 + 20.0 * np.log10(self.sea_state + 1)
        shipping_noise = 60.0 if frequency_hz < 500 else 40.0

        # Further from surface wind and shipping sources
        depth_factor = -3.0 if depth > 500 else 0.0

        return float(shipping_noise + sea_state_noise + depth_factor)

    def is_thermocline_between(self, depth_a: float, depth_b: float) -> bool:
        """True if the thermocline lies strictly between the two depths."""
        lo = min(depth_a, depth_b)
        hi = max(depth_a, depth_b)
        return lo < self.thermocline_depth < hi

    def is_in_surface_duct(self, depth: float) -> bool:
        """True if the depth sits inside the surface duct."""
        return 0.0 <= depth <= self.profile.duct_depth_m

    def is_in_convergence_zone(self, range_m: float) -> bool:
        """True if the range falls within a convergence-zone annulus."""
        if not self.profile.supports_convergence_zones:
            return False
        zone = round(range_m / CONVERGENCE_ZONE_INTERVAL_M)
        if zone < 1:
            return False
        return abs(range_m - zone * CONVERGENCE_ZONE_INTERVAL_M) <= CONVERGENCE_ZONE_HALF_WIDTH_M

    def get_acoustic_modifiers(
        self, own_depth: float, target_depth: float, range_m: float
    ) -> AcousticModifiers:
        """
        Propagation bonuses for a given path.

        Args:
            own_depth: Receiver depth [m]
            target_depth: Source depth [m]
            range_m: Horizontal range [m]

        Returns:
            AcousticModifiers with SNR bonus, echo gain and notes
        """
        modifiers = AcousticModifiers()

        if self.is_in_surface_duct(own_depth) and self.is_in_surface_duct(target_depth):
            modifiers.snr_modifier_db += SURFACE_DUCT_GAIN_DB
            modifiers.echo_gain *= SURFACE_DUCT_ECHO_GAIN
            modifiers.notes.append("Surface duct")

        if self.is_in_convergence_zone(range_m):
            modifiers.snr_modifier_db += CONVERGENCE_ZONE_GAIN_DB
            modifiers.echo_gain *= CONVERGENCE_ZONE_ECHO_GAIN
            modifiers.notes.append("Convergence zone")

        return modifiers

    def sample_water_column(self, max_depth: float, step: float) -> List[WaterSample]:
        """
        Sample the profile from the surface to max_depth inclusive.

        Args:
            max_depth: Deepest sample [m]
            step: Sample spacing [m]

        Returns:
            Ordered list of WaterSample
        """
        if step <= 0:
            raise ValueError(f"step must be positive, got {step}")
        if max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {max_depth}")

        depths = list(np.arange(0.0, max_depth, step))
        if not depths or depths[-1] < max_depth:
            depths.append(max_depth)

        return [
            WaterSample(
                depth=float(d),
                temperature=self.temperature(d),
                sound_speed=self.sound_speed(d),
            )
            for d in depths
        ]


# =============================================================================
# VALIDATION
# =============================================================================


def validate_sound_speed_profile(max_depth: float = 2000.0, step: float = 50.0) -> dict:
    """
    Validate the sound speed profile stays within physical bounds.

    Returns:
        Validation result dict
    """
    env = EnvironmentModel()
    samples = env.sample_water_column(max_depth, step)
    speeds = np.array([s.sound_speed for s in samples])

    in_bounds = bool(np.all((speeds >= MIN_SOUND_SPEED) & (speeds <= MAX_SOUND_SPEED)))
    deep_isothermal = env.temperature(max(max_depth, env.profile.isothermal_depth_m)) == 4.0

    return {
        "parameters": {"max_depth_m": max_depth, "step_m": step, "profile": env.profile.name},
        "computed_values": {
            "min_speed_mps": float(speeds.min()),
            "max_speed_mps": float(speeds.max()),
            "surface_temp_c": samples[0].temperature,
            "n_samples": len(samples),
        },
        "validation": {
            "is_valid": in_bounds and deep_isothermal,
            "reference": "Medwin (1975) simplified sound speed equation",
        },
    }
