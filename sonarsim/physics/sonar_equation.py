"""
Sonar Equation Calculations with Numba JIT Optimization

Passive sonar equation in the dB domain:

    SNR = SL - TL - NL

with spherical spreading TL = 20 log10(R), a deterministic multipath
interference term and a simple linear echo-strength model for active pings.

References:
    - Urick, R.J. (1983). "Principles of Underwater Sound", Chapter 2
    - Lurton, X. (2010). "An Introduction to Underwater Acoustics", Chapter 9
"""

import numba
import numpy as np

from .constants import MIN_RANGE_M, SPHERICAL_SPREADING_FACTOR

# =============================================================================
# NUMBA JIT-COMPILED FUNCTIONS
# =============================================================================


@numba.jit(nopython=True, cache=True)
def _transmission_loss_jit(range_m: float) -> float:
    """
    JIT-compiled spherical spreading loss.

    TL = 20 log10(R), with R floored at 1 m.
    """
    if range_m < 1.0:
        range_m = 1.0
    return 20.0 * np.log10(range_m)


@numba.jit(nopython=True, cache=True)
def _passive_snr_jit(source_level_db: float, range_m: float, noise_level_db: float) -> float:
    """
    JIT-compiled passive sonar equation.

    SNR = SL - TL - NL

    Args:
        source_level_db: Source level [dB re 1 µPa @ 1 m]
        range_m: Range [m]
        noise_level_db: Ambient noise level [dB re 1 µPa]

    Returns:
        SNR [dB]
    """
    return source_level_db - _transmission_loss_jit(range_m) - noise_level_db


@numba.jit(nopython=True, cache=True)
def _multipath_jit(distance: float, strength_db: float, frequency: float) -> float:
    """JIT-compiled multipath interference term."""
    return strength_db * np.sin(distance * frequency)


# =============================================================================
# PUBLIC API
# =============================================================================


def scaled_range(distance: float, unit_scale: float) -> float:
    """
    Convert world units to metres, floored at 1 m.

    Args:
        distance: Distance in world units
        unit_scale: Metres per world unit

    Returns:
        Range [m]
    """
    range_m = distance * unit_scale
    if not np.isfinite(range_m):
        return MIN_RANGE_M
    return max(MIN_RANGE_M, float(range_m))


def transmission_loss(range_m: float) -> float:
    """
    Spherical spreading transmission loss.

    Args:
        range_m: Range [m]

    Returns:
        TL [dB]
    """
    return float(_transmission_loss_jit(float(range_m)))


def calculate_passive_snr(
    source_level_db: float, range_m: float, noise_level_db: float
) -> float:
    """
    Passive sonar equation SNR = SL - TL - NL.

    Args:
        source_level_db: Target source level [dB]
        range_m: Range [m]
        noise_level_db: Ambient noise [dB]

    Returns:
        SNR [dB]
    """
    return float(_passive_snr_jit(float(source_level_db), float(range_m), float(noise_level_db)))


def multipath_interference(distance: float, strength_db: float, frequency: float) -> float:
    """
    Deterministic multipath term: strength * sin(distance * frequency).

    Args:
        distance: Range in world units
        strength_db: Peak variation [dB]
        frequency: Spatial frequency [rad / world unit]

    Returns:
        SNR adjustment [dB]
    """
    return float(_multipath_jit(float(distance), float(strength_db), float(frequency)))


def echo_volume(distance: float, reference_range: float, echo_gain: float = 1.0) -> float:
    """
    Active echo strength, falling linearly with range.

    volume = 0.6 * (1 - distance / reference_range) * echo_gain

    Args:
        distance: Range in world units
        reference_range: Range at which the echo fades out
        echo_gain: Environmental echo gain multiplier

    Returns:
        Echo volume (may reach 0 or below past reference_range)
    """
    return 0.6 * (1.0 - distance / reference_range) * echo_gain


def echo_intensity(distance: float, reference_range: float, echo_gain: float = 1.0) -> float:
    """Visual echo intensity with a 0.25 floor before gain."""
    return max(0.25, 1.0 - distance / reference_range) * echo_gain


def calculate_detection_range(
    source_level_db: float, noise_level_db: float, threshold_db: float
) -> float:
    """
    Range at which SNR falls to the detection threshold.

    R = 10^((SL - NL - DT) / 20)

    Args:
        source_level_db: Source level [dB]
        noise_level_db: Noise level [dB]
        threshold_db: Detection threshold [dB]

    Returns:
        Detection range [m]
    """
    excess = source_level_db - noise_level_db - threshold_db
    return max(MIN_RANGE_M, 10.0 ** (excess / SPHERICAL_SPREADING_FACTOR))
