"""
Vessel Class Signature Database

Acoustic characteristics and scenario defaults for known vessel classes.

Each profile carries:
    - The target type it belongs to (class id implies type)
    - Propeller blade count and RPM-to-frequency ratio
    - Tonal harmonics used for narrowband identification
    - Kinematic/acoustic defaults merged into scenario targets
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .objects import TargetType


@dataclass(frozen=True)
class Harmonic:
    """Narrowband tonal line."""

    freq_hz: float
    label: str
    intensity: float


@dataclass(frozen=True)
class ClassProfile:
    """
    Vessel class profile.

    Attributes:
        class_id: Database key (e.g. 'kilo-class')
        name: Display name
        target_type: Target type implied by the class
        blades: Propeller blade count
        base_rpm_freq_ratio: Tonal frequency per RPM
        harmonics: Machinery tonals
        description: Short free-text description
        defaults: Target fields applied before explicit scenario fields
    """

    class_id: str
    name: str
    target_type: TargetType
    blades: int
    base_rpm_freq_ratio: float
    harmonics: List[Harmonic] = field(default_factory=list)
    description: str = ""
    defaults: Dict[str, Any] = field(default_factory=dict)


CLASS_PROFILES: Dict[str, ClassProfile] = {
    "triumph-class": ClassProfile(
        class_id="triumph-class",
        name="Triumph-class SSN",
        target_type=TargetType.SUBMARINE,
        blades=7,
        base_rpm_freq_ratio=0.25,
        harmonics=[
            Harmonic(50.0, "Electrical Hum (50Hz)", 0.4),
            Harmonic(120.0, "Cooling Pump", 0.3),
            Harmonic(440.0, "Turbine Whine", 0.25),
        ],
        description="Nuclear attack submarine with a 7-blade skewed propeller.",
        defaults={"speed": 0.3, "rpm": 80, "bladeCount": 7},
    ),
    "kilo-class": ClassProfile(
        class_id="kilo-class",
        name="Kilo-class SSK",
        target_type=TargetType.SUBMARINE,
        blades=7,
        base_rpm_freq_ratio=0.2,
        harmonics=[
            Harmonic(50.0, "Electrical Hum (50Hz)", 0.3),
            Harmonic(75.0, "Battery Cooling", 0.2),
        ],
        description="Diesel-electric patrol submarine, very quiet on battery.",
        defaults={"speed": 0.25, "rpm": 70, "bladeCount": 7},
    ),
    "cargo-vessel": ClassProfile(
        class_id="cargo-vessel",
        name="Cargo Vessel",
        target_type=TargetType.SHIP,
        blades=4,
        base_rpm_freq_ratio=0.15,
        harmonics=[
            Harmonic(60.0, "Electrical Hum (60Hz)", 0.5),
            Harmonic(90.0, "Diesel Auxiliary", 0.45),
        ],
        description="Large commercial cargo vessel with a heavy diesel signature.",
        defaults={"speed": 0.8, "rpm": 120, "bladeCount": 4},
    ),
    "fishery-trawler": ClassProfile(
        class_id="fishery-trawler",
        name="Fishing Trawler",
        target_type=TargetType.SHIP,
        blades=3,
        base_rpm_freq_ratio=0.35,
        harmonics=[Harmonic(150.0, "Hydraulic Winch", 0.35)],
        description="Small fishing vessel with a high-RPM 3-blade propeller.",
        defaults={"speed": 1.2, "rpm": 180, "bladeCount": 3},
    ),
    "oil-tanker": ClassProfile(
        class_id="oil-tanker",
        name="Oil Tanker",
        target_type=TargetType.SHIP,
        blades=5,
        base_rpm_freq_ratio=0.12,
        harmonics=[
            Harmonic(60.0, "Electrical Hum (60Hz)", 0.45),
            Harmonic(45.0, "Cargo Pump", 0.35),
        ],
        description="Slow deep-draught tanker with a large 5-blade propeller.",
        defaults={"speed": 0.6, "rpm": 90, "bladeCount": 5},
    ),
}

DEFAULT_CLASS_ID = "cargo-vessel"


def get_class_profile(class_id: Optional[str]) -> Optional[ClassProfile]:
    """Profile for a class id, or None if unknown."""
    if class_id is None:
        return None
    return CLASS_PROFILES.get(class_id)


def get_signature(class_id: Optional[str]) -> ClassProfile:
    """Profile for a class id, falling back to the cargo vessel."""
    return get_class_profile(class_id) or CLASS_PROFILES[DEFAULT_CLASS_ID]


def blade_passage_frequency(rpm: float, blade_count: int) -> float:
    """
    Blade passage frequency.

    BPF = rpm / 60 * blades

    Args:
        rpm: Shaft speed [rev/min]
        blade_count: Propeller blades

    Returns:
        BPF [Hz]
    """
    return rpm / 60.0 * blade_count
