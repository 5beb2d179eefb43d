"""
Scenario Loader

Validation and deterministic target generation for sonar scenarios,
plus a YAML front end.

A scenario definition holds manually placed core targets and a
procedural generation block:

    id: default-ocean
    coreTargets:
      - {id: target-01, x: -60, z: 20, type: SHIP, classId: cargo-vessel}
    procedural:
      idStart: 12
      count: 4
      types: [SHIP, SUBMARINE, BIOLOGICAL, STATIC]
      ...

YAML files may also carry ``sonar:`` (SonarConfig overrides) and
``environment:`` (profile, sea_state) sections.

Generation consumes one random stream in a fixed order, so two streams
seeded identically produce identical target lists.

Usage:
    loader = ScenarioLoader('scenarios/layer_hunter.yaml')
    world = loader.create_world(seed=12345)
"""

import copy
import logging
import math
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import yaml

from sonarsim.physics.environment import EnvironmentModel
from sonarsim.simulation.engine import SimulationEngine
from sonarsim.simulation.objects import (
    MAX_BLADE_COUNT,
    MAX_RPM,
    MAX_SHAFT_RATE,
    TYPE_DEFAULTS,
    TargetType,
)
from sonarsim.simulation.rng import RandomFunc
from sonarsim.simulation.signatures import CLASS_PROFILES, get_class_profile
from sonarsim.simulation.world import SonarConfig, SonarWorld

logger = logging.getLogger(__name__)

BIO_TYPES = (
    "humpback_song",
    "dolphin_whistle",
    "chirp",
    "snapping_shrimp",
    "whale_moan",
    "echolocation_click",
)

VALID_TYPES = tuple(t.value for t in TargetType)


class ValidationError(ValueError):
    """
    Scenario definition rejected.

    Attributes:
        field: Path of the offending field (e.g. 'scenario.coreTargets[2].id')
        constraint: The violated constraint
    """

    def __init__(self, field: str, constraint: str):
        self.field = field
        self.constraint = constraint
        super().__init__(f"Scenario validation error: {field} {constraint}")


@dataclass
class TargetConfig:
    """Fully normalized target configuration."""

    id: str
    type: TargetType
    x: float
    z: float
    distance: float
    angle: float
    speed: Optional[float]
    rpm: float
    blade_count: int
    shaft_rate: float
    is_patrolling: bool
    seed: float
    class_id: Optional[str] = None
    course: Optional[float] = None
    target_course: Optional[float] = None
    turn_rate: Optional[float] = None
    velocity: Optional[float] = None
    patrol_radius: float = 90.0
    bio_type: Optional[str] = None
    bio_rate: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a camelCase scenario mapping."""
        return {
            "id": self.id,
            "type": self.type.value,
            "x": self.x,
            "z": self.z,
            "distance": self.distance,
            "angle": self.angle,
            "speed": self.speed,
            "course": self.course,
            "targetCourse": self.target_course,
            "turnRate": self.turn_rate,
            "velocity": self.velocity,
            "rpm": self.rpm,
            "bladeCount": self.blade_count,
            "shaftRate": self.shaft_rate,
            "classId": self.class_id,
            "bioType": self.bio_type,
            "bioRate": self.bio_rate,
            "patrolRadius": self.patrol_radius,
            "isPatrolling": self.is_patrolling,
            "seed": self.seed,
        }


# =============================================================================
# DEFAULT SCENARIO
# =============================================================================

DEFAULT_SCENARIO: Dict[str, Any] = {
    "id": "default-ocean",
    "name": "Default Ocean Contacts",
    "coreTargets": [
        {"id": "target-01", "x": -60, "z": 20, "course": 0.2, "speed": 0.8, "type": "SHIP",
         "classId": "cargo-vessel", "rpm": 120, "bladeCount": 3, "isPatrolling": False},
        {"id": "target-02", "distance": 45, "angle": math.pi * 0.75, "speed": 0.3,
         "type": "SUBMARINE", "classId": "triumph-class", "rpm": 80, "bladeCount": 7,
         "isPatrolling": True, "patrolRadius": 60},
        {"id": "target-03", "distance": 30, "angle": -math.pi * 0.25, "type": "BIOLOGICAL",
         "isPatrolling": True, "patrolRadius": 30, "bioType": "humpback_song", "bioRate": 0.45},
        {"id": "target-04", "x": 40, "z": -50, "type": "STATIC", "isPatrolling": False},
        {"id": "target-05", "distance": 80, "angle": math.pi * 0.4, "type": "BIOLOGICAL",
         "isPatrolling": True, "patrolRadius": 15, "bioType": "dolphin_whistle", "bioRate": 0.65},
        {"id": "target-06", "x": -90, "z": -30, "type": "STATIC", "isPatrolling": False},
        {"id": "target-07", "distance": 90, "angle": math.pi * 1.6, "type": "SHIP",
         "classId": "fishery-trawler", "speed": 1.2, "rpm": 180, "isPatrolling": True,
         "patrolRadius": 80},
        {"id": "target-08", "distance": 55, "angle": math.pi * 0.12, "type": "BIOLOGICAL",
         "isPatrolling": True, "patrolRadius": 20, "bioType": "chirp", "bioRate": 0.35},
        {"id": "target-09", "distance": 105, "angle": math.pi * 1.2, "type": "BIOLOGICAL",
         "isPatrolling": True, "patrolRadius": 25, "bioType": "snapping_shrimp", "bioRate": 0.8},
        {"id": "target-10", "distance": 65, "angle": math.pi * 1.85, "type": "BIOLOGICAL",
         "isPatrolling": True, "patrolRadius": 18, "bioType": "whale_moan", "bioRate": 0.28},
        {"id": "target-11", "distance": 42, "angle": math.pi * 1.42, "type": "BIOLOGICAL",
         "isPatrolling": True, "patrolRadius": 12, "bioType": "echolocation_click",
         "bioRate": 0.92},
    ],
    "procedural": {
        "idStart": 12,
        "count": 4,
        "types": ["SHIP", "SUBMARINE", "BIOLOGICAL", "STATIC"],
        "distanceRange": {"min": 30, "max": 150},
        "angleRange": {"min": 0, "max": math.pi * 2},
        "shipClasses": ["cargo-vessel", "fishery-trawler", "oil-tanker"],
        "subClasses": ["triumph-class", "kilo-class"],
        "shipSpeedRange": {"min": 0.5, "max": 1.5},
        "shipRpmRange": {"min": 100, "max": 250},
        "shipBladeCount": {"min": 3, "max": 5},
        "subSpeedRange": {"min": 0.2, "max": 0.6},
        "subRpmRange": {"min": 60, "max": 120},
        "subBladeCount": 7,
    },
}


def get_default_scenario() -> Dict[str, Any]:
    """Independent copy of the default scenario definition."""
    return copy.deepcopy(DEFAULT_SCENARIO)


# =============================================================================
# VALIDATION
# =============================================================================


def _check(condition: bool, field: str, constraint: str) -> None:
    if not condition:
        raise ValidationError(field, constraint)


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _target_id(number: int) -> str:
    return f"target-{number:02d}"


NUMERIC_TARGET_FIELDS = (
    "speed",
    "course",
    "targetCourse",
    "turnRate",
    "velocity",
    "patrolRadius",
    "rpm",
    "bladeCount",
    "shaftRate",
    "seed",
)


def _validate_target(target: Any, path: str) -> None:
    _check(isinstance(target, Mapping), path, "must be an object")
    _check(
        isinstance(target.get("id"), str) and len(target["id"]) > 0,
        f"{path}.id",
        "is required",
    )

    has_cartesian = _is_number(target.get("x")) and _is_number(target.get("z"))
    has_polar = _is_number(target.get("distance")) and _is_number(target.get("angle"))
    _check(has_cartesian or has_polar, path, "requires either (x,z) or (distance,angle)")

    for key in NUMERIC_TARGET_FIELDS:
        if key in target:
            _check(_is_number(target[key]), f"{path}.{key}", "must be a finite number")

    if "type" in target:
        _check(
            target["type"] in VALID_TYPES,
            f"{path}.type",
            f"must be one of {', '.join(VALID_TYPES)}",
        )

    if "classId" in target:
        _check(
            target["classId"] in CLASS_PROFILES,
            f"{path}.classId",
            f"must be one of {', '.join(CLASS_PROFILES)}",
        )

    if "bioType" in target:
        bio_type = target["bioType"]
        _check(
            isinstance(bio_type, str) and bio_type.lower() in BIO_TYPES,
            f"{path}.bioType",
            f"must be one of {', '.join(BIO_TYPES)}",
        )

    if "bioRate" in target:
        rate = target["bioRate"]
        _check(
            _is_number(rate) and 0.0 <= rate <= 1.0,
            f"{path}.bioRate",
            "must be a number in [0, 1]",
        )


def _validate_range(section: Mapping[str, Any], key: str, strict: bool = False) -> None:
    path = f"procedural.{key}"
    value = section.get(key)
    _check(isinstance(value, Mapping), path, "is required")
    _check(_is_number(value.get("min")), f"{path}.min", "must be numeric")
    _check(_is_number(value.get("max")), f"{path}.max", "must be numeric")
    if strict:
        _check(value["max"] > value["min"], f"{path}.max", "must be greater than min")
    else:
        _check(value["max"] >= value["min"], f"{path}.max", "must not be less than min")


def _validate_class_list(section: Mapping[str, Any], key: str) -> None:
    path = f"procedural.{key}"
    classes = section.get(key)
    _check(isinstance(classes, list) and len(classes) > 0, path, "must be a non-empty array")
    for class_id in classes:
        _check(class_id in CLASS_PROFILES, path, f"contains unknown class: {class_id}")


def _validate_procedural(procedural: Any) -> None:
    _check(isinstance(procedural, Mapping), "procedural", "section is required")

    id_start = procedural.get("idStart")
    count = procedural.get("count")
    _check(_is_int(id_start) and id_start > 0, "procedural.idStart", "must be a positive integer")
    _check(_is_int(count) and count >= 0, "procedural.count", "must be a non-negative integer")

    types = procedural.get("types")
    _check(
        isinstance(types, list) and len(types) > 0,
        "procedural.types",
        "must be a non-empty array",
    )
    for target_type in types:
        _check(
            target_type in VALID_TYPES,
            "procedural.types",
            f"contains invalid type: {target_type}",
        )

    _validate_range(procedural, "distanceRange", strict=True)
    _validate_range(procedural, "angleRange", strict=True)

    _validate_class_list(procedural, "shipClasses")
    _validate_class_list(procedural, "subClasses")

    _validate_range(procedural, "shipSpeedRange")
    _validate_range(procedural, "shipRpmRange")
    _validate_range(procedural, "subSpeedRange")
    _validate_range(procedural, "subRpmRange")

    blades = procedural.get("shipBladeCount")
    _check(isinstance(blades, Mapping), "procedural.shipBladeCount", "is required")
    _check(
        _is_int(blades.get("min")) and _is_int(blades.get("max")),
        "procedural.shipBladeCount",
        "must have integer min and max",
    )
    _check(
        blades["max"] >= blades["min"],
        "procedural.shipBladeCount.max",
        "must not be less than min",
    )

    _check(
        _is_int(procedural.get("subBladeCount")),
        "procedural.subBladeCount",
        "must be an integer",
    )


def validate_scenario_definition(scenario: Any) -> bool:
    """
    Validate a scenario definition.

    Args:
        scenario: Scenario mapping

    Returns:
        True

    Raises:
        ValidationError: On the first violated constraint
    """
    _check(isinstance(scenario, Mapping), "scenario", "must be an object")
    _check(
        isinstance(scenario.get("id"), str) and len(scenario["id"]) > 0,
        "scenario.id",
        "is required",
    )

    core_targets = scenario.get("coreTargets")
    _check(isinstance(core_targets, list), "scenario.coreTargets", "must be an array")

    seen = set()
    for index, target in enumerate(core_targets):
        path = f"scenario.coreTargets[{index}]"
        _validate_target(target, path)
        _check(target["id"] not in seen, f"{path}.id", f"must be unique ('{target['id']}')")
        seen.add(target["id"])

    procedural = scenario.get("procedural")
    _validate_procedural(procedural)

    for i in range(procedural["count"]):
        generated = _target_id(procedural["idStart"] + i)
        _check(
            generated not in seen,
            "procedural.idStart",
            f"generates id '{generated}' that collides with a core target",
        )

    return True


# =============================================================================
# GENERATION
# =============================================================================


def _random_in_range(rng: RandomFunc, lo: float, hi: float) -> float:
    return lo + rng() * (hi - lo)


def _random_int_inclusive(rng: RandomFunc, lo: int, hi: int) -> int:
    return lo + int(math.floor(rng() * (hi - lo + 1)))


def _pick(rng: RandomFunc, options: List[Any]) -> Any:
    return options[int(math.floor(rng() * len(options)))]


def _generate_procedural(procedural: Mapping[str, Any], rng: RandomFunc) -> List[Dict[str, Any]]:
    targets = []

    for i in range(procedural["count"]):
        target_type = _pick(rng, procedural["types"])
        distance = _random_in_range(
            rng, procedural["distanceRange"]["min"], procedural["distanceRange"]["max"]
        )
        angle = _random_in_range(
            rng, procedural["angleRange"]["min"], procedural["angleRange"]["max"]
        )
        seed = rng()

        target: Dict[str, Any] = {
            "id": _target_id(procedural["idStart"] + i),
            "type": target_type,
            "distance": distance,
            "angle": angle,
            "isPatrolling": target_type != TargetType.STATIC.value,
            "seed": seed,
        }

        if target_type == TargetType.SHIP.value:
            target["classId"] = _pick(rng, procedural["shipClasses"])
            target["speed"] = _random_in_range(
                rng, procedural["shipSpeedRange"]["min"], procedural["shipSpeedRange"]["max"]
            )
            target["rpm"] = _random_in_range(
                rng, procedural["shipRpmRange"]["min"], procedural["shipRpmRange"]["max"]
            )
            target["bladeCount"] = _random_int_inclusive(
                rng, procedural["shipBladeCount"]["min"], procedural["shipBladeCount"]["max"]
            )
        elif target_type == TargetType.SUBMARINE.value:
            target["classId"] = _pick(rng, procedural["subClasses"])
            target["speed"] = _random_in_range(
                rng, procedural["subSpeedRange"]["min"], procedural["subSpeedRange"]["max"]
            )
            target["rpm"] = _random_in_range(
                rng, procedural["subRpmRange"]["min"], procedural["subRpmRange"]["max"]
            )
            target["bladeCount"] = procedural["subBladeCount"]

        targets.append(target)

    return targets


def _type_defaults(target_type: TargetType, legacy_velocity: bool) -> Dict[str, Any]:
    row = TYPE_DEFAULTS[target_type]
    defaults: Dict[str, Any] = {
        "rpm": row.rpm,
        "bladeCount": row.blade_count,
        "isPatrolling": row.is_patrolling,
        "classId": row.class_id,
    }
    if not legacy_velocity:
        defaults["speed"] = row.speed
    return defaults


def normalize_target_config(target: Mapping[str, Any]) -> TargetConfig:
    """
    Merge defaults into a raw target and clamp acoustic fields.

    Precedence: type defaults < class defaults < explicit fields.

    Args:
        target: Raw (validated) target mapping with a 'seed'

    Returns:
        TargetConfig
    """
    profile = get_class_profile(target.get("classId"))
    if "type" in target:
        target_type = TargetType(target["type"])
    elif profile is not None:
        target_type = profile.target_type
    else:
        target_type = TargetType.SHIP

    legacy_velocity = "velocity" in target and "speed" not in target
    defaults = _type_defaults(target_type, legacy_velocity)
    if profile is not None:
        defaults.update(profile.defaults)
    merged: Dict[str, Any] = {**defaults, **target}

    if _is_number(merged.get("x")) and _is_number(merged.get("z")):
        x, z = float(merged["x"]), float(merged["z"])
        distance = float(np.hypot(x, z))
        angle = float(np.arctan2(z, x))
    else:
        distance, angle = float(merged["distance"]), float(merged["angle"])
        x = distance * math.cos(angle)
        z = distance * math.sin(angle)

    rpm = merged.get("rpm")
    if not _is_number(rpm):
        rpm = defaults["rpm"]
    rpm = float(np.clip(rpm, 0.0, MAX_RPM))
    blades = merged.get("bladeCount")
    if not _is_number(blades):
        blades = defaults["bladeCount"]
    blade_count = int(np.clip(round(blades), 0, MAX_BLADE_COUNT))
    shaft = merged.get("shaftRate")
    shaft_rate = float(np.clip(shaft if _is_number(shaft) else rpm / 60.0, 0.0, MAX_SHAFT_RATE))

    bio_type = merged.get("bioType")

    return TargetConfig(
        id=merged["id"],
        type=target_type,
        x=x,
        z=z,
        distance=distance,
        angle=angle,
        speed=merged.get("speed"),
        rpm=rpm,
        blade_count=blade_count,
        shaft_rate=shaft_rate,
        is_patrolling=bool(merged.get("isPatrolling", True)),
        seed=float(merged.get("seed", 0.5)),
        class_id=merged.get("classId"),
        course=merged.get("course"),
        target_course=merged.get("targetCourse"),
        turn_rate=merged.get("turnRate"),
        velocity=merged.get("velocity"),
        patrol_radius=float(merged.get("patrolRadius", 90.0)),
        bio_type=bio_type.lower() if isinstance(bio_type, str) else None,
        bio_rate=merged.get("bioRate"),
    )


def build_scenario_targets(scenario: Mapping[str, Any], rng: RandomFunc) -> List[TargetConfig]:
    """
    Generate the full target list for a scenario.

    Core targets come first, each stamped with one draw as its seed.
    Procedural targets follow, drawing type, distance, angle and seed,
    then class, speed, rpm and (ships only) blade count.

    Args:
        scenario: Scenario definition
        rng: Random stream, draws in [0, 1)

    Returns:
        Normalized target configurations in generation order

    Raises:
        ValidationError: If the definition is invalid
        TypeError: If rng is not callable
    """
    validate_scenario_definition(scenario)
    if not callable(rng):
        raise TypeError("rng must be a zero-argument callable")

    core = [{**target, "seed": rng()} for target in scenario["coreTargets"]]
    procedural = _generate_procedural(scenario["procedural"], rng)

    configs = [normalize_target_config(t) for t in core + procedural]
    logger.info(
        "Built scenario '%s': %d core + %d procedural targets",
        scenario["id"],
        len(core),
        len(procedural),
    )
    return configs


# =============================================================================
# FILE LOADING
# =============================================================================


def load_scenario_file(filepath: str) -> Dict[str, Any]:
    """
    Load and validate a YAML scenario file.

    Args:
        filepath: Path to YAML scenario file

    Returns:
        Scenario mapping (including optional sonar/environment sections)

    Raises:
        FileNotFoundError: If file doesn't exist
        ValidationError: If the definition is invalid
        yaml.YAMLError: If YAML parsing fails
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Scenario file not found: {filepath}")

    with open(filepath, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    validate_scenario_definition(data)
    logger.info("Loaded scenario '%s' from %s", data["id"], filepath)
    return data


class ScenarioLoader:
    """
    Loads sonar scenarios from YAML files.

    Usage:
        loader = ScenarioLoader('scenarios/layer_hunter.yaml')
        config = loader.get_sonar_config()
        world = loader.create_world(seed=12345)
    """

    def __init__(self, filepath: Optional[str] = None):
        """
        Initialize scenario loader.

        Args:
            filepath: Path to YAML scenario file (optional)
        """
        self.filepath = filepath
        self.data: Dict[str, Any] = {}

        if filepath:
            self.load(filepath)

    def load(self, filepath: str) -> bool:
        """
        Load scenario from YAML file.

        Returns:
            True if loaded successfully

        Raises:
            FileNotFoundError: If file doesn't exist
            ValidationError: If the definition is invalid
        """
        self.data = load_scenario_file(filepath)
        self.filepath = filepath
        return True

    def get_definition(self) -> Dict[str, Any]:
        """Scenario definition without the sonar/environment sections."""
        return {k: v for k, v in self.data.items() if k not in ("sonar", "environment")}

    def get_scenario_name(self) -> str:
        return self.data.get("name", self.data.get("id", "Unknown"))

    def get_sonar_config(self) -> SonarConfig:
        """
        Detection tuning from the ``sonar:`` section.

        Raises:
            ValueError: On unknown keys
        """
        return SonarConfig.from_dict(self.data.get("sonar") or {})

    def get_environment(self) -> EnvironmentModel:
        """Environment model from the ``environment:`` section."""
        env = self.data.get("environment") or {}
        return EnvironmentModel(
            profile=env.get("profile", "DEEP_OCEAN"),
            sea_state=int(env.get("sea_state", 2)),
        )

    def create_world(self, seed: int = 12345, terrain=None):
        """
        Create a seeded SonarWorld from the loaded scenario.

        Args:
            seed: Random stream seed
            terrain: Optional terrain height provider

        Returns:
            SonarWorld with targets generated

        Raises:
            ValueError: If no scenario is loaded
        """
        if not self.data:
            raise ValueError("No scenario loaded. Call load() first.")

        engine = SimulationEngine(seed=seed)
        world = SonarWorld(
            engine,
            terrain=terrain,
            config=self.get_sonar_config(),
            environment=self.get_environment(),
        )
        world.seed_targets(self.get_definition())
        return world
