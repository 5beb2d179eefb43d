"""
Simulation Objects

Kinematic and acoustic objects for sonar simulation: Target and OwnShip.

Coordinate system (world units, 1 unit = 10 m by default):
    - x: East
    - z: toward bearing 180 (angle = atan2(z, x), bearing = angle + 90°)
    - Target course is measured in the same frame as angle (0 rad = +X)

Features:
    - Turn-rate limited heading control with Euler integration
    - Patrol AI with type-dependent leg lengths and course perturbations
    - Reactive EVADE / INTERCEPT behaviour on active sonar illumination
    - Source level model with flow/cavitation and machinery terms

References:
    - Urick, R.J. (1983). "Principles of Underwater Sound", Chapter 10
    - Ross, D. (1976). "Mechanics of Underwater Noise"
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

import numba
import numpy as np

from sonarsim.physics.constants import (
    FLOW_NOISE_SPEED_EXPONENT,
    FLOW_NOISE_SPEED_SCALE,
    MACHINERY_NOISE_FACTOR,
    SOURCE_LEVEL_BIOLOGICAL,
    SOURCE_LEVEL_DEFAULT,
    SOURCE_LEVEL_SHIP,
    SOURCE_LEVEL_STATIC,
    SOURCE_LEVEL_SUBMARINE,
    SOURCE_LEVEL_TORPEDO,
)
from sonarsim.physics.environment import AcousticModifiers

from .rng import RandomFunc

logger = logging.getLogger(__name__)


class TargetType(Enum):
    """Acoustic contact categories."""

    SHIP = "SHIP"
    SUBMARINE = "SUBMARINE"
    BIOLOGICAL = "BIOLOGICAL"
    STATIC = "STATIC"
    TORPEDO = "TORPEDO"


class TrackState(Enum):
    """
    Track and classification states.

    Track lifecycle uses UNDETECTED / TRACKED / LOST.
    Classification uses UNDETECTED / AMBIGUOUS / CLASSIFIED / CONFIRMED.
    """

    UNDETECTED = "UNDETECTED"
    AMBIGUOUS = "AMBIGUOUS"
    CLASSIFIED = "CLASSIFIED"
    CONFIRMED = "CONFIRMED"
    TRACKED = "TRACKED"
    LOST = "LOST"


class BehaviorState(Enum):
    """Reactive behaviour set by active sonar illumination."""

    NORMAL = "NORMAL"
    EVADE = "EVADE"
    INTERCEPT = "INTERCEPT"


@dataclass(frozen=True)
class TypeDefaults:
    """Per-type default kinematic and acoustic fields."""

    speed: float
    turn_rate: float
    rpm: float
    blade_count: int
    is_patrolling: bool
    class_id: Optional[str]
    source_level_db: float


TYPE_DEFAULTS: Dict[TargetType, TypeDefaults] = {
    TargetType.SHIP: TypeDefaults(0.15, 0.1, 120.0, 3, True, "cargo-vessel", SOURCE_LEVEL_SHIP),
    TargetType.SUBMARINE: TypeDefaults(
        0.15, 0.05, 90.0, 7, True, "triumph-class", SOURCE_LEVEL_SUBMARINE
    ),
    TargetType.BIOLOGICAL: TypeDefaults(0.15, 0.3, 0.0, 0, True, None, SOURCE_LEVEL_BIOLOGICAL),
    TargetType.STATIC: TypeDefaults(0.0, 0.1, 0.0, 0, False, None, SOURCE_LEVEL_STATIC),
    TargetType.TORPEDO: TypeDefaults(2.5, 0.5, 600.0, 4, True, None, SOURCE_LEVEL_TORPEDO),
}

# Acoustic field clamps
MAX_RPM = 2000.0
MAX_BLADE_COUNT = 12
MAX_SHAFT_RATE = 120.0

EVADE_ALERT_DURATION_S = 30.0
EVADE_SPEED_FACTOR = 1.5


@dataclass
class Classification:
    """
    Continuous classification channel for one target.

    Attributes:
        state: UNDETECTED, AMBIGUOUS, CLASSIFIED or CONFIRMED
        progress: Accumulated identification progress (0..1)
        identified_class: Class id once CLASSIFIED
        confirmed: True once CONFIRMED
    """

    state: TrackState = TrackState.UNDETECTED
    progress: float = 0.0
    identified_class: Optional[str] = None
    confirmed: bool = False

    def reset(self) -> None:
        self.state = TrackState.UNDETECTED
        self.progress = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "progress": self.progress,
            "identified_class": self.identified_class,
            "confirmed": self.confirmed,
        }


# =============================================================================
# NUMBA JIT-COMPILED FUNCTIONS
# =============================================================================


@numba.jit(nopython=True, cache=True)
def _normalize_course_jit(course: float) -> float:
    """Wrap an angle into [0, 2π)."""
    two_pi = 2.0 * np.pi
    wrapped = course - two_pi * np.floor(course / two_pi)
    if wrapped >= two_pi:
        wrapped = 0.0
    return wrapped


@numba.jit(nopython=True, cache=True)
def _shortest_turn_jit(current: float, target: float) -> float:
    """Signed angular difference target - current wrapped into (-π, π]."""
    two_pi = 2.0 * np.pi
    diff = target - current
    if not np.isfinite(diff):
        return 0.0
    diff -= two_pi * np.floor((diff + np.pi) / two_pi)
    if diff <= -np.pi:
        diff += two_pi
    return diff


@numba.jit(nopython=True, cache=True)
def _integrate_heading_jit(
    x: float,
    z: float,
    course: float,
    target_course: float,
    turn_rate: float,
    speed: float,
    dt: float,
) -> Tuple[float, float, float]:
    """
    JIT-compiled heading control and Euler position update.

    The per-step heading change is capped at turn_rate * dt and snaps
    to the target course when within one step.

    Args:
        x, z: Current position [world units]
        course: Current course [rad]
        target_course: Desired course [rad]
        turn_rate: Maximum turn rate [rad/s]
        speed: Speed [world units/s]
        dt: Time step [s]

    Returns:
        Tuple of (new_x, new_z, new_course)
    """
    diff = _shortest_turn_jit(course, target_course)
    step = turn_rate * dt

    if abs(diff) <= step:
        course = target_course
    elif diff > 0:
        course += step
    else:
        course -= step

    course = _normalize_course_jit(course)

    x += np.cos(course) * speed * dt
    z += np.sin(course) * speed * dt
    return x, z, course


def normalize_course(course: float) -> float:
    """Wrap an angle into [0, 2π); non-finite input maps to 0."""
    if not np.isfinite(course):
        return 0.0
    return float(_normalize_course_jit(float(course)))


# =============================================================================
# TARGET
# =============================================================================


class Target:
    """
    Acoustic contact with turn-rate limited kinematics and patrol AI.

    Position (x, z) is the single source of truth: distance, angle and
    bearing are derived on every access.
    """

    def __init__(
        self,
        target_id: str,
        target_type: TargetType = TargetType.SHIP,
        x: float = 0.0,
        z: float = 0.0,
        course: float = 0.0,
        speed: Optional[float] = None,
        turn_rate: Optional[float] = None,
        target_course: Optional[float] = None,
        rpm: Optional[float] = None,
        blade_count: Optional[int] = None,
        shaft_rate: Optional[float] = None,
        class_id: Optional[str] = None,
        bio_type: Optional[str] = None,
        bio_rate: Optional[float] = None,
        patrol_radius: float = 90.0,
        is_patrolling: Optional[bool] = None,
        seed: Optional[float] = None,
    ):
        """
        Initialize target.

        Args:
            target_id: Unique identifier within a simulation
            target_type: Contact category
            x, z: Initial position [world units]
            course: Initial course [rad]
            speed: Speed magnitude (type default if None)
            turn_rate: Maximum turn rate [rad/s] (type default if None)
            target_course: Initial desired course (course if None)
            rpm: Shaft speed, clamped to [0, 2000]
            blade_count: Propeller blades, rounded and clamped to [0, 12]
            shaft_rate: Shaft rate [Hz], defaults to rpm / 60, clamped to [0, 120]
            class_id: Signature class (type default if None)
            bio_type: Biological sound mode
            bio_rate: Biological call rate (0..1)
            patrol_radius: Patrol boundary around the spawn point
            is_patrolling: Patrol AI enabled (type default if None)
            seed: Per-target scenario seed in [0, 1)
        """
        defaults = TYPE_DEFAULTS[target_type]

        self.id = target_id
        self.type = target_type

        self.x = float(x)
        self.z = float(z)

        self.speed = abs(float(defaults.speed if speed is None else speed))
        self.cruise_speed = self.speed
        self.turn_rate = defaults.turn_rate if turn_rate is None else float(turn_rate)
        self.course = normalize_course(float(course))
        self.target_course = (
            self.course if target_course is None else normalize_course(float(target_course))
        )

        rpm_value = defaults.rpm if rpm is None or not np.isfinite(rpm) else rpm
        blade_value = (
            defaults.blade_count
            if blade_count is None or not np.isfinite(blade_count)
            else blade_count
        )
        self.rpm = float(np.clip(rpm_value, 0.0, MAX_RPM))
        self.blade_count = int(np.clip(round(blade_value), 0, MAX_BLADE_COUNT))
        shaft_value = (
            self.rpm / 60.0 if shaft_rate is None or not np.isfinite(shaft_rate) else shaft_rate
        )
        self.shaft_rate = float(np.clip(shaft_value, 0.0, MAX_SHAFT_RATE))

        self.class_id = defaults.class_id if class_id is None else class_id
        self.bio_type = bio_type
        self.bio_rate = bio_rate

        # Patrol AI
        self.patrol_center = (self.x, self.z)
        self.patrol_radius = float(patrol_radius)
        self.is_patrolling = (
            defaults.is_patrolling if is_patrolling is None else bool(is_patrolling)
        )
        self.time_since_last_turn = 0.0
        self.seed = 0.5 if seed is None else float(seed)
        self.next_turn_interval = 10.0 + self.seed * 20.0

        # Detection state
        self.snr = 0.0
        self.state = TrackState.UNDETECTED
        self.last_detected_time = 0.0
        self.last_pulse_id = -1
        self.blocked_pulse_id = -1
        self.classification = Classification()

        # Reactive behaviour
        self.behavior_state = BehaviorState.NORMAL
        self.alert_timer = 0.0
        self.threat_origin: Tuple[float, float] = (0.0, 0.0)

        # Last propagation modifiers computed by the detection core
        self.environment_effects: Optional[AcousticModifiers] = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "Target":
        """
        Build a target from a normalized scenario configuration.

        Accepts camelCase scenario keys. Placement may be cartesian
        (x, z) or polar (distance, angle). A legacy signed ``velocity``
        with an ``angle`` and no ``course`` sets the course along the
        angle, reversed when velocity is negative.

        Args:
            config: Mapping, or an object exposing ``to_dict()``

        Returns:
            New Target
        """
        if hasattr(config, "to_dict"):
            config = config.to_dict()

        target_type = TargetType(config.get("type", TargetType.SHIP.value))

        x = config.get("x")
        z = config.get("z")
        distance = config.get("distance")
        angle = config.get("angle")
        if (x is None or z is None) and distance is not None and angle is not None:
            x = distance * np.cos(angle)
            z = distance * np.sin(angle)

        speed = config.get("speed")
        velocity = config.get("velocity")
        if speed is None and velocity is not None:
            speed = abs(velocity)

        course = config.get("course")
        target_course = config.get("targetCourse")
        if course is None:
            course = angle if angle is not None else 0.0
            if velocity is not None and angle is not None:
                course = angle + np.pi if velocity < 0 else angle
                target_course = course

        return cls(
            target_id=config["id"],
            target_type=target_type,
            x=0.0 if x is None else x,
            z=0.0 if z is None else z,
            course=course,
            speed=speed,
            turn_rate=config.get("turnRate"),
            target_course=target_course,
            rpm=config.get("rpm"),
            blade_count=config.get("bladeCount"),
            shaft_rate=config.get("shaftRate"),
            class_id=config.get("classId"),
            bio_type=config.get("bioType"),
            bio_rate=config.get("bioRate"),
            patrol_radius=config.get("patrolRadius", 90.0),
            is_patrolling=config.get("isPatrolling"),
            seed=config.get("seed"),
        )

    # -------------------------------------------------------------------------
    # Derived geometry
    # -------------------------------------------------------------------------

    @property
    def distance(self) -> float:
        """Distance from the world origin [world units]."""
        return float(np.hypot(self.x, self.z))

    @property
    def angle(self) -> float:
        """Polar angle atan2(z, x) [rad]."""
        return float(np.arctan2(self.z, self.x))

    @property
    def bearing(self) -> float:
        """Compass bearing from the origin [deg], 0..360."""
        return (np.degrees(self.angle) + 90.0) % 360.0

    @property
    def radial_velocity(self) -> float:
        """Speed component along the line of sight from the origin."""
        return self.speed * float(np.cos(self.course - self.angle))

    @property
    def blade_passage_frequency(self) -> float:
        """BPF = rpm / 60 * blades [Hz]."""
        return self.rpm / 60.0 * self.blade_count

    # -------------------------------------------------------------------------
    # Behaviour
    # -------------------------------------------------------------------------

    def update(self, dt: float, rng: RandomFunc) -> None:
        """
        Advance the target by one time step.

        Reactive behaviour overrides the patrol AI. Non-finite or
        non-positive dt leaves the state untouched.

        Args:
            dt: Time step [s]
            rng: Shared random stream, draws in [0, 1)
        """
        if not np.isfinite(dt) or dt <= 0:
            return

        if self.behavior_state == BehaviorState.EVADE:
            ox, oz = self.threat_origin
            self.target_course = normalize_course(np.arctan2(self.z - oz, self.x - ox))
            self.speed = self.cruise_speed * EVADE_SPEED_FACTOR
            self.alert_timer -= dt

            if self.alert_timer <= 0:
                self.behavior_state = BehaviorState.NORMAL
                self.alert_timer = 0.0
                self.speed = self.cruise_speed
        elif self.behavior_state == BehaviorState.INTERCEPT:
            ox, oz = self.threat_origin
            self.target_course = normalize_course(np.arctan2(oz - self.z, ox - self.x))
            self.speed = self.cruise_speed
        elif self.is_patrolling:
            self._patrol(dt, rng)

        self.x, self.z, self.course = _integrate_heading_jit(
            self.x,
            self.z,
            self.course,
            self.target_course,
            self.turn_rate,
            self.speed,
            dt,
        )

    def _patrol(self, dt: float, rng: RandomFunc) -> None:
        cx, cz = self.patrol_center
        if np.hypot(self.x - cx, self.z - cz) > self.patrol_radius:
            # Boundary correction takes priority over scheduled turns
            self.target_course = normalize_course(np.arctan2(cz - self.z, cx - self.x))
            return

        self.time_since_last_turn += dt
        if self.time_since_last_turn <= self.next_turn_interval:
            return

        if self.type == TargetType.BIOLOGICAL:
            self.target_course += (rng() - 0.5) * np.pi
            self.speed = 0.05 + rng() * 0.25
            self.next_turn_interval = 2.0 + rng() * 8.0
        elif self.type == TargetType.TORPEDO:
            self.target_course += (rng() - 0.5) * 0.5
            self.next_turn_interval = 1.0 + rng() * 3.0
        else:
            self.target_course += (rng() - 0.5) * 2.0
            self.next_turn_interval = 20.0 + rng() * 40.0
        self.target_course = normalize_course(self.target_course)
        self.time_since_last_turn = 0.0

    def get_acoustic_signature(self) -> float:
        """
        Radiated source level.

        SL = SL_type + 20 log10(1 + 10 v^1.5) + 5 log10(1 + rpm/60)

        Returns:
            Source level [dB re 1 µPa @ 1 m]
        """
        base = TYPE_DEFAULTS.get(self.type)
        sl = base.source_level_db if base is not None else SOURCE_LEVEL_DEFAULT

        flow = 20.0 * np.log10(
            1.0 + FLOW_NOISE_SPEED_SCALE * self.speed**FLOW_NOISE_SPEED_EXPONENT
        )
        machinery = 0.0
        if self.rpm > 0:
            machinery = MACHINERY_NOISE_FACTOR * np.log10(1.0 + self.rpm / 60.0)

        return float(sl + flow + machinery)

    def react_to_ping(self, source: Tuple[float, float] = (0.0, 0.0)) -> None:
        """
        React to active sonar illumination.

        Submarines evade away from the ping source for 30 s, torpedoes
        home on it, other types ignore it.

        Args:
            source: Ping origin (x, z)
        """
        if self.type == TargetType.SUBMARINE:
            self.behavior_state = BehaviorState.EVADE
            self.alert_timer = EVADE_ALERT_DURATION_S
        elif self.type == TargetType.TORPEDO:
            self.behavior_state = BehaviorState.INTERCEPT
            self.alert_timer = 0.0
        else:
            return

        self.threat_origin = (float(source[0]), float(source[1]))
        logger.debug("%s reacting to ping: %s", self.id, self.behavior_state.value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "id": self.id,
            "type": self.type.value,
            "class_id": self.class_id,
            "x": self.x,
            "z": self.z,
            "course": self.course,
            "speed": self.speed,
            "distance": self.distance,
            "bearing": self.bearing,
            "rpm": self.rpm,
            "blade_count": self.blade_count,
            "snr": self.snr,
            "state": self.state.value,
            "behavior_state": self.behavior_state.value,
            "classification": self.classification.to_dict(),
        }


# =============================================================================
# OWN SHIP
# =============================================================================


class OwnShip:
    """
    Own submarine with first-order rudder and throttle response.

    Own-ship course is a compass heading in the same frame as target
    bearings: heading 0 points along -Z (bearing 0), heading 90° along
    +X, so the forward vector is (sin c, -cos c).
    """

    MAX_RUDDER_DEG = 30.0
    MAX_TURN_RATE = 0.35  # rad/s at full rudder
    TURN_RESPONSE = 2.6
    MAX_AHEAD_SPEED = 2.8
    MAX_ASTERN_SPEED = 1.6
    SPEED_RESPONSE = 1.9

    def __init__(self, x: float = 0.0, z: float = 0.0, course: float = 0.0):
        self.x = float(x)
        self.z = float(z)
        self.course = normalize_course(course)
        self.rudder_deg = 0.0
        self.throttle = 0.0
        self.turn_rate = 0.0
        self.forward_speed = 0.0

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.z)

    @property
    def heading_deg(self) -> float:
        """Compass heading [deg], 0..360."""
        return float(np.degrees(self.course)) % 360.0

    def set_rudder(self, angle_deg: float) -> None:
        """Command rudder angle [deg]; non-finite commands are ignored."""
        if not np.isfinite(angle_deg):
            return
        self.rudder_deg = float(np.clip(angle_deg, -self.MAX_RUDDER_DEG, self.MAX_RUDDER_DEG))

    def center_rudder(self) -> None:
        self.rudder_deg = 0.0

    def set_throttle(self, value: float) -> None:
        """Command throttle (-1 full astern .. +1 full ahead)."""
        if not np.isfinite(value):
            return
        self.throttle = float(np.clip(value, -1.0, 1.0))

    def stop_throttle(self) -> None:
        self.throttle = 0.0

    def update(self, dt: float) -> None:
        """
        Advance own-ship manoeuvre by one time step.

        Args:
            dt: Time step [s]
        """
        if not np.isfinite(dt) or dt <= 0:
            return

        rudder_norm = self.rudder_deg / self.MAX_RUDDER_DEG
        target_turn_rate = rudder_norm * self.MAX_TURN_RATE
        response = min(1.0, dt * self.TURN_RESPONSE)
        self.turn_rate += (target_turn_rate - self.turn_rate) * response

        if self.throttle >= 0:
            target_speed = self.throttle * self.MAX_AHEAD_SPEED
        else:
            target_speed = self.throttle * self.MAX_ASTERN_SPEED
        speed_response = min(1.0, dt * self.SPEED_RESPONSE)
        self.forward_speed += (target_speed - self.forward_speed) * speed_response

        self.course = normalize_course(self.course + self.turn_rate * dt)

        self.x += np.sin(self.course) * self.forward_speed * dt
        self.z -= np.cos(self.course) * self.forward_speed * dt

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.x,
            "z": self.z,
            "heading_deg": self.heading_deg,
            "rudder_deg": self.rudder_deg,
            "throttle": self.throttle,
            "forward_speed": self.forward_speed,
        }
