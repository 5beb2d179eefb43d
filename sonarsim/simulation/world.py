"""
Sonar World: Detection and Classification Core

Per-tick passive detection, active scanning and classification for all
targets in a SimulationEngine.

Passive detection (per target, every tick):
    SNR = SL - TL - NL + env_modifier - shadow + multipath - occlusion

Active scanning:
    An expanding pulse front illuminates each target once per pulse,
    forcing it TRACKED, triggering its reaction and scheduling an echo.

Classification:
    Continuous progress gated by SNR > threshold + margin, faster for
    the selected contact, decaying when the SNR is insufficient.

References:
    - Urick, R.J. (1983). "Principles of Underwater Sound", Chapter 2, 12
    - Waite, A.D. (2002). "Sonar for Practising Engineers", Chapter 6
"""

import logging
from dataclasses import asdict, dataclass, fields
from typing import Any, Callable, Dict, List, Mapping, Optional

import numpy as np

from sonarsim.physics.constants import NOMINAL_SOUND_SPEED
from sonarsim.physics.environment import AcousticModifiers, EnvironmentModel
from sonarsim.physics.seabed import TerrainHeightProvider, check_line_of_sight
from sonarsim.physics.sonar_equation import (
    calculate_passive_snr,
    echo_intensity,
    echo_volume,
    multipath_interference,
    scaled_range,
)

from .engine import SimulationEngine
from .events import (
    EventListener,
    PingEchoEvent,
    ScanCompleteEvent,
    ScanUpdateEvent,
    SonarContactEvent,
    SonarEvent,
    TargetUpdateEvent,
)
from .objects import OwnShip, Target, TrackState

logger = logging.getLogger(__name__)


@dataclass
class SonarConfig:
    """
    Detection core tuning.

    Distances are world units unless suffixed; levels are dB.
    """

    detection_threshold_db: float = 6.0
    classification_margin_db: float = 2.0
    lost_track_timeout_s: float = 10.0
    los_sample_count: int = 10
    passive_occlusion_attenuation_db: float = 25.0
    shadow_zone_attenuation_db: float = 15.0
    multipath_strength_db: float = 3.0
    multipath_frequency: float = 0.5
    unit_scale: float = 10.0
    scan_increment: float = 15.0
    max_scan_range: float = 150.0
    echo_reference_range: float = 200.0
    selected_classification_rate: float = 0.06
    background_classification_rate: float = 0.015
    classification_decay_rate: float = 0.01
    own_ship_eye_height: float = 5.0
    target_eye_height: float = 2.0
    own_ship_depth_offset: float = 5.0
    target_depth_offset: float = 2.0
    default_own_ship_depth: float = 5.0
    default_target_depth: float = 10.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SonarConfig":
        """
        Build from a mapping of field overrides.

        Raises:
            ValueError: On unknown keys
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown sonar config keys: {', '.join(unknown)}")
        return cls(**dict(data))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PendingEcho:
    """Visual echo return scheduled by an active ping."""

    bearing: float
    intensity: float
    arrival_time: float


@dataclass
class AcousticContext:
    """Propagation context between own ship and one target."""

    own_depth: float
    target_depth: float
    range_m: float
    modifiers: AcousticModifiers


@dataclass(frozen=True)
class PingTransientState:
    """Whether an active ping is in progress or recent."""

    active: bool
    recent: bool
    since_last_ping: float


class SonarWorld:
    """
    Detection and classification core.

    Reads target state from the engine, the environment model and the
    terrain height provider; writes SNR, track state and classification
    back onto the targets.
    """

    PING_INTENSITY_DECAY = 0.85
    PING_ACTIVE_FLOOR = 0.06

    def __init__(
        self,
        engine: SimulationEngine,
        terrain: Optional[TerrainHeightProvider] = None,
        config: Optional[SonarConfig] = None,
        environment: Optional[EnvironmentModel] = None,
        own_ship: Optional[OwnShip] = None,
    ):
        """
        Initialize world.

        Args:
            engine: Engine owning the target collection and random stream
            terrain: Height provider (x, z) -> height, or None for open water
            config: Detection tuning
            environment: Water column model
            own_ship: Own submarine
        """
        self.engine = engine
        self.terrain = self._resolve_terrain(terrain)
        self.config = config or SonarConfig()
        self.environment = environment or EnvironmentModel()
        self.own_ship = own_ship or OwnShip()

        self.selected_target_id: Optional[str] = None
        self.elapsed_time = 0.0

        self.is_scanning = False
        self.scan_radius = 0.0
        self.pulse_id = 0
        self.ping_intensity = 0.0
        self.last_ping_time = -np.inf
        self.pending_echoes: List[PendingEcho] = []

        self._listeners: List[EventListener] = []

    @staticmethod
    def _resolve_terrain(terrain: Any) -> Optional[Callable[[float, float], float]]:
        if terrain is None:
            return None
        getter = getattr(terrain, "get_terrain_height", None)
        if callable(getter):
            return getter
        if callable(terrain):
            return terrain
        raise TypeError("terrain must be callable or provide get_terrain_height(x, z)")

    @property
    def targets(self) -> List[Target]:
        return self.engine.targets

    # =========================================================================
    # EVENTS
    # =========================================================================

    def subscribe(self, listener: EventListener) -> None:
        """Register a listener called for every emitted event."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: SonarEvent, batch: Optional[List[SonarEvent]] = None) -> None:
        if batch is not None:
            batch.append(event)
        for listener in list(self._listeners):
            listener(event)

    # =========================================================================
    # TICK
    # =========================================================================

    def update(self, dt: float) -> List[SonarEvent]:
        """
        Run one detection/classification pass.

        Args:
            dt: Time step [s]

        Returns:
            Events emitted during this tick, in firing order
        """
        if not np.isfinite(dt) or dt < 0:
            logger.warning("Ignoring invalid world dt: %s", dt)
            return []

        events: List[SonarEvent] = []

        self.elapsed_time += dt
        self.own_ship.update(dt)

        if self.ping_intensity > 0:
            self.ping_intensity *= self.PING_INTENSITY_DECAY

        self.process_passive_detection(events)
        self.process_classification(dt)
        if self.is_scanning:
            self.process_active_scanning(events)

        self._emit(TargetUpdateEvent(tuple(t.id for t in self.targets)), events)
        return events

    # =========================================================================
    # GEOMETRY
    # =========================================================================

    def range_to(self, target: Target) -> float:
        """Horizontal range from own ship [world units]."""
        return float(np.hypot(target.x - self.own_ship.x, target.z - self.own_ship.z))

    def bearing_to(self, target: Target) -> float:
        """Compass bearing from own ship [deg], 0..360."""
        dx = target.x - self.own_ship.x
        dz = target.z - self.own_ship.z
        return (np.degrees(np.arctan2(dz, dx)) + 90.0) % 360.0

    def own_ship_depth(self) -> float:
        """Own-ship depth [m] above the local seabed."""
        if self.terrain is None:
            return self.config.default_own_ship_depth
        height = self.terrain(self.own_ship.x, self.own_ship.z)
        return max(1.0, -height - self.config.own_ship_depth_offset)

    def target_depth(self, target: Target) -> float:
        """Target depth [m] above the local seabed."""
        if self.terrain is None:
            return self.config.default_target_depth
        height = self.terrain(target.x, target.z)
        return max(1.0, -height - self.config.target_depth_offset)

    def check_line_of_sight(self, target: Target) -> bool:
        """True if the seabed does not block own ship -> target."""
        return check_line_of_sight(
            self.terrain,
            self.own_ship.position,
            (target.x, target.z),
            start_eye_height=self.config.own_ship_eye_height,
            end_eye_height=self.config.target_eye_height,
            num_samples=self.config.los_sample_count,
        )

    # =========================================================================
    # PASSIVE DETECTION
    # =========================================================================

    def process_passive_detection(self, events: Optional[List[SonarEvent]] = None) -> None:
        """
        Compute passive SNR for every target and update track state.

        Args:
            events: Batch to append contact events to
        """
        cfg = self.config
        own_depth = self.own_ship_depth()

        for target in self.targets:
            target_depth = self.target_depth(target)
            noise_level = self.environment.ambient_noise(target_depth)
            distance = self.range_to(target)
            range_m = scaled_range(distance, cfg.unit_scale)
            modifiers = self.environment.get_acoustic_modifiers(own_depth, target_depth, range_m)

            snr = calculate_passive_snr(target.get_acoustic_signature(), range_m, noise_level)
            snr += modifiers.snr_modifier_db

            if self.environment.is_thermocline_between(own_depth, target_depth):
                snr -= cfg.shadow_zone_attenuation_db

            snr += multipath_interference(
                distance, cfg.multipath_strength_db, cfg.multipath_frequency
            )

            if not self.check_line_of_sight(target):
                snr -= cfg.passive_occlusion_attenuation_db

            target.snr = snr
            target.environment_effects = modifiers

            if snr > cfg.detection_threshold_db:
                if target.state != TrackState.TRACKED:
                    logger.info(
                        "%s %s -> TRACKED (SNR %.1f dB)", target.id, target.state.value, snr
                    )
                target.state = TrackState.TRACKED
                target.last_detected_time = self.elapsed_time
                self._emit(SonarContactEvent(target.id, True), events)
            elif target.state == TrackState.TRACKED:
                if self.elapsed_time - target.last_detected_time > cfg.lost_track_timeout_s:
                    target.state = TrackState.LOST
                    logger.info("%s TRACKED -> LOST", target.id)

    # =========================================================================
    # CLASSIFICATION
    # =========================================================================

    def process_classification(self, dt: float) -> None:
        """
        Advance or decay classification progress for every target.

        Args:
            dt: Time step [s]
        """
        cfg = self.config
        gate_db = cfg.detection_threshold_db + cfg.classification_margin_db

        for target in self.targets:
            classification = target.classification

            if target.state in (TrackState.UNDETECTED, TrackState.LOST):
                classification.reset()
                continue

            if target.snr > gate_db:
                if target.id == self.selected_target_id:
                    rate = cfg.selected_classification_rate
                else:
                    rate = cfg.background_classification_rate
                classification.progress = min(1.0, max(0.0, classification.progress + rate * dt))

                if 0.2 <= classification.progress < 0.6:
                    classification.state = TrackState.AMBIGUOUS
                elif 0.6 <= classification.progress < 0.95:
                    classification.state = TrackState.CLASSIFIED
                    classification.identified_class = target.class_id
                elif classification.progress >= 0.95:
                    if not classification.confirmed:
                        logger.info("%s classification confirmed: %s", target.id, target.class_id)
                    classification.state = TrackState.CONFIRMED
                    classification.identified_class = target.class_id
                    classification.confirmed = True
            else:
                decay = cfg.classification_decay_rate * dt
                classification.progress = max(0.0, classification.progress - decay)
                if classification.progress < 0.1:
                    classification.state = TrackState.UNDETECTED

    # =========================================================================
    # ACTIVE SCANNING
    # =========================================================================

    def trigger_ping(self) -> bool:
        """
        Start an active scan.

        Ignored while a scan is in progress.

        Returns:
            True if a new pulse was started
        """
        if self.is_scanning:
            return False

        self.is_scanning = True
        self.scan_radius = 0.0
        self.pulse_id += 1
        self.last_ping_time = self.elapsed_time
        self.ping_intensity = 1.0
        logger.debug("Ping %d at t=%.1f s", self.pulse_id, self.elapsed_time)
        self._emit(ScanUpdateEvent(0.0, True))
        return True

    def process_active_scanning(self, events: Optional[List[SonarEvent]] = None) -> None:
        """
        Grow the scan front and illuminate targets it has reached.

        A target blocked by the seabed when the front reaches it is not
        marked illuminated and stays dark for the rest of this pulse.

        Args:
            events: Batch to append scan events to
        """
        cfg = self.config
        self.scan_radius += cfg.scan_increment
        self._emit(ScanUpdateEvent(self.scan_radius, True), events)
        own_depth = self.own_ship_depth()

        for target in self.targets:
            if self.pulse_id in (target.last_pulse_id, target.blocked_pulse_id):
                continue
            distance = self.range_to(target)
            if distance > self.scan_radius:
                continue

            if not self.check_line_of_sight(target):
                target.blocked_pulse_id = self.pulse_id
                logger.debug("Pulse %d blocked for %s", self.pulse_id, target.id)
                continue

            target.last_pulse_id = self.pulse_id
            target.state = TrackState.TRACKED
            target.last_detected_time = self.elapsed_time
            target.react_to_ping(self.own_ship.position)

            range_m = scaled_range(distance, cfg.unit_scale)
            modifiers = self.environment.get_acoustic_modifiers(
                own_depth, self.target_depth(target), range_m
            )
            volume = echo_volume(distance, cfg.echo_reference_range, modifiers.echo_gain)
            self._emit(PingEchoEvent(volume, distance), events)
            self._emit(SonarContactEvent(target.id, False), events)

            self.pending_echoes.append(
                PendingEcho(
                    bearing=self.bearing_to(target),
                    intensity=echo_intensity(
                        distance, cfg.echo_reference_range, modifiers.echo_gain
                    ),
                    arrival_time=self.elapsed_time + 2.0 * range_m / NOMINAL_SOUND_SPEED,
                )
            )
            logger.debug("Pulse %d illuminated %s at %.1f", self.pulse_id, target.id, distance)

        if self.scan_radius > cfg.max_scan_range:
            self.is_scanning = False
            self.ping_intensity = 0.0
            self._emit(ScanUpdateEvent(self.scan_radius, False), events)
            self._emit(ScanCompleteEvent(), events)

    def ping_transient_state(self, recent_window_s: float = 2.5) -> PingTransientState:
        """Active/recent ping flags and time since the last ping [s]."""
        active = self.is_scanning or self.ping_intensity > self.PING_ACTIVE_FLOOR
        since = self.elapsed_time - self.last_ping_time
        recent = bool(np.isfinite(since)) and 0.0 <= since <= recent_window_s
        return PingTransientState(active=active, recent=recent, since_last_ping=float(since))

    def flush_arrived_echoes(self) -> List[PendingEcho]:
        """Remove and return echoes whose arrival time has passed."""
        arrived = [e for e in self.pending_echoes if self.elapsed_time >= e.arrival_time]
        self.pending_echoes = [e for e in self.pending_echoes if self.elapsed_time < e.arrival_time]
        return arrived

    # =========================================================================
    # SELECTION & CONTEXT
    # =========================================================================

    def get_selected_target(self) -> Optional[Target]:
        for target in self.targets:
            if target.id == self.selected_target_id:
                return target
        return None

    def acoustic_context(self, target: Optional[Target]) -> Optional[AcousticContext]:
        """
        Propagation context for a target.

        Args:
            target: Target, or None

        Returns:
            AcousticContext, or None when no target is given
        """
        if target is None:
            return None
        own_depth = self.own_ship_depth()
        target_depth = self.target_depth(target)
        range_m = scaled_range(self.range_to(target), self.config.unit_scale)
        modifiers = self.environment.get_acoustic_modifiers(own_depth, target_depth, range_m)
        return AcousticContext(own_depth, target_depth, range_m, modifiers)

    # =========================================================================
    # SCENARIO
    # =========================================================================

    def seed_targets(self, scenario: Optional[Mapping[str, Any]] = None) -> List[Target]:
        """
        Replace the engine's targets with a generated scenario.

        Generation consumes the engine's random stream.

        Args:
            scenario: Scenario definition (default scenario if None)

        Returns:
            The new target list
        """
        # Import here to avoid circular dependencies
        from sonarsim.io.scenario_loader import build_scenario_targets, get_default_scenario

        if scenario is None:
            scenario = get_default_scenario()

        self.engine.clear_targets()
        for config in build_scenario_targets(scenario, self.engine.random):
            self.engine.add_target(Target.from_config(config))

        logger.info("Seeded %d targets from scenario '%s'", len(self.targets), scenario["id"])
        return self.targets

    def reset(self) -> None:
        """Clear scan, echo and selection state."""
        self.selected_target_id = None
        self.elapsed_time = 0.0
        self.is_scanning = False
        self.scan_radius = 0.0
        self.pulse_id = 0
        self.ping_intensity = 0.0
        self.last_ping_time = -np.inf
        self.pending_echoes = []
        for target in self.targets:
            target.last_pulse_id = -1
            target.blocked_pulse_id = -1

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot of world state for logging."""
        return {
            "elapsed_time": self.elapsed_time,
            "own_ship": self.own_ship.to_dict(),
            "selected_target_id": self.selected_target_id,
            "is_scanning": self.is_scanning,
            "scan_radius": self.scan_radius,
            "pulse_id": self.pulse_id,
            "targets": [t.to_dict() for t in self.targets],
        }
