"""
Headless Simulation Runner

Runs the sonar simulation without a display for batch processing and
regression checks.

Features:
    - No display dependencies
    - Fixed-step execution driven through the engine scheduler
    - Periodic active pings
    - Contact list and campaign objectives updated every tick
    - Per-target summary and event counts

Usage:
    config = HeadlessConfig(seed=12345, duration_s=60.0)
    runner = HeadlessRunner(config)
    result = runner.run()
"""

import gc
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sonarsim.physics.seabed import create_flat_seabed, create_ridge_seabed
from sonarsim.simulation.engine import SimulationEngine
from sonarsim.simulation.events import SonarEvent
from sonarsim.simulation.objects import Target
from sonarsim.simulation.world import SonarWorld
from sonarsim.tracking.campaign import CampaignManager, MissionContext
from sonarsim.tracking.contacts import ContactManager

logger = logging.getLogger(__name__)

TERRAIN_PRESETS = ("none", "flat", "ridge")


@dataclass
class HeadlessConfig:
    """
    Configuration for a headless run.

    Attributes:
        seed: Random stream seed
        duration_s: Simulated duration [s]
        dt_s: Frame spacing fed to the scheduler [s]
        tick_ms: Engine fixed step [ms]
        ping_interval_s: Active ping period [s], 0 disables pinging
        selected_target_id: Target under operator focus
        scenario_path: YAML scenario file (default scenario if None)
        terrain: Seabed preset, one of none/flat/ridge
    """

    seed: int = 12345
    duration_s: float = 60.0
    dt_s: float = 0.1
    tick_ms: float = 100.0
    ping_interval_s: float = 0.0
    selected_target_id: Optional[str] = None
    scenario_path: Optional[str] = None
    terrain: str = "none"

    def __post_init__(self):
        if self.duration_s < 0:
            raise ValueError(f"duration_s must be non-negative, got {self.duration_s}")
        if self.dt_s <= 0:
            raise ValueError(f"dt_s must be positive, got {self.dt_s}")
        if self.ping_interval_s < 0:
            raise ValueError(f"ping_interval_s must be non-negative, got {self.ping_interval_s}")
        if self.terrain not in TERRAIN_PRESETS:
            raise ValueError(f"terrain must be one of {TERRAIN_PRESETS}, got {self.terrain!r}")


@dataclass
class TargetSummary:
    """Final state of one target."""

    target_id: str
    target_type: str
    state: str
    snr: float
    classification: str
    progress: float
    identified_class: Optional[str]
    bearing: float
    range: float

    @classmethod
    def from_target(cls, target: Target, world: SonarWorld) -> "TargetSummary":
        return cls(
            target_id=target.id,
            target_type=target.type.value,
            state=target.state.value,
            snr=float(target.snr),
            classification=target.classification.state.value,
            progress=float(target.classification.progress),
            identified_class=target.classification.identified_class,
            bearing=float(world.bearing_to(target)),
            range=world.range_to(target),
        )


@dataclass
class HeadlessResult:
    """
    Results from a headless run.

    Attributes:
        config: Original configuration
        scenario_id: Scenario that was seeded
        tick_count: Fixed ticks executed
        simulated_time_s: Simulated time [s]
        pings: Active pings started
        targets: Final per-target summaries
        event_counts: Emitted events by type name
        contacts: Number of operator contacts
        completed_objectives: Campaign objectives met during the run
        runtime_s: Wall-clock execution time
    """

    config: HeadlessConfig
    scenario_id: str = ""
    tick_count: int = 0
    simulated_time_s: float = 0.0
    pings: int = 0
    targets: List[TargetSummary] = field(default_factory=list)
    event_counts: Dict[str, int] = field(default_factory=dict)
    contacts: int = 0
    completed_objectives: List[str] = field(default_factory=list)
    runtime_s: float = 0.0

    @property
    def tracked_count(self) -> int:
        return sum(1 for t in self.targets if t.state == "TRACKED")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON export."""
        return {
            "seed": self.config.seed,
            "scenario_id": self.scenario_id,
            "tick_count": self.tick_count,
            "simulated_time_s": self.simulated_time_s,
            "pings": self.pings,
            "tracked": self.tracked_count,
            "contacts": self.contacts,
            "event_counts": dict(self.event_counts),
            "completed_objectives": list(self.completed_objectives),
            "runtime_s": self.runtime_s,
            "targets": [vars(t).copy() for t in self.targets],
        }


class HeadlessRunner:
    """
    Headless simulation runner.

    Feeds evenly spaced timestamps to the engine scheduler; each fixed
    tick moves the targets and then runs the world's detection pass.
    """

    def __init__(self, config: HeadlessConfig):
        """
        Initialize headless runner.

        Args:
            config: Run configuration
        """
        self.config = config
        self.world = self._build_world()
        self.contacts = ContactManager()
        self.campaign = CampaignManager()

        self.world.selected_target_id = config.selected_target_id
        self.contacts.set_selected_target(config.selected_target_id)

        self._event_counts: Counter = Counter()
        self._completed_objectives: List[str] = []
        self._pings = 0

    def _build_terrain(self):
        if self.config.terrain == "flat":
            return create_flat_seabed()
        if self.config.terrain == "ridge":
            return create_ridge_seabed()
        return None

    def _build_world(self) -> SonarWorld:
        terrain = self._build_terrain()

        if self.config.scenario_path:
            # Import here to avoid circular dependencies
            from sonarsim.io.scenario_loader import ScenarioLoader

            loader = ScenarioLoader(self.config.scenario_path)
            self.scenario_id = loader.data.get("id", "")
            return loader.create_world(seed=self.config.seed, terrain=terrain)

        engine = SimulationEngine(seed=self.config.seed)
        world = SonarWorld(engine, terrain=terrain)
        world.seed_targets()
        self.scenario_id = "default"
        return world

    def _on_event(self, event: SonarEvent) -> None:
        self._event_counts[type(event).__name__] += 1

    def _on_tick(self, targets: List[Target], dt: float) -> None:
        world = self.world
        world.update(dt)
        world.flush_arrived_echoes()

        own = world.own_ship.position
        self.contacts.update(targets, world.elapsed_time, origin=own)

        context = MissionContext(
            targets=targets,
            contacts=self.contacts.get_contacts(),
            selected_acoustic_context=world.acoustic_context(world.get_selected_target()),
        )
        evaluation = self.campaign.evaluate(context)
        self._completed_objectives.extend(evaluation.newly_completed_objectives)

    def run(self) -> HeadlessResult:
        """
        Execute the run.

        Returns:
            HeadlessResult with final target states and event counts
        """
        start_time = time.perf_counter()
        cfg = self.config
        engine = self.world.engine

        self.world.subscribe(self._on_event)
        engine.on_tick = self._on_tick
        engine.start(tick_ms=cfg.tick_ms)

        n_frames = int(round(cfg.duration_s / cfg.dt_s))
        next_ping = 0.0 if cfg.ping_interval_s > 0 else None

        engine.update(0.0)
        for frame in range(1, n_frames + 1):
            if next_ping is not None and self.world.elapsed_time >= next_ping:
                if self.world.trigger_ping():
                    self._pings += 1
                next_ping += cfg.ping_interval_s
            engine.update(frame * cfg.dt_s * 1000.0)

        engine.stop()
        engine.on_tick = None
        self.world.unsubscribe(self._on_event)

        runtime = time.perf_counter() - start_time
        result = self._build_result(runtime)
        logger.info(
            "Headless run finished: %d ticks, %d tracked, %.2f s wall",
            result.tick_count,
            result.tracked_count,
            runtime,
        )

        self._cleanup()
        return result

    def _build_result(self, runtime: float) -> HeadlessResult:
        """Build result from the final world state."""
        engine = self.world.engine
        return HeadlessResult(
            config=self.config,
            scenario_id=self.scenario_id,
            tick_count=engine.tick_count,
            simulated_time_s=engine.time,
            pings=self._pings,
            targets=[TargetSummary.from_target(t, self.world) for t in self.world.targets],
            event_counts=dict(self._event_counts),
            contacts=len(self.contacts.contacts),
            completed_objectives=list(self._completed_objectives),
            runtime_s=runtime,
        )

    def _cleanup(self) -> None:
        """Release per-run accumulators."""
        self._event_counts = Counter()
        self._completed_objectives = []
        gc.collect()


def run_single_simulation(config: HeadlessConfig) -> HeadlessResult:
    """
    Convenience function for multiprocessing.

    Args:
        config: Run configuration

    Returns:
        Run result
    """
    runner = HeadlessRunner(config)
    return runner.run()
