"""
Simulation Engine

Fixed-timestep scheduler driving every target's motion model.

Features:
    - Wall-clock accumulator emitting discrete fixed-size ticks
    - Leftover time carried to the next frame
    - One shared seeded random stream for patrol AI and scenario generation

Reference: Fiedler, G. (2004). "Fix Your Timestep!"
"""

import logging
from typing import Callable, List, Optional

import numpy as np

from .objects import Target
from .rng import Mulberry32

logger = logging.getLogger(__name__)

TickHook = Callable[[List[Target], float], None]


class SimulationEngine:
    """
    Deterministic fixed-step engine.

    Given the same seed and the same timestamp sequence, the target
    trajectories are identical.

    Example:
        >>> engine = SimulationEngine(seed=12345)
        >>> engine.start(tick_ms=100)
        >>> engine.update(1000)   # baseline only
        >>> engine.update(1250)   # two 0.1 s ticks, 0.05 s carried over
    """

    def __init__(self, seed: int = 12345):
        """
        Initialize engine.

        Args:
            seed: Seed for the shared random stream
        """
        self.seed = seed
        self.rng = Mulberry32(seed)
        self.targets: List[Target] = []
        self.on_tick: Optional[TickHook] = None

        self.fixed_dt = 0.1
        self.accumulator = 0.0
        self.last_update_ms: Optional[float] = None
        self.tick_count = 0
        self.time = 0.0

    def random(self) -> float:
        """Next draw from the shared random stream."""
        return self.rng.random()

    def add_target(self, target: Target) -> None:
        """Add a target to the simulation."""
        self.targets.append(target)

    def clear_targets(self) -> None:
        self.targets = []

    def start(self, tick_ms: float = 100.0) -> None:
        """
        Arm the scheduler.

        Args:
            tick_ms: Fixed step size [ms]
        """
        if not np.isfinite(tick_ms) or tick_ms <= 0:
            raise ValueError(f"tick_ms must be positive, got {tick_ms}")
        self.fixed_dt = tick_ms / 1000.0
        self.accumulator = 0.0
        self.last_update_ms = None

    def stop(self) -> None:
        """Drop the baseline timestamp; the next update only re-arms it."""
        self.last_update_ms = None

    def update(self, timestamp_ms: float) -> int:
        """
        Advance by the wall-clock time elapsed since the last call.

        The first call after start/stop only records the baseline.
        Non-finite or backwards frame times are discarded.

        Args:
            timestamp_ms: Current wall-clock time [ms]

        Returns:
            Number of fixed ticks executed
        """
        if self.last_update_ms is None:
            self.last_update_ms = timestamp_ms
            return 0

        frame_time = (timestamp_ms - self.last_update_ms) / 1000.0
        if not np.isfinite(frame_time) or frame_time < 0:
            logger.warning("Discarding invalid frame time: %s", frame_time)
            if np.isfinite(timestamp_ms):
                self.last_update_ms = timestamp_ms
            return 0

        self.last_update_ms = timestamp_ms
        self.accumulator += frame_time

        ticks = 0
        # Absorb float drift: 0.3 s at 0.1 s steps is 3 ticks
        while self.accumulator >= self.fixed_dt - 1e-9:
            self.tick(self.fixed_dt)
            self.accumulator -= self.fixed_dt
            ticks += 1

        if self.accumulator < 0:
            self.accumulator = 0.0
        return ticks

    def tick(self, dt: float) -> None:
        """
        Advance every target by one step.

        Args:
            dt: Time step [s]
        """
        if not np.isfinite(dt) or dt <= 0:
            return

        rng = self.rng.random
        for target in self.targets:
            target.update(dt, rng)

        self.tick_count += 1
        self.time += dt

        if self.on_tick is not None:
            self.on_tick(self.targets, dt)

    def reset(self) -> None:
        """Reseed the random stream and drop all targets."""
        self.rng = Mulberry32(self.seed)
        self.targets = []
        self.accumulator = 0.0
        self.last_update_ms = None
        self.tick_count = 0
        self.time = 0.0


# =============================================================================
# VALIDATION
# =============================================================================


def validate_fixed_step_motion(
    speed: float = 1.0, timestamps_ms: Optional[List[float]] = None, tick_ms: float = 100.0
) -> dict:
    """
    Validate fixed-step accumulation against straight-line motion.

    A non-patrolling target moving along +X should advance by
    speed * dt * ticks, with ticks = floor(elapsed / dt).

    Returns:
        Validation result
    """
    if timestamps_ms is None:
        timestamps_ms = [1000.0, 1250.0]

    engine = SimulationEngine(seed=12345)
    target = Target("validation", x=0.0, z=0.0, course=0.0, speed=speed, is_patrolling=False)
    engine.add_target(target)
    engine.start(tick_ms=tick_ms)

    ticks = 0
    for ts in timestamps_ms:
        ticks += engine.update(ts)

    dt = tick_ms / 1000.0
    elapsed_s = (timestamps_ms[-1] - timestamps_ms[0]) / 1000.0
    expected_ticks = int(np.floor(elapsed_s / dt + 1e-9))
    expected_x = speed * dt * expected_ticks
    error = abs(target.x - expected_x)

    return {
        "parameters": {"speed": speed, "tick_ms": tick_ms, "timestamps_ms": list(timestamps_ms)},
        "computed_values": {
            "ticks": ticks,
            "expected_ticks": expected_ticks,
            "actual_x": target.x,
            "expected_x": expected_x,
            "error": error,
        },
        "validation": {
            "is_valid": ticks == expected_ticks and error <= 1e-9,
            "reference": "Fixed-timestep accumulator, x = x0 + v*n*dt",
        },
    }
