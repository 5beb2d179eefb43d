"""
SonarSim Simulation Validation Test Suite

Tests for target kinematics, the fixed-step engine and the random stream.

Test ID | Description                    | Reference               | Tolerance
--------|--------------------------------|-------------------------|------------
1       | Derived bearing                | (deg(atan2) + 90) % 360 | ±1e-9°
2       | Turn-rate cap                  | |Δcourse| ≤ turnRate*dt | ±1e-9 rad
3       | Fixed-step accumulator         | x = v * n * dt          | ±1e-9
4       | Acoustic signature             | Monotonic in rpm, speed | Strict
5       | Ping reactions                 | SUB evade, TORPEDO home | Exact
6       | Seeded random stream           | Mulberry32              | Exact replay
7       | Own-ship manoeuvre             | Compass heading frame   | ±1e-6

References:
    - Fossen, T.I. (2011). "Handbook of Marine Craft Hydrodynamics"
    - Ross, D. (1976). "Mechanics of Underwater Noise"
"""

import os
import sys

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sonarsim.simulation.engine import SimulationEngine, validate_fixed_step_motion
from sonarsim.simulation.objects import (
    MAX_BLADE_COUNT,
    MAX_RPM,
    BehaviorState,
    OwnShip,
    Target,
    TargetType,
    normalize_course,
)
from sonarsim.simulation.rng import Mulberry32
from sonarsim.simulation.signatures import (
    CLASS_PROFILES,
    blade_passage_frequency,
    get_class_profile,
    get_signature,
)


def _never_called():
    raise AssertionError("random stream consumed unexpectedly")


# =============================================================================
# TEST 1: Derived Geometry
# =============================================================================


class TestTargetGeometry:
    """Distance, angle and bearing derive from (x, z) only."""

    @pytest.mark.parametrize(
        "x,z,expected",
        [(1.0, 0.0, 90.0), (0.0, 1.0, 180.0), (-1.0, 0.0, 270.0), (0.0, -1.0, 0.0)],
    )
    def test_bearing_axes(self, x, z, expected):
        target = Target("t", x=x, z=z)
        assert target.bearing == pytest.approx(expected, abs=1e-9)

    def test_distance_and_angle(self):
        target = Target("t", x=3.0, z=4.0)
        assert target.distance == pytest.approx(5.0)
        assert target.angle == pytest.approx(np.arctan2(4.0, 3.0))

    def test_geometry_follows_position(self):
        target = Target("t", x=1.0, z=0.0)
        target.x, target.z = 0.0, -2.0
        assert target.distance == pytest.approx(2.0)
        assert target.bearing == pytest.approx(0.0, abs=1e-9)

    def test_radial_velocity_outbound(self):
        target = Target("t", x=10.0, z=0.0, course=0.0, speed=0.5)
        assert target.radial_velocity == pytest.approx(0.5)


# =============================================================================
# TEST 2: Heading Control
# =============================================================================


class TestHeadingControl:
    """Per-step heading change is capped at turn_rate * dt."""

    def test_turn_rate_cap(self):
        target = Target(
            "t", course=0.0, target_course=np.pi, turn_rate=1.0, speed=0.0, is_patrolling=False
        )
        target.update(0.5, _never_called)
        assert target.course == pytest.approx(0.5, abs=1e-9)

    def test_snap_within_one_step(self):
        target = Target(
            "t", course=0.0, target_course=0.05, turn_rate=1.0, speed=0.0, is_patrolling=False
        )
        target.update(0.1, _never_called)
        assert target.course == pytest.approx(0.05)

    def test_shortest_turn_through_zero(self):
        target = Target(
            "t", course=0.1, target_course=2 * np.pi - 0.3, turn_rate=0.1, is_patrolling=False
        )
        target.update(1.0, _never_called)
        assert target.course == pytest.approx(0.0, abs=1e-9)

    def test_position_integration(self):
        target = Target("t", course=np.pi / 2, speed=2.0, is_patrolling=False)
        target.update(0.5, _never_called)
        assert target.x == pytest.approx(0.0, abs=1e-9)
        assert target.z == pytest.approx(1.0)

    @pytest.mark.parametrize("dt", [float("nan"), float("inf"), 0.0, -1.0])
    def test_invalid_dt_is_noop(self, dt):
        target = Target("t", x=1.0, z=2.0, speed=1.0, is_patrolling=False)
        target.update(dt, _never_called)
        assert (target.x, target.z, target.course) == (1.0, 2.0, 0.0)

    @pytest.mark.parametrize("course", [float("inf"), float("-inf"), float("nan"), 1e20, -1e20])
    def test_extreme_target_course_terminates(self, course):
        target = Target("t", target_course=course, turn_rate=1.0, speed=1.0, is_patrolling=False)
        assert 0.0 <= target.target_course < 2 * np.pi

        target.update(0.1, _never_called)
        assert np.isfinite(target.course)
        assert np.isfinite(target.x) and np.isfinite(target.z)

    def test_target_course_set_after_construction(self):
        target = Target("t", course=0.0, turn_rate=1.0, speed=0.0, is_patrolling=False)
        target.target_course = 1e20
        target.update(0.1, _never_called)
        assert np.isfinite(target.course)

        target.target_course = float("inf")
        target.update(0.1, _never_called)
        assert np.isfinite(target.course)

    def test_shortest_turn_half_circle_is_positive(self):
        target = Target(
            "t", course=0.0, target_course=np.pi, turn_rate=0.1, speed=0.0, is_patrolling=False
        )
        target.update(1.0, _never_called)
        assert target.course == pytest.approx(0.1)

    def test_patrol_keeps_target_course_wrapped(self):
        target = Target("t", seed=0.0, speed=0.0, is_patrolling=True)
        for _ in range(5000):
            target.update(0.1, lambda: 0.99)
        assert 0.0 <= target.target_course < 2 * np.pi

    def test_normalize_course(self):
        assert normalize_course(-np.pi / 2) == pytest.approx(1.5 * np.pi)
        assert normalize_course(float("nan")) == 0.0


# =============================================================================
# TEST 3: Patrol AI
# =============================================================================


class TestPatrol:
    def test_boundary_correction_points_home(self):
        target = Target("t", x=0.0, z=0.0, patrol_radius=5.0, is_patrolling=True)
        target.x, target.z = 10.0, 0.0
        target.update(0.1, _never_called)
        assert target.target_course == pytest.approx(np.pi)

    def test_scheduled_turn_consumes_rng(self):
        target = Target("t", seed=0.0, is_patrolling=True)
        draws = []

        def rng():
            draws.append(1)
            return 0.5

        for _ in range(101):
            target.update(0.1, rng)

        assert len(draws) == 2
        assert target.next_turn_interval == pytest.approx(40.0)

    def test_static_targets_do_not_patrol(self):
        target = Target("t", target_type=TargetType.STATIC, x=3.0)
        for _ in range(500):
            target.update(0.1, _never_called)
        assert target.x == 3.0


# =============================================================================
# TEST 4: Acoustic Signature
# =============================================================================


class TestAcousticSignature:
    """Source level grows with rpm and speed."""

    def test_reference_pair(self):
        quiet = Target("a", target_type=TargetType.SHIP, rpm=60, speed=0.2)
        loud = Target("b", target_type=TargetType.SHIP, rpm=180, speed=0.8)
        assert quiet.get_acoustic_signature() < loud.get_acoustic_signature()

    def test_monotonic_in_rpm(self):
        levels = [
            Target("t", target_type=TargetType.SUBMARINE, rpm=r, speed=0.3).get_acoustic_signature()
            for r in (0, 30, 60, 120, 240)
        ]
        assert all(a < b for a, b in zip(levels, levels[1:]))

    def test_monotonic_in_speed(self):
        levels = [
            Target("t", target_type=TargetType.SHIP, rpm=120, speed=v).get_acoustic_signature()
            for v in (0.0, 0.2, 0.5, 1.0, 2.0)
        ]
        assert all(a < b for a, b in zip(levels, levels[1:]))

    def test_acoustic_clamps(self):
        target = Target("t", rpm=1e6, blade_count=40.6, shaft_rate=-5)
        assert target.rpm == MAX_RPM
        assert target.blade_count == MAX_BLADE_COUNT
        assert target.shaft_rate == 0.0

    def test_shaft_rate_derived(self):
        assert Target("t", rpm=90).shaft_rate == pytest.approx(1.5)

    def test_blade_passage_frequency(self):
        assert blade_passage_frequency(120, 4) == pytest.approx(8.0)
        assert Target("t", rpm=120, blade_count=4).blade_passage_frequency == pytest.approx(8.0)


# =============================================================================
# TEST 5: Ping Reactions
# =============================================================================


class TestPingReaction:
    def test_submarine_evades(self):
        sub = Target("s", target_type=TargetType.SUBMARINE, x=10.0, z=0.0, speed=0.2)
        sub.react_to_ping((0.0, 0.0))
        assert sub.behavior_state == BehaviorState.EVADE

        sub.update(1.0, _never_called)
        assert sub.target_course == pytest.approx(0.0)
        assert sub.speed == pytest.approx(0.3)
        assert sub.x > 10.0

    def test_evade_expires(self):
        sub = Target("s", target_type=TargetType.SUBMARINE, x=10.0, speed=0.2, is_patrolling=False)
        sub.react_to_ping()
        for _ in range(31):
            sub.update(1.0, _never_called)
        assert sub.behavior_state == BehaviorState.NORMAL
        assert sub.speed == pytest.approx(0.2)

    def test_torpedo_intercepts(self):
        torpedo = Target("w", target_type=TargetType.TORPEDO, x=0.0, z=20.0)
        torpedo.react_to_ping((0.0, 0.0))
        assert torpedo.behavior_state == BehaviorState.INTERCEPT
        torpedo.update(0.1, _never_called)
        assert torpedo.target_course == pytest.approx(1.5 * np.pi)

    @pytest.mark.parametrize("kind", [TargetType.SHIP, TargetType.BIOLOGICAL, TargetType.STATIC])
    def test_others_ignore(self, kind):
        target = Target("t", target_type=kind)
        target.react_to_ping()
        assert target.behavior_state == BehaviorState.NORMAL


# =============================================================================
# TEST 6: Engine & Random Stream
# =============================================================================


class TestSimulationEngine:
    def test_fixed_tick_accumulation(self):
        engine = SimulationEngine(seed=12345)
        target = Target("t", course=0.0, speed=1.0, is_patrolling=False)
        engine.add_target(target)
        engine.start(tick_ms=100)

        assert engine.update(1000) == 0
        assert engine.update(1250) == 2
        assert target.x == pytest.approx(1.0 * 0.1 * 2, abs=1e-9)
        assert engine.accumulator == pytest.approx(0.05, abs=1e-9)

    def test_validation_passes(self):
        result = validate_fixed_step_motion()
        assert result["validation"]["is_valid"]
        assert result["computed_values"]["ticks"] == 2

    def test_invalid_frame_time_discarded(self):
        engine = SimulationEngine()
        engine.start()
        engine.update(1000)
        assert engine.update(float("nan")) == 0
        assert engine.update(500) == 0
        assert engine.tick_count == 0

    def test_stop_rearms_baseline(self):
        engine = SimulationEngine()
        engine.start()
        engine.update(0)
        engine.stop()
        assert engine.update(5000) == 0
        assert engine.update(5100) == 1

    def test_start_rejects_bad_tick(self):
        with pytest.raises(ValueError):
            SimulationEngine().start(tick_ms=0)

    def test_on_tick_hook(self):
        engine = SimulationEngine()
        calls = []
        engine.on_tick = lambda targets, dt: calls.append(dt)
        engine.start()
        engine.update(0)
        engine.update(300)
        assert calls == pytest.approx([0.1, 0.1, 0.1])

    def test_zero_targets_is_noop(self):
        engine = SimulationEngine()
        engine.tick(0.1)
        assert engine.targets == []

    def test_seeded_replay(self):
        def run():
            engine = SimulationEngine(seed=777)
            for i in range(4):
                engine.add_target(
                    Target(f"t{i}", target_type=TargetType.BIOLOGICAL, x=i * 5.0, seed=0.0)
                )
            engine.start()
            for ts in range(0, 60001, 250):
                engine.update(ts)
            return [(t.x, t.z, t.course) for t in engine.targets]

        assert run() == run()

    def test_reset_reseeds(self):
        engine = SimulationEngine(seed=9)
        first = [engine.random() for _ in range(3)]
        engine.reset()
        assert [engine.random() for _ in range(3)] == first


class TestMulberry32:
    def test_same_seed_same_sequence(self):
        a, b = Mulberry32(12345), Mulberry32(12345)
        assert [a() for _ in range(50)] == [b() for _ in range(50)]

    def test_reference_sequence(self):
        """Draws must match the 32-bit reference implementation bit for bit."""
        rng = Mulberry32(12345)
        assert [rng() for _ in range(3)] == [
            0.9797282677609473,
            0.3067522644996643,
            0.484205421525985,
        ]

    def test_different_seeds_diverge(self):
        assert Mulberry32(1).random() != Mulberry32(2).random()

    def test_unit_interval(self):
        rng = Mulberry32(42)
        draws = np.array([rng.random() for _ in range(5000)])
        assert draws.min() >= 0.0
        assert draws.max() < 1.0
        assert draws.mean() == pytest.approx(0.5, abs=0.03)


# =============================================================================
# TEST 7: Own Ship
# =============================================================================


class TestOwnShip:
    def test_ahead_at_heading_zero_moves_north(self):
        ship = OwnShip()
        ship.set_throttle(1.0)
        for _ in range(50):
            ship.update(0.1)
        assert ship.z < 0.0
        assert ship.x == pytest.approx(0.0, abs=1e-6)

    def test_ahead_at_heading_ninety_moves_east(self):
        ship = OwnShip(course=np.pi / 2)
        ship.set_throttle(1.0)
        for _ in range(50):
            ship.update(0.1)
        assert ship.x > 0.0
        assert ship.z == pytest.approx(0.0, abs=1e-6)

    def test_rudder_clamped_and_turns(self):
        ship = OwnShip()
        ship.set_rudder(90)
        assert ship.rudder_deg == OwnShip.MAX_RUDDER_DEG
        for _ in range(20):
            ship.update(0.1)
        assert 0.0 < ship.heading_deg < 90.0

    def test_non_finite_commands_ignored(self):
        ship = OwnShip()
        ship.set_throttle(0.5)
        ship.set_throttle(float("nan"))
        ship.set_rudder(float("inf"))
        assert ship.throttle == 0.5
        assert ship.rudder_deg == 0.0


# =============================================================================
# TEST 8: Class Signatures
# =============================================================================


class TestSignatures:
    def test_class_implies_type(self):
        assert CLASS_PROFILES["kilo-class"].target_type == TargetType.SUBMARINE
        assert CLASS_PROFILES["oil-tanker"].target_type == TargetType.SHIP

    def test_unknown_class(self):
        assert get_class_profile("dreadnought") is None
        assert get_signature("dreadnought").class_id == "cargo-vessel"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
