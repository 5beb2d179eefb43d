"""
SonarSim Detection & Classification Test Suite

Tests for passive detection, active scanning and classification in
SonarWorld.

Test ID | Description                    | Reference               | Tolerance
--------|--------------------------------|-------------------------|------------
1       | Passive detection near/far     | SNR vs threshold        | Exact state
2       | Track timeout                  | TRACKED -> LOST         | Exact state
3       | Seabed occlusion               | -25 dB when LOS blocked | ±1e-9 dB
3b      | Shadow, duct, multipath terms  | -15 dB, +3 dB, 3 sin(kd)| ±1e-6 dB
4       | Active scan lifecycle          | Radius grows 15/tick    | Exact
5       | Event ordering                 | Passive, active, update | Exact
6       | Classification bands           | 0.2 / 0.6 / 0.95        | Exact state
7       | Selected-contact rate          | 0.06 vs 0.015 per s     | Strict

References:
    - Urick, R.J. (1983). "Principles of Underwater Sound", Chapter 12
"""

import os
import sys

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sonarsim.physics.sonar_equation import calculate_passive_snr
from sonarsim.simulation.engine import SimulationEngine
from sonarsim.simulation.events import (
    PingEchoEvent,
    ScanCompleteEvent,
    ScanUpdateEvent,
    SonarContactEvent,
    TargetUpdateEvent,
)
from sonarsim.simulation.objects import BehaviorState, Target, TargetType, TrackState
from sonarsim.simulation.world import SonarConfig, SonarWorld


def _make_world(*targets, terrain=None, config=None):
    engine = SimulationEngine(seed=12345)
    for target in targets:
        engine.add_target(target)
    return SonarWorld(engine, terrain=terrain, config=config)


def _ship(target_id="ship", x=10.0, z=0.0):
    return Target(target_id, target_type=TargetType.SHIP, x=x, z=z, is_patrolling=False)


def _wall_terrain(x, z):
    """Open seabed at -100 m with a ridge reaching the surface for 20 < x < 30."""
    return 0.0 if 20.0 < x < 30.0 else -100.0


def _flat_terrain(x, z):
    return -100.0


# =============================================================================
# TEST 1: Passive Detection
# =============================================================================


class TestPassiveDetection:
    def test_near_target_tracked(self):
        ship = _ship()
        world = _make_world(ship)
        events = world.update(1.0)

        assert ship.state == TrackState.TRACKED
        assert ship.last_detected_time == pytest.approx(1.0)
        assert SonarContactEvent("ship", True) in events
        assert ship.environment_effects is not None

    def test_far_target_undetected(self):
        ship = _ship(x=1000.0)
        world = _make_world(ship)
        events = world.update(1.0)

        assert ship.state == TrackState.UNDETECTED
        assert ship.snr < world.config.detection_threshold_db
        assert not any(isinstance(e, SonarContactEvent) for e in events)

    def test_tick_ends_with_target_update(self):
        world = _make_world(_ship("a"), _ship("b", x=-10.0))
        events = world.update(0.1)
        assert events[-1] == TargetUpdateEvent(("a", "b"))

    def test_default_depths_without_terrain(self):
        world = _make_world(_ship())
        assert world.own_ship_depth() == 5.0
        assert world.target_depth(world.targets[0]) == 10.0
        assert world.check_line_of_sight(world.targets[0])

    def test_invalid_dt_ignored(self):
        world = _make_world(_ship())
        assert world.update(float("nan")) == []
        assert world.elapsed_time == 0.0


# =============================================================================
# TEST 2: Track Lifecycle
# =============================================================================


class TestTrackLifecycle:
    def test_lost_after_timeout_only(self):
        ship = _ship()
        world = _make_world(ship)
        world.update(1.0)
        ship.x = 1000.0

        world.update(1.0)
        assert ship.state == TrackState.TRACKED

        for _ in range(10):
            world.update(1.0)
        assert ship.state == TrackState.LOST

    def test_lost_target_can_be_reacquired(self):
        ship = _ship()
        world = _make_world(ship)
        world.update(1.0)
        ship.x = 1000.0
        for _ in range(12):
            world.update(1.0)
        assert ship.state == TrackState.LOST

        ship.x = 10.0
        world.update(1.0)
        assert ship.state == TrackState.TRACKED


# =============================================================================
# TEST 3: Seabed Occlusion
# =============================================================================


class TestOcclusion:
    def test_blocked_passive_attenuation(self):
        blocked = _ship(x=40.0)
        clear = _ship(x=40.0)
        _make_world(blocked, terrain=_wall_terrain).process_passive_detection()
        _make_world(clear, terrain=_flat_terrain).process_passive_detection()

        attenuation = SonarConfig().passive_occlusion_attenuation_db
        assert clear.snr - blocked.snr == pytest.approx(attenuation, abs=1e-9)

    def test_depth_from_terrain(self):
        world = _make_world(_ship(), terrain=_flat_terrain)
        assert world.own_ship_depth() == pytest.approx(95.0)
        assert world.target_depth(world.targets[0]) == pytest.approx(98.0)

    def test_terrain_object_accepted(self):
        class Provider:
            def get_terrain_height(self, x, z):
                return -50.0

        world = _make_world(_ship(), terrain=Provider())
        assert world.own_ship_depth() == pytest.approx(45.0)

    def test_non_callable_terrain_rejected(self):
        with pytest.raises(TypeError):
            _make_world(terrain=42)

    def test_blocked_target_not_illuminated(self):
        target = _ship(x=40.0)
        world = _make_world(target, terrain=_wall_terrain)
        world.trigger_ping()
        for _ in range(3):
            world.update(0.1)
        assert world.scan_radius == pytest.approx(45.0)
        assert target.blocked_pulse_id == 1
        assert target.last_pulse_id == -1

        # Leaves the shadow while still inside the front
        target.x, target.z = 0.0, 40.0
        assert world.check_line_of_sight(target)
        for _ in range(9):
            world.update(0.1)

        assert not world.is_scanning
        assert target.last_pulse_id == -1
        assert not world.pending_echoes

    def test_blocked_target_rechecked_on_next_pulse(self):
        target = _ship(x=40.0)
        world = _make_world(target, terrain=_wall_terrain)
        world.trigger_ping()
        for _ in range(3):
            world.update(0.1)
        target.x, target.z = 0.0, 40.0
        for _ in range(9):
            world.update(0.1)

        assert world.trigger_ping()
        for _ in range(3):
            world.update(0.1)
        assert target.last_pulse_id == 2
        assert len(world.pending_echoes) == 1

    def test_reset_clears_pulse_marks(self):
        target = _ship(x=40.0)
        world = _make_world(target, terrain=_wall_terrain)
        world.trigger_ping()
        for _ in range(3):
            world.update(0.1)
        world.reset()
        assert target.blocked_pulse_id == -1
        assert target.last_pulse_id == -1


# =============================================================================
# TEST 3b: Passive SNR Terms
# =============================================================================


def _step_terrain(own_height, elsewhere):
    """Seabed height own_height under the own ship, elsewhere everywhere else."""

    def terrain(x, z):
        return own_height if abs(x) < 1.0 and abs(z) < 1.0 else elsewhere

    return terrain


def _passive_snr(own_height, elsewhere, x=10.0, **config):
    # One LOS sample: no interior points, so the seabed never occludes
    target = _ship(x=x)
    world = _make_world(
        target,
        terrain=_step_terrain(own_height, elsewhere),
        config=SonarConfig(los_sample_count=1, **config),
    )
    world.process_passive_detection()
    return target.snr


class TestPassiveTerms:
    def test_thermocline_shadow(self):
        # Own ship 145 m, target 298 m: layer at 200 m in between
        shadowed = _passive_snr(-150.0, -300.0)
        # Own ship 250 m: same side of the layer as the target
        clear = _passive_snr(-255.0, -300.0)

        assert clear - shadowed == pytest.approx(SonarConfig().shadow_zone_attenuation_db)

    def test_shadow_only_when_straddling(self):
        default = _passive_snr(-255.0, -300.0)
        no_shadow = _passive_snr(-255.0, -300.0, shadow_zone_attenuation_db=0.0)
        assert default == pytest.approx(no_shadow)

    def test_surface_duct_bonus(self):
        # Target 18 m deep; own ship at 15 m (in duct) vs 145 m (below it)
        ducted = _passive_snr(-20.0, -20.0)
        open_water = _passive_snr(-150.0, -20.0)
        assert ducted - open_water == pytest.approx(3.0)

    @pytest.mark.parametrize("x", [10.0, 13.0])
    def test_multipath_term(self, x):
        with_multipath = _passive_snr(-255.0, -300.0, x=x)
        without = _passive_snr(-255.0, -300.0, x=x, multipath_strength_db=0.0)
        assert with_multipath - without == pytest.approx(3.0 * np.sin(0.5 * x))

    def test_snr_matches_sonar_equation(self):
        target = _ship(x=10.0)
        world = _make_world(target)
        world.process_passive_detection()

        env = world.environment
        noise = env.ambient_noise(world.target_depth(target))
        modifiers = env.get_acoustic_modifiers(5.0, 10.0, 100.0)
        expected = (
            calculate_passive_snr(target.get_acoustic_signature(), 100.0, noise)
            + modifiers.snr_modifier_db
            + 3.0 * np.sin(0.5 * 10.0)
        )
        assert target.snr == pytest.approx(expected)


# =============================================================================
# TEST 4: Active Scanning
# =============================================================================


class TestActiveScanning:
    def test_ping_is_not_reentrant(self):
        world = _make_world()
        assert world.trigger_ping()
        assert not world.trigger_ping()
        assert world.pulse_id == 1

    def test_scan_lifecycle(self):
        sub = Target("sub", target_type=TargetType.SUBMARINE, x=40.0, z=0.0)
        world = _make_world(sub)
        world.trigger_ping()

        collected = []
        for _ in range(11):
            collected.extend(world.update(0.1))

        assert not world.is_scanning
        assert world.scan_radius == pytest.approx(165.0)
        assert isinstance(collected[-2], ScanCompleteEvent)
        assert ScanUpdateEvent(165.0, False) in collected

        assert sub.state == TrackState.TRACKED
        assert sub.last_pulse_id == 1
        assert sub.behavior_state == BehaviorState.EVADE
        assert SonarContactEvent("sub", False) in collected

        echoes = [e for e in collected if isinstance(e, PingEchoEvent)]
        assert len(echoes) == 1
        assert echoes[0].distance == pytest.approx(40.0)
        assert echoes[0].volume == pytest.approx(0.6 * (1 - 40.0 / 200.0) * 1.15)

    def test_trigger_event_goes_to_listeners(self):
        world = _make_world()
        received = []
        world.subscribe(received.append)
        world.trigger_ping()
        assert received == [ScanUpdateEvent(0.0, True)]

        world.unsubscribe(received.append)
        world.update(0.1)
        assert len(received) == 1

    def test_pending_echo_arrives(self):
        world = _make_world(_ship(x=40.0))
        world.trigger_ping()
        for _ in range(3):
            world.update(0.1)
        assert len(world.pending_echoes) == 1
        assert world.flush_arrived_echoes() == []

        world.update(1.0)
        arrived = world.flush_arrived_echoes()
        assert len(arrived) == 1
        assert arrived[0].bearing == pytest.approx(90.0)
        assert world.pending_echoes == []

    def test_ping_transient_state(self):
        world = _make_world()
        assert not world.ping_transient_state().recent
        world.trigger_ping()
        state = world.ping_transient_state()
        assert state.active
        assert state.recent
        assert state.since_last_ping == pytest.approx(0.0)


# =============================================================================
# TEST 5: Event Ordering
# =============================================================================


class TestEventOrdering:
    def test_passive_before_active_before_update(self):
        near = _ship("near", x=10.0)
        world = _make_world(near)
        world.trigger_ping()
        events = world.update(0.1)

        passive = events.index(SonarContactEvent("near", True))
        active = events.index(SonarContactEvent("near", False))
        echo = next(i for i, e in enumerate(events) if isinstance(e, PingEchoEvent))

        assert passive < echo < active
        assert isinstance(events[-1], TargetUpdateEvent)


# =============================================================================
# TEST 6: Classification
# =============================================================================


def _tracked(target_id, snr=50.0):
    target = _ship(target_id)
    target.state = TrackState.TRACKED
    target.snr = snr
    return target


class TestClassification:
    def test_reaches_ambiguous(self):
        target = _tracked("t")
        world = _make_world(target)
        for _ in range(200):
            world.process_classification(0.1)

        assert target.classification.progress > 0.2
        assert target.classification.state == TrackState.AMBIGUOUS

    def test_selected_progresses_faster(self):
        selected = _tracked("a")
        other = _tracked("b")
        world = _make_world(selected, other)
        world.selected_target_id = "a"
        for _ in range(50):
            world.process_classification(0.1)

        assert selected.classification.progress > other.classification.progress
        assert world.get_selected_target() is selected

    def test_confirmation(self):
        target = _tracked("t")
        world = _make_world(target)
        target.classification.progress = 0.99
        world.process_classification(1.0)

        assert target.classification.state == TrackState.CONFIRMED
        assert target.classification.confirmed
        assert target.classification.identified_class == "cargo-vessel"
        assert target.classification.progress == 1.0

    def test_classified_band(self):
        target = _tracked("t")
        world = _make_world(target)
        target.classification.progress = 0.59
        world.process_classification(1.0)
        assert target.classification.state == TrackState.CLASSIFIED
        assert target.classification.identified_class == "cargo-vessel"

    def test_decay_to_undetected(self):
        target = _tracked("t", snr=0.0)
        world = _make_world(target)
        target.classification.progress = 0.15
        target.classification.state = TrackState.AMBIGUOUS
        world.process_classification(10.0)

        assert target.classification.progress == pytest.approx(0.05)
        assert target.classification.state == TrackState.UNDETECTED

    def test_lost_resets(self):
        target = _tracked("t")
        world = _make_world(target)
        target.classification.progress = 0.5
        target.state = TrackState.LOST
        world.process_classification(0.1)

        assert target.classification.progress == 0.0
        assert target.classification.state == TrackState.UNDETECTED


# =============================================================================
# TEST 7: World Helpers
# =============================================================================


class TestWorldHelpers:
    def test_acoustic_context(self):
        world = _make_world(_ship())
        assert world.acoustic_context(None) is None
        context = world.acoustic_context(world.targets[0])
        assert context.range_m == pytest.approx(100.0)
        assert context.modifiers.snr_modifier_db > 0

    def test_seed_default_scenario(self):
        world = _make_world()
        targets = world.seed_targets()
        assert len(targets) == 15
        assert targets[0].id == "target-01"

    def test_bearing_relative_to_own_ship(self):
        world = _make_world(_ship(x=10.0, z=10.0))
        world.own_ship.x = 10.0
        assert world.bearing_to(world.targets[0]) == pytest.approx(180.0)
        assert world.range_to(world.targets[0]) == pytest.approx(10.0)

    def test_config_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown sonar config keys"):
            SonarConfig.from_dict({"detection_threshold": 5})

    def test_reset(self):
        world = _make_world(_ship())
        world.trigger_ping()
        world.update(0.1)
        world.reset()
        assert world.elapsed_time == 0.0
        assert not world.is_scanning
        assert world.pending_echoes == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
