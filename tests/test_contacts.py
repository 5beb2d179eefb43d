"""
SonarSim Contact Manager Test Suite

Tests for the operator contact list.

Test ID | Description                    | Reference                | Tolerance
--------|--------------------------------|--------------------------|------------
1       | Contact creation & labels      | S1, S2, ...              | Exact
2       | Lost / reacquired lifecycle    | 10 s timeout             | Exact
3       | Ambiguity grouping             | ≤ 8° and ≤ 250 m         | Exact
4       | Threat score                   | snr + range + bonuses    | ±1e-9
5       | Relabel rules                  | ≤ 12 chars, unique       | Exact
6       | Manual solution scoring        | Mean of four scores      | Exact int
7       | Filtering & sorting            | Filter/sort modes        | Exact order

References:
    - Nardone, S.C. et al. (1984). "Fundamental properties and performance
      of conventional bearings-only target motion analysis", IEEE TAC
"""

import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sonarsim.simulation.objects import Target, TargetType, TrackState
from sonarsim.tracking.contacts import (
    Contact,
    ContactManager,
    ContactStatus,
    ManualSolution,
    calculate_threat_score,
    solution_confidence,
)


def _tracked(target_id, x, z, snr=20.0, **kwargs):
    target = Target(target_id, x=x, z=z, is_patrolling=False, **kwargs)
    target.state = TrackState.TRACKED
    target.snr = snr
    return target


@pytest.fixture
def manager():
    return ContactManager(lost_timeout=10)


# =============================================================================
# TEST 1: Contact Creation
# =============================================================================


class TestContactCreation:
    def test_only_tracked_targets_create_contacts(self, manager):
        quiet = Target("quiet", x=10.0, z=0.0)
        manager.update([quiet, _tracked("loud", 0.0, 20.0)], 0.0)

        assert list(manager.contacts) == ["loud"]

    def test_labels_are_stable(self, manager):
        a = _tracked("a", 10.0, 0.0)
        b = _tracked("b", -30.0, 0.0)
        manager.update([a], 0.0)
        manager.update([a, b], 1.0)
        manager.update([b, a], 2.0)

        assert manager.contacts["a"].label == "S1"
        assert manager.contacts["b"].label == "S2"

    def test_geometry_refresh(self, manager):
        target = _tracked("a", 10.0, 0.0, snr=12.5)
        manager.update([target], 0.0)
        contact = manager.contacts["a"]

        assert contact.range_m == pytest.approx(500.0)
        assert contact.bearing == pytest.approx(90.0)
        assert contact.snr == 12.5

    def test_geometry_relative_to_origin(self, manager):
        target = _tracked("a", 10.0, 10.0)
        manager.update([target], 0.0, origin=(10.0, 0.0))
        contact = manager.contacts["a"]

        assert contact.range_m == pytest.approx(500.0)
        assert contact.bearing == pytest.approx(180.0)


# =============================================================================
# TEST 2: Lifecycle
# =============================================================================


class TestLifecycle:
    def test_lost_after_timeout(self, manager):
        target = _tracked("a", 10.0, 0.0)
        manager.update([target], 0.0)
        target.state = TrackState.LOST

        manager.update([target], 10.0)
        assert manager.contacts["a"].status == ContactStatus.TRACKED

        manager.update([target], 10.5)
        assert manager.contacts["a"].status == ContactStatus.LOST

    def test_reacquire_counted(self, manager):
        target = _tracked("a", 10.0, 0.0)
        manager.update([target], 0.0)
        target.state = TrackState.LOST
        manager.update([target], 20.0)

        target.state = TrackState.TRACKED
        manager.update([target], 21.0)
        contact = manager.contacts["a"]
        assert contact.status == ContactStatus.TRACKED
        assert contact.reacquire_count == 1
        assert contact.last_seen_at == 21.0

    def test_clear_lost_contacts(self, manager):
        a = _tracked("a", 10.0, 0.0)
        b = _tracked("b", -40.0, 0.0)
        manager.update([a, b], 0.0)
        manager.set_selected_target("a")
        a.state = TrackState.LOST
        manager.update([a, b], 5.0)
        b.state = TrackState.TRACKED
        manager.update([a, b], 11.0)

        assert manager.clear_lost_contacts() == ["a"]
        assert list(manager.contacts) == ["b"]
        assert manager.selected_target_id is None

    def test_reset(self, manager):
        manager.update([_tracked("a", 10.0, 0.0)], 0.0)
        manager.reset()
        manager.update([_tracked("b", 10.0, 0.0)], 0.0)
        assert manager.contacts["b"].label == "S1"


# =============================================================================
# TEST 3: Ambiguity Grouping
# =============================================================================


class TestAmbiguity:
    def test_close_contacts_merged(self, manager):
        a = _tracked("a", 20.0, 0.0)
        b = _tracked("b", 22.0, 0.5)
        far = _tracked("far", -20.0, 0.0)
        manager.update([a, b, far], 0.0)

        assert manager.contacts["a"].status == ContactStatus.AMBIGUOUS
        assert manager.contacts["b"].status == ContactStatus.AMBIGUOUS
        assert manager.contacts["a"].merged_group_id == "M1"
        assert manager.contacts["b"].merged_group_id == "M1"
        assert manager.contacts["far"].status == ContactStatus.TRACKED
        assert manager.contacts["far"].merged_group_id is None

    def test_range_separation_splits(self, manager):
        a = _tracked("a", 20.0, 0.0)
        b = _tracked("b", 30.0, 0.0)
        manager.update([a, b], 0.0)
        assert manager.contacts["a"].status == ContactStatus.TRACKED

    def test_group_dissolves(self, manager):
        a = _tracked("a", 20.0, 0.0)
        b = _tracked("b", 21.0, 0.0)
        manager.update([a, b], 0.0)
        b.x, b.z = -20.0, 0.0
        manager.update([a, b], 1.0)

        assert manager.contacts["a"].status == ContactStatus.TRACKED
        assert manager.contacts["a"].merged_group_id is None


# =============================================================================
# TEST 4: Threat Score
# =============================================================================


class TestThreatScore:
    def test_formula(self):
        contact = Contact("a", "S1", TargetType.SHIP, snr=12.0, range_m=1500.0)
        assert calculate_threat_score(contact) == pytest.approx(12.0 + 50.0 + 10.0)

        contact.status = ContactStatus.AMBIGUOUS
        contact.pinned = True
        assert calculate_threat_score(contact) == pytest.approx(12.0 + 50.0 + 15.0 + 25.0)

    def test_range_term_clamped(self):
        near = Contact("a", "S1", TargetType.SHIP, range_m=0.0, status=ContactStatus.LOST)
        far = Contact("b", "S2", TargetType.SHIP, range_m=9000.0, status=ContactStatus.LOST)
        assert calculate_threat_score(near) == pytest.approx(100.0)
        assert calculate_threat_score(far) == pytest.approx(0.0)

    def test_toggle_pin(self, manager):
        manager.update([_tracked("a", 10.0, 0.0)], 0.0)
        before = manager.contacts["a"].threat_score
        assert manager.toggle_pin("a")
        assert manager.contacts["a"].threat_score == pytest.approx(before + 25.0)
        assert not manager.toggle_pin("missing")


# =============================================================================
# TEST 5: Relabel
# =============================================================================


class TestRelabel:
    def test_relabel_normalizes(self, manager):
        manager.update([_tracked("a", 10.0, 0.0)], 0.0)
        result = manager.relabel("a", "  hostile one ")
        assert result.ok
        assert manager.contacts["a"].alias == "HOSTILE ONE"

    @pytest.mark.parametrize(
        "target_id,alias,reason",
        [
            ("missing", "X", "not-found"),
            ("a", "   ", "empty"),
            ("a", None, "empty"),
            ("a", "THIRTEEN-CHAR", "too-long"),
            ("a", "bravo", "duplicate"),
        ],
    )
    def test_relabel_rejections(self, manager, target_id, alias, reason):
        manager.update([_tracked("a", 10.0, 0.0), _tracked("b", -40.0, 0.0)], 0.0)
        manager.relabel("b", "BRAVO")

        result = manager.relabel(target_id, alias)
        assert not result.ok
        assert result.reason == reason


# =============================================================================
# TEST 6: Manual Solutions
# =============================================================================


class TestManualSolution:
    def test_perfect_solution(self, manager):
        target = _tracked("a", 10.0, 0.0, course=0.0, speed=0.5)
        manager.update([target], 0.0)
        solution = {"bearing": 90.0, "range": 500.0, "course": 90.0, "speed": 10.0}

        assert manager.set_manual_solution("a", solution, target) == 100
        assert manager.contacts["a"].manual_confidence == 100

    def test_half_wrong_solution(self):
        target = _tracked("a", 10.0, 0.0, course=0.0, speed=0.5)
        solution = ManualSolution(bearing=270.0, range=500.0, course=270.0, speed=10.0)
        assert solution_confidence(solution, target) == 50

    def test_no_truth_scores_zero(self, manager):
        manager.update([_tracked("a", 10.0, 0.0)], 0.0)
        solution = ManualSolution(90.0, 500.0, 90.0, 3.0)
        assert manager.set_manual_solution("a", solution) == 0

    def test_invalid_solutions(self, manager):
        manager.update([_tracked("a", 10.0, 0.0)], 0.0)
        assert manager.set_manual_solution("missing", ManualSolution(0, 0, 0, 0)) is None
        assert manager.set_manual_solution("a", {"bearing": "north"}) is None
        bad = {"bearing": float("nan"), "range": 1, "course": 1, "speed": 1}
        assert manager.set_manual_solution("a", bad) is None

    def test_bearing_wraps(self, manager):
        target = _tracked("a", 0.0, -10.0, course=-1.5707963267948966, speed=0.5)
        manager.update([target], 0.0)
        solution = {"bearing": 360.0, "range": 500.0, "course": -360.0, "speed": 10.0}
        assert manager.set_manual_solution("a", solution, target) == 100
        assert manager.contacts["a"].manual_solution.bearing == 0.0


# =============================================================================
# TEST 7: Filtering & Sorting
# =============================================================================


class TestContactList:
    @pytest.fixture
    def populated(self, manager):
        near = _tracked("near", 5.0, 0.0, snr=10.0)
        far = _tracked("far", -50.0, 0.0, snr=30.0)
        lost = _tracked("lost", 0.0, 40.0, snr=5.0)
        manager.update([near, far, lost], 0.0)
        lost.state = TrackState.LOST
        manager.update([near, far, lost], 20.0)
        near.state = far.state = TrackState.TRACKED
        manager.update([near, far, lost], 20.0)
        manager.toggle_pin("far")
        return manager

    def test_filters(self, populated):
        assert [c.target_id for c in populated.get_contacts("LOST")] == ["lost"]
        assert [c.target_id for c in populated.get_contacts("PINNED")] == ["far"]
        assert len(populated.get_contacts("ALL")) == 3
        assert len(populated.get_contacts("TRACKED")) == 2

    def test_sort_by_range(self, populated):
        ids = [c.target_id for c in populated.get_contacts(sort_mode="RANGE")]
        assert ids == ["near", "lost", "far"]

    def test_sort_by_label(self, populated):
        labels = [c.label for c in populated.get_contacts(sort_mode="LABEL")]
        assert labels == ["S1", "S2", "S3"]

    def test_sort_by_threat(self, populated):
        ids = [c.target_id for c in populated.get_contacts()]
        assert ids == ["near", "far", "lost"]

    def test_unknown_mode_rejected(self, populated):
        with pytest.raises(ValueError):
            populated.get_contacts("BOGUS")

    def test_selected_contact(self, populated):
        populated.set_selected_target("near")
        assert populated.get_selected_contact().label == "S1"
        populated.set_selected_target(None)
        assert populated.get_selected_contact() is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
