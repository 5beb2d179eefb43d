"""
Contact Manager

Operator-facing contact list layered on top of the detection core's
track states. Assigns stable labels, merges closely spaced contacts into
ambiguous groups, ranks contacts by threat and scores manual target
motion analysis (TMA) solutions against truth.

Contact Lifecycle:
    TRACKED <-> AMBIGUOUS -> LOST -> TRACKED (reacquired)

Reference:
    - Nardone, S.C. et al. (1984). "Fundamental properties and performance
      of conventional bearings-only target motion analysis", IEEE TAC
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np

from sonarsim.simulation.objects import Target, TargetType, TrackState

logger = logging.getLogger(__name__)

RANGE_SCALE_M = 50.0
"""Metres per world unit on the operator display"""

SPEED_SCALE_KTS = 20.0
"""Knots per world unit/s on the operator display"""

MERGE_BEARING_DEG = 8.0
MERGE_RANGE_M = 250.0
MAX_ALIAS_LENGTH = 12


class ContactStatus(Enum):
    """Operator contact states."""

    TRACKED = "TRACKED"
    AMBIGUOUS = "AMBIGUOUS"  # Merged with a nearby contact
    LOST = "LOST"


class ContactFilter(Enum):
    ALL = "ALL"
    TRACKED = "TRACKED"
    AMBIGUOUS = "AMBIGUOUS"
    LOST = "LOST"
    PINNED = "PINNED"


class ContactSort(Enum):
    THREAT = "THREAT"
    RANGE = "RANGE"
    LABEL = "LABEL"
    CONFIDENCE = "CONFIDENCE"


@dataclass
class ManualSolution:
    """Operator TMA solution (compass degrees, metres, knots)."""

    bearing: float
    range: float
    course: float
    speed: float


@dataclass
class RelabelResult:
    ok: bool
    reason: Optional[str] = None


@dataclass
class Contact:
    """
    Operator contact.

    Attributes:
        target_id: Underlying simulation target
        label: Stable label (S1, S2, ...)
        alias: Operator-assigned name
        status: Contact status
        last_seen_at: Last time the target was TRACKED [s]
        range_m: Display range [m]
        bearing: Compass bearing [deg]
        snr: Last passive SNR [dB]
        merged_group_id: Ambiguity group (M1, M2, ...) or None
        reacquire_count: Number of LOST -> TRACKED recoveries
        manual_solution: Last saved TMA solution
        manual_confidence: Solution score 0-100
        threat_score: Ranking score
    """

    target_id: str
    label: str
    target_type: TargetType
    alias: str = ""
    pinned: bool = False
    status: ContactStatus = ContactStatus.TRACKED
    last_seen_at: float = 0.0
    range_m: float = 0.0
    bearing: float = 0.0
    snr: float = 0.0
    merged_group_id: Optional[str] = None
    reacquire_count: int = 0
    manual_solution: Optional[ManualSolution] = None
    manual_confidence: int = 0
    threat_score: float = 0.0

    @property
    def is_active(self) -> bool:
        return self.status in (ContactStatus.TRACKED, ContactStatus.AMBIGUOUS)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "target_id": self.target_id,
            "label": self.label,
            "alias": self.alias,
            "type": self.target_type.value,
            "pinned": self.pinned,
            "status": self.status.value,
            "range_m": self.range_m,
            "bearing": self.bearing,
            "snr": self.snr,
            "merged_group_id": self.merged_group_id,
            "reacquire_count": self.reacquire_count,
            "manual_confidence": self.manual_confidence,
            "threat_score": self.threat_score,
        }


# =============================================================================
# SCORING
# =============================================================================


def _normalize_degrees(angle: float) -> float:
    return angle % 360.0


def _circular_difference(a: float, b: float) -> float:
    diff = abs(_normalize_degrees(a) - _normalize_degrees(b))
    return min(diff, 360.0 - diff)


def _relative_geometry(target: Target, origin: Tuple[float, float]) -> Tuple[float, float]:
    """(range [world units], compass bearing [deg]) from origin to target."""
    dx = target.x - origin[0]
    dz = target.z - origin[1]
    distance = float(np.hypot(dx, dz))
    bearing = (np.degrees(np.arctan2(dz, dx)) + 90.0) % 360.0
    return distance, float(bearing)


def calculate_threat_score(contact: Contact) -> float:
    """
    Contact ranking score.

    score = snr + clamp((3000 - range_m) / 30, 0, 100)
            + status bonus (AMBIGUOUS 15, TRACKED 10) + pin bonus 25
    """
    snr_score = contact.snr if np.isfinite(contact.snr) else 0.0
    range_score = 0.0
    if np.isfinite(contact.range_m):
        range_score = float(np.clip((3000.0 - contact.range_m) / 30.0, 0.0, 100.0))

    if contact.status == ContactStatus.AMBIGUOUS:
        status_bonus = 15.0
    elif contact.status == ContactStatus.TRACKED:
        status_bonus = 10.0
    else:
        status_bonus = 0.0

    pin_bonus = 25.0 if contact.pinned else 0.0
    return snr_score + range_score + status_bonus + pin_bonus


def solution_confidence(
    solution: ManualSolution,
    target: Optional[Target],
    origin: Tuple[float, float] = (0.0, 0.0),
) -> int:
    """
    Score a TMA solution against the true target state.

    Each of bearing, range, course and speed scores 1 at a perfect match
    falling linearly to 0 at 180°, 3000 m, 180° and 40 kts error.

    Args:
        solution: Operator solution
        target: True target, or None
        origin: Observer position (x, z)

    Returns:
        Confidence 0-100
    """
    if target is None:
        return 0

    distance, actual_bearing = _relative_geometry(target, origin)
    actual_range = distance * RANGE_SCALE_M
    actual_course = _normalize_degrees(np.degrees(target.course) + 90.0)
    actual_speed = abs(target.speed * SPEED_SCALE_KTS)

    bearing_score = 1 - np.clip(_circular_difference(solution.bearing, actual_bearing) / 180, 0, 1)
    range_score = 1 - np.clip(abs(solution.range - actual_range) / 3000, 0, 1)
    course_score = 1 - np.clip(_circular_difference(solution.course, actual_course) / 180, 0, 1)
    speed_score = 1 - np.clip(abs(solution.speed - actual_speed) / 40, 0, 1)

    mean = (bearing_score + range_score + course_score + speed_score) / 4
    return int(round(mean * 100))


# =============================================================================
# CONTACT MANAGER
# =============================================================================


class ContactManager:
    """
    Operator contact list.

    Example:
        >>> manager = ContactManager(lost_timeout=10)
        >>> manager.update(world.targets, world.elapsed_time)
        >>> for contact in manager.get_contacts(sort_mode="RANGE"):
        ...     print(contact.label, contact.range_m)
    """

    def __init__(self, lost_timeout: float = 10.0) -> None:
        """
        Initialize contact manager.

        Args:
            lost_timeout: Seconds without a TRACKED refresh before LOST
        """
        self.lost_timeout = lost_timeout
        self.contacts: Dict[str, Contact] = {}
        self.selected_target_id: Optional[str] = None
        self.filter_mode = ContactFilter.ALL
        self.sort_mode = ContactSort.THREAT
        self._next_label = 1

    def update(
        self,
        targets: Iterable[Target],
        elapsed_time: float,
        origin: Tuple[float, float] = (0.0, 0.0),
    ) -> None:
        """
        Refresh contacts from the current target states.

        Args:
            targets: Simulation targets
            elapsed_time: Simulation time [s]
            origin: Observer position (x, z)
        """
        target_map: Dict[str, Target] = {}
        for target in targets:
            target_map[target.id] = target
            detected = target.state == TrackState.TRACKED
            contact = self.contacts.get(target.id)

            if contact is None:
                if not detected:
                    continue
                contact = self._create_contact(target, elapsed_time)

            self._refresh_contact(contact, target, elapsed_time, detected, origin)

        self._promote_lost_contacts(elapsed_time)
        self._mark_ambiguous_groups(target_map, origin)

    def _create_contact(self, target: Target, elapsed_time: float) -> Contact:
        contact = Contact(
            target_id=target.id,
            label=f"S{self._next_label}",
            target_type=target.type,
            last_seen_at=elapsed_time,
        )
        self._next_label += 1
        self.contacts[target.id] = contact
        logger.info("New contact %s (%s)", contact.label, target.id)
        return contact

    def _refresh_contact(
        self,
        contact: Contact,
        target: Target,
        elapsed_time: float,
        detected: bool,
        origin: Tuple[float, float],
    ) -> None:
        distance, bearing = _relative_geometry(target, origin)
        contact.target_type = target.type
        contact.range_m = distance * RANGE_SCALE_M
        contact.bearing = bearing
        if target.snr is not None:
            contact.snr = target.snr

        if detected:
            if contact.status == ContactStatus.LOST:
                contact.reacquire_count += 1
                logger.info("Contact %s reacquired", contact.label)
            contact.status = ContactStatus.TRACKED
            contact.last_seen_at = elapsed_time

        if contact.manual_solution is not None:
            contact.manual_confidence = solution_confidence(contact.manual_solution, target, origin)

        contact.threat_score = calculate_threat_score(contact)

    def _promote_lost_contacts(self, elapsed_time: float) -> None:
        for contact in self.contacts.values():
            if contact.is_active and elapsed_time - contact.last_seen_at > self.lost_timeout:
                contact.status = ContactStatus.LOST
                contact.merged_group_id = None
                contact.threat_score = calculate_threat_score(contact)
                logger.info("Contact %s lost", contact.label)

    def _mark_ambiguous_groups(
        self, target_map: Mapping[str, Target], origin: Tuple[float, float]
    ) -> None:
        active: List[Tuple[Contact, float, float]] = []
        for contact in self.contacts.values():
            if not contact.is_active or contact.target_id not in target_map:
                continue
            distance, bearing = _relative_geometry(target_map[contact.target_id], origin)
            active.append((contact, distance, bearing))

        for contact, _, _ in active:
            contact.merged_group_id = None
            if contact.status == ContactStatus.AMBIGUOUS:
                contact.status = ContactStatus.TRACKED
                contact.threat_score = calculate_threat_score(contact)

        # Each contact joins at most one group
        group_counter = 1
        for i, (contact_a, distance_a, bearing_a) in enumerate(active):
            if contact_a.merged_group_id is not None:
                continue
            group = [contact_a]
            for contact_b, distance_b, bearing_b in active[i + 1 :]:
                if contact_b.merged_group_id is not None:
                    continue
                bearing_gap = _circular_difference(bearing_a, bearing_b)
                range_gap = abs(distance_a - distance_b) * RANGE_SCALE_M
                if bearing_gap <= MERGE_BEARING_DEG and range_gap <= MERGE_RANGE_M:
                    group.append(contact_b)

            if len(group) > 1:
                group_id = f"M{group_counter}"
                group_counter += 1
                for contact in group:
                    contact.status = ContactStatus.AMBIGUOUS
                    contact.merged_group_id = group_id
                    contact.threat_score = calculate_threat_score(contact)

    # -------------------------------------------------------------------------
    # Operator actions
    # -------------------------------------------------------------------------

    def set_selected_target(self, target_id: Optional[str]) -> None:
        self.selected_target_id = target_id or None

    def get_selected_contact(self) -> Optional[Contact]:
        if not self.selected_target_id:
            return None
        return self.contacts.get(self.selected_target_id)

    def toggle_pin(self, target_id: str) -> bool:
        """Toggle the pin flag; False if the contact is unknown."""
        contact = self.contacts.get(target_id)
        if contact is None:
            return False
        contact.pinned = not contact.pinned
        contact.threat_score = calculate_threat_score(contact)
        return True

    def relabel(self, target_id: str, alias: Optional[str]) -> RelabelResult:
        """
        Assign an operator alias.

        Aliases are trimmed and upper-cased, at most 12 characters and
        unique across contacts.
        """
        contact = self.contacts.get(target_id)
        if contact is None:
            return RelabelResult(False, "not-found")

        normalized = str(alias or "").strip().upper()
        if not normalized:
            return RelabelResult(False, "empty")
        if len(normalized) > MAX_ALIAS_LENGTH:
            return RelabelResult(False, "too-long")

        for other in self.contacts.values():
            if other.target_id != target_id and other.alias == normalized:
                return RelabelResult(False, "duplicate")

        contact.alias = normalized
        return RelabelResult(True)

    def clear_lost_contacts(self) -> List[str]:
        """Remove LOST contacts; returns the removed target ids."""
        removed = [tid for tid, c in self.contacts.items() if c.status == ContactStatus.LOST]
        for target_id in removed:
            del self.contacts[target_id]

        if self.selected_target_id and self.selected_target_id not in self.contacts:
            self.selected_target_id = None
        return removed

    def set_manual_solution(
        self,
        target_id: str,
        solution: Union[ManualSolution, Mapping[str, Any]],
        target: Optional[Target] = None,
        origin: Tuple[float, float] = (0.0, 0.0),
    ) -> Optional[int]:
        """
        Save a TMA solution and score it.

        Args:
            target_id: Contact's target id
            solution: ManualSolution or mapping with bearing/range/course/speed
            target: True target for scoring (confidence 0 if None)
            origin: Observer position (x, z)

        Returns:
            Confidence 0-100, or None if the contact is unknown or the
            solution has non-numeric fields
        """
        contact = self.contacts.get(target_id)
        if contact is None:
            return None

        if isinstance(solution, ManualSolution):
            values = [solution.bearing, solution.range, solution.course, solution.speed]
        else:
            values = [solution.get(k) for k in ("bearing", "range", "course", "speed")]

        try:
            bearing, range_m, course, speed = (float(v) for v in values)
        except (TypeError, ValueError):
            return None
        if not all(np.isfinite(v) for v in (bearing, range_m, course, speed)):
            return None

        normalized = ManualSolution(
            bearing=_normalize_degrees(bearing),
            range=range_m,
            course=_normalize_degrees(course),
            speed=speed,
        )
        contact.manual_solution = normalized
        contact.manual_confidence = solution_confidence(normalized, target, origin)
        return contact.manual_confidence

    def get_contacts(
        self,
        filter_mode: Optional[Union[ContactFilter, str]] = None,
        sort_mode: Optional[Union[ContactSort, str]] = None,
    ) -> List[Contact]:
        """
        Filtered and sorted contact list.

        Args:
            filter_mode: ALL, TRACKED, AMBIGUOUS, LOST or PINNED
            sort_mode: THREAT (default), RANGE, LABEL or CONFIDENCE

        Returns:
            List of contacts
        """
        filter_mode = ContactFilter(filter_mode or self.filter_mode)
        sort_mode = ContactSort(sort_mode or self.sort_mode)

        contacts = list(self.contacts.values())
        if filter_mode == ContactFilter.PINNED:
            contacts = [c for c in contacts if c.pinned]
        elif filter_mode != ContactFilter.ALL:
            wanted = ContactStatus(filter_mode.value)
            contacts = [c for c in contacts if c.status == wanted]

        def label_key(contact: Contact) -> int:
            return int(contact.label[1:])

        if sort_mode == ContactSort.RANGE:
            contacts.sort(key=lambda c: c.range_m)
        elif sort_mode == ContactSort.LABEL:
            contacts.sort(key=label_key)
        elif sort_mode == ContactSort.CONFIDENCE:
            contacts.sort(key=lambda c: -c.manual_confidence)
        else:
            contacts.sort(key=lambda c: (-c.threat_score, label_key(c)))

        return contacts

    def reset(self) -> None:
        self.contacts.clear()
        self._next_label = 1
        self.selected_target_id = None
