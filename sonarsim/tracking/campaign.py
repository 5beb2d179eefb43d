"""
Campaign Missions

Mission definitions and objective evaluation for training campaigns.
Progress is held in memory: each call to ``CampaignManager.evaluate``
checks the active mission's open objectives against a snapshot of the
simulation and unlocks the next mission once all objectives are met.

Objective Types:
    TRACK_CONTACTS_MIN:          At least ``min_count`` targets TRACKED
    CONFIRM_CLASSIFICATION:      A confirmed classification, optionally
                                 restricted by target type and class id
    SAVE_MANUAL_SOLUTION:        A contact solution scoring at least
                                 ``min_confidence`` (default 60)
    HAS_ENVIRONMENTAL_ADVANTAGE: Selected contact's propagation bonus at
                                 least ``min_bonus_db``
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from sonarsim.simulation.objects import Target, TargetType, TrackState
from sonarsim.tracking.contacts import Contact

logger = logging.getLogger(__name__)

DEFAULT_MIN_CONFIDENCE = 60


class ObjectiveType(Enum):
    TRACK_CONTACTS_MIN = "TRACK_CONTACTS_MIN"
    CONFIRM_CLASSIFICATION = "CONFIRM_CLASSIFICATION"
    SAVE_MANUAL_SOLUTION = "SAVE_MANUAL_SOLUTION"
    HAS_ENVIRONMENTAL_ADVANTAGE = "HAS_ENVIRONMENTAL_ADVANTAGE"


@dataclass(frozen=True)
class Objective:
    """Single mission objective. Unused thresholds stay None."""

    objective_id: str
    objective_type: ObjectiveType
    description: str = ""
    min_count: Optional[int] = None
    target_type: Optional[TargetType] = None
    class_id: Optional[str] = None
    min_confidence: Optional[int] = None
    min_bonus_db: Optional[float] = None


@dataclass(frozen=True)
class Mission:
    mission_id: str
    name: str
    briefing: str
    objectives: Sequence[Objective]


@dataclass
class MissionContext:
    """
    Simulation snapshot handed to objective checks.

    Attributes:
        targets: Current simulation targets
        contacts: Operator contacts (for solution objectives)
        selected_acoustic_context: ``SonarWorld.acoustic_context`` of the
            selected target, or None
    """

    targets: Sequence[Target] = field(default_factory=list)
    contacts: Sequence[Contact] = field(default_factory=list)
    selected_acoustic_context: Optional[Any] = None


@dataclass
class EvaluationResult:
    mission_completed: bool = False
    newly_completed_objectives: List[str] = field(default_factory=list)


CAMPAIGN_MISSIONS: List[Mission] = [
    Mission(
        mission_id="mission-01",
        name="Silent Identification",
        briefing=(
            "Establish track and confirm a hostile submarine classification "
            "using passive methods."
        ),
        objectives=(
            Objective(
                "track-contact",
                ObjectiveType.TRACK_CONTACTS_MIN,
                "Track at least one contact.",
                min_count=1,
            ),
            Objective(
                "confirm-sub-class",
                ObjectiveType.CONFIRM_CLASSIFICATION,
                "Confirm classification of one submarine contact.",
                target_type=TargetType.SUBMARINE,
            ),
        ),
    ),
    Mission(
        mission_id="mission-02",
        name="Layer Hunter",
        briefing=(
            "Manage multiple tracks, submit a solid fire-control solution, "
            "and exploit environmental acoustics."
        ),
        objectives=(
            Objective(
                "multi-track",
                ObjectiveType.TRACK_CONTACTS_MIN,
                "Maintain at least three tracked contacts.",
                min_count=3,
            ),
            Objective(
                "manual-solution",
                ObjectiveType.SAVE_MANUAL_SOLUTION,
                "Record a manual solution with >= 70% confidence.",
                min_confidence=70,
            ),
            Objective(
                "env-advantage",
                ObjectiveType.HAS_ENVIRONMENTAL_ADVANTAGE,
                "Hold a selected contact with positive environmental acoustic gain.",
                min_bonus_db=1.0,
            ),
        ),
    ),
]


# =============================================================================
# OBJECTIVE CHECKS
# =============================================================================


def check_objective(objective: Objective, context: MissionContext) -> bool:
    """Evaluate one objective against a simulation snapshot."""
    targets = list(context.targets or [])
    contacts = list(context.contacts or [])
    kind = objective.objective_type

    if kind == ObjectiveType.TRACK_CONTACTS_MIN:
        tracked = sum(1 for t in targets if t.state == TrackState.TRACKED)
        return tracked >= (objective.min_count or 1)

    if kind == ObjectiveType.CONFIRM_CLASSIFICATION:
        for target in targets:
            if not target.classification.confirmed:
                continue
            if objective.target_type is not None and target.type != objective.target_type:
                continue
            if objective.class_id is not None and target.class_id != objective.class_id:
                continue
            return True
        return False

    if kind == ObjectiveType.SAVE_MANUAL_SOLUTION:
        min_confidence = objective.min_confidence or DEFAULT_MIN_CONFIDENCE
        return any(c.manual_confidence >= min_confidence for c in contacts)

    if kind == ObjectiveType.HAS_ENVIRONMENTAL_ADVANTAGE:
        acoustic = context.selected_acoustic_context
        bonus_db = acoustic.modifiers.snr_modifier_db if acoustic is not None else 0.0
        return bonus_db >= (objective.min_bonus_db or 0.0)

    return False


# =============================================================================
# CAMPAIGN MANAGER
# =============================================================================


class CampaignManager:
    """
    In-memory campaign progress.

    The first mission starts unlocked and active. Completing a mission
    unlocks the one after it; the active mission only changes through
    ``set_active_mission``.

    Example:
        >>> campaign = CampaignManager()
        >>> result = campaign.evaluate(MissionContext(targets=world.targets))
        >>> result.newly_completed_objectives
        ['track-contact']
    """

    def __init__(self, missions: Optional[Sequence[Mission]] = None) -> None:
        self.missions: List[Mission] = list(CAMPAIGN_MISSIONS if missions is None else missions)
        self._mission_map = {m.mission_id: m for m in self.missions}
        self.reset()

    def reset(self) -> None:
        first = self.missions[0].mission_id if self.missions else None
        self.active_mission_id: Optional[str] = first
        self.unlocked_mission_ids: List[str] = [first] if first else []
        self.completed_mission_ids: List[str] = []
        self.objective_progress: Dict[str, Dict[str, bool]] = {}

    def get_mission(self, mission_id: Optional[str]) -> Optional[Mission]:
        if mission_id is None:
            return None
        return self._mission_map.get(mission_id)

    def get_active_mission(self) -> Optional[Mission]:
        return self.get_mission(self.active_mission_id)

    def get_unlocked_missions(self) -> List[Mission]:
        return [self._mission_map[m] for m in self.unlocked_mission_ids if m in self._mission_map]

    def set_active_mission(self, mission_id: str) -> bool:
        """Switch missions; only unlocked missions can be activated."""
        if mission_id not in self.unlocked_mission_ids:
            return False
        self.active_mission_id = mission_id
        return True

    def is_mission_completed(self, mission_id: str) -> bool:
        return mission_id in self.completed_mission_ids

    def is_objective_complete(self, mission_id: str, objective_id: str) -> bool:
        return self.objective_progress.get(mission_id, {}).get(objective_id, False)

    def evaluate(self, context: Optional[MissionContext] = None) -> EvaluationResult:
        """
        Check the active mission's open objectives.

        Completed objectives stay completed even if the condition lapses.

        Args:
            context: Simulation snapshot (empty if None)

        Returns:
            EvaluationResult for this call
        """
        mission = self.get_active_mission()
        if mission is None:
            return EvaluationResult()

        context = context or MissionContext()
        result = EvaluationResult()
        progress = self.objective_progress.setdefault(mission.mission_id, {})

        for objective in mission.objectives:
            if progress.get(objective.objective_id):
                continue
            if check_objective(objective, context):
                progress[objective.objective_id] = True
                result.newly_completed_objectives.append(objective.objective_id)
                logger.info(
                    "Objective %s complete (%s)", objective.objective_id, mission.mission_id
                )

        all_done = all(progress.get(o.objective_id) for o in mission.objectives)
        if all_done and not self.is_mission_completed(mission.mission_id):
            self.completed_mission_ids.append(mission.mission_id)
            result.mission_completed = True
            logger.info("Mission %s complete", mission.mission_id)

            index = self.missions.index(mission)
            if index + 1 < len(self.missions):
                next_id = self.missions[index + 1].mission_id
                if next_id not in self.unlocked_mission_ids:
                    self.unlocked_mission_ids.append(next_id)

        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "active_mission_id": self.active_mission_id,
            "unlocked_mission_ids": list(self.unlocked_mission_ids),
            "completed_mission_ids": list(self.completed_mission_ids),
            "objective_progress": {k: dict(v) for k, v in self.objective_progress.items()},
        }
