"""
Tracking Module

Operator-facing contact management and campaign objectives.

Components:
    - ContactManager: Contact list with labels, ambiguity groups and TMA scoring
    - Contact: Individual operator contact
    - ContactStatus: Contact lifecycle states
    - CampaignManager: Mission objective evaluation

Example:
    >>> from sonarsim.tracking import ContactManager
    >>> manager = ContactManager(lost_timeout=10)
    >>> manager.update(world.targets, world.elapsed_time)
"""

from .campaign import CAMPAIGN_MISSIONS, CampaignManager, EvaluationResult, MissionContext
from .contacts import Contact, ContactManager, ContactStatus, RelabelResult

__all__ = [
    "ContactManager",
    "Contact",
    "ContactStatus",
    "RelabelResult",
    "CampaignManager",
    "MissionContext",
    "EvaluationResult",
    "CAMPAIGN_MISSIONS",
]
