"""
SonarSim I/O Package

Scenario validation, target generation and YAML loading.
"""

from .scenario_loader import (
    ScenarioLoader,
    ValidationError,
    build_scenario_targets,
    get_default_scenario,
    validate_scenario_definition,
)

__all__ = [
    "ScenarioLoader",
    "ValidationError",
    "build_scenario_targets",
    "get_default_scenario",
    "validate_scenario_definition",
]
