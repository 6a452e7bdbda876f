"""Domain models: projects, milestones, settings, risks and reports."""

from .project import Milestone, Phase, Project, ProjectStatus, Subject, WorkSession, derive_project_status
from .settings import (
    BlockerSettings,
    CognitiveLoad,
    DayEnergyPattern,
    DeepWorkSettings,
    EnergyLevel,
    EnergyProfile,
    EnergySettings,
    EnergyWindow,
)
from .risk import (
    Blocker,
    BlockerCategory,
    BlockerSeverity,
    BlockerStatus,
    BlockerUpdate,
    Risk,
    RiskImpact,
    RiskProbability,
    RiskStatus,
)
from .state import AppState

__all__ = [
    'Milestone', 'Phase', 'Project', 'ProjectStatus', 'Subject', 'WorkSession',
    'derive_project_status',
    'BlockerSettings', 'CognitiveLoad', 'DayEnergyPattern', 'DeepWorkSettings',
    'EnergyLevel', 'EnergyProfile', 'EnergySettings', 'EnergyWindow',
    'Blocker', 'BlockerCategory', 'BlockerSeverity', 'BlockerStatus', 'BlockerUpdate',
    'Risk', 'RiskImpact', 'RiskProbability', 'RiskStatus',
    'AppState',
]
