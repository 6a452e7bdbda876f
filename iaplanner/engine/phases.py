"""Milestone phase classification."""

from typing import List, Tuple

from ..models.project import Milestone, Phase

# Checked in order; first phase with a matching keyword wins.
PHASE_KEYWORDS: List[Tuple[Phase, Tuple[str, ...]]] = [
    (Phase.RESEARCH, ('research', 'topic', 'find', 'article')),
    (Phase.OUTLINE, ('outline', 'structure', 'diagram', 'plan')),
    (Phase.DRAFT, ('draft', 'first', 'write')),
    (Phase.REVISION, ('revision', 'refine', 'review', 'edit')),
    (Phase.POLISH, ('polish', 'final', 'submission', 'submit')),
]

DEEP_WORK_PHASES = frozenset({Phase.RESEARCH, Phase.OUTLINE, Phase.DRAFT, Phase.REVISION})


def classify_phase(name: str) -> Phase:
    """Infer a phase from a milestone name, defaulting to draft."""
    lowered = name.lower()
    for phase, keywords in PHASE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return phase
    return Phase.DRAFT


def milestone_phase(milestone: Milestone) -> Phase:
    """Explicit phase if set, otherwise the classified one."""
    if milestone.phase is not None:
        return milestone.phase
    return classify_phase(milestone.name)


def is_deep_work_phase(phase: Phase) -> bool:
    return phase in DEEP_WORK_PHASES
