"""Companion projection: stage, progress and faint state derived from XP."""

from datetime import datetime
from typing import Optional, Sequence

from ..clock import hours_between
from ..entities.companion import Companion, CompanionStage, CompanionState

FAINT_AFTER_HOURS = 24.0

SPECIES_STAGES: dict[str, tuple[CompanionStage, ...]] = {
    "fox": (
        CompanionStage(limit=250, label="The Kit", icon="seed", description="Just starting."),
        CompanionStage(limit=1000, label="The Scout", icon="paw", description="Curious."),
        CompanionStage(limit=2500, label="The Guardian", icon="dog-side", description="Loyal."),
        CompanionStage(limit=5000, label="The Scholar", icon="school", description="Wise."),
    ),
}

DEFAULT_SPECIES = "fox"


def stages_for(species: Optional[str]) -> tuple[CompanionStage, ...]:
    """Stage table of a species; unknown species use the default table."""
    return SPECIES_STAGES.get(species or DEFAULT_SPECIES, SPECIES_STAGES[DEFAULT_SPECIES])


def is_faint(
    last_session_at: Optional[datetime],
    now: datetime,
    faint_after_hours: float = FAINT_AFTER_HOURS,
) -> bool:
    """A companion faints once more than ``faint_after_hours`` pass without reading."""
    if last_session_at is None:
        return False
    return hours_between(last_session_at, now) > faint_after_hours


def project_companion_state(
    xp_total: int,
    last_session_at: Optional[datetime],
    now: datetime,
    stages: Sequence[CompanionStage],
    faint_after_hours: float = FAINT_AFTER_HOURS,
    nickname: Optional[str] = None,
) -> CompanionState:
    """Project the display state of a companion.

    The stage is the first one whose limit is strictly greater than
    ``xp_total``. Past the last limit the companion stays on the last stage
    with full progress. Faintness is reported alongside and never changes
    the stage or the progress.

    Args:
        xp_total: Companion XP.
        last_session_at: When the user last logged a session, if ever.
        now: Current time.
        stages: Stage table ordered by ascending limit.
        faint_after_hours: Hours without a session before the companion faints.
        nickname: Optional display name carried through to the state.

    Returns:
        CompanionState: The projected state.

    Raises:
        ValueError: If ``stages`` is empty.
    """
    if not stages:
        raise ValueError("A companion needs at least one stage")

    xp = max(0, xp_total)
    faint = is_faint(last_session_at, now, faint_after_hours)

    for index, stage in enumerate(stages):
        if stage.limit > xp:
            previous = stages[index - 1].limit if index > 0 else 0
            span = stage.limit - previous
            progress = (xp - previous) / span if span > 0 else 1.0
            return CompanionState(
                stage_label=stage.label,
                stage_index=index,
                progress_percent=min(max(progress, 0.0), 1.0),
                is_faint=faint,
                is_maxed=False,
                current_limit=stage.limit,
                icon=stage.icon,
                description=stage.description,
                nickname=nickname,
                xp=xp,
            )

    last = stages[-1]
    return CompanionState(
        stage_label=last.label,
        stage_index=len(stages) - 1,
        progress_percent=1.0,
        is_faint=faint,
        is_maxed=True,
        current_limit=last.limit,
        icon=last.icon,
        description=last.description,
        nickname=nickname,
        xp=xp,
    )


def project_companion(
    companion: Companion,
    last_session_at: Optional[datetime],
    now: datetime,
    faint_after_hours: float = FAINT_AFTER_HOURS,
) -> CompanionState:
    """Project a stored companion using its species' stage table."""
    return project_companion_state(
        companion.xp,
        last_session_at,
        now,
        stages_for(companion.species),
        faint_after_hours=faint_after_hours,
        nickname=companion.nickname,
    )
