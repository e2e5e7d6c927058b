from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from app.core.config import settings
from app.schemas.journey import CoreJourney, JourneyDay, ModifiedJourneyDay, PhaseModifier

logger = logging.getLogger(__name__)

DATA_FILE = Path(__file__).resolve().parents[1] / "data" / "journey_data.json"

DEFAULT_JOURNEY = "Craving Control"
DEFAULT_PHASE = "Just Starting Out"
DAYS_PER_WEEK = 7

# Onboarding answers -> journey / phase names.
FOCUS_AREA_MAPPING: dict[str, str] = {
    "tough-moments": "Craving Control",
    "connections": "Connection Boost",
    "routines": "Routine Builder",
    "tools": "Toolbox Mastery",
    "staying-track": "Accountability Path",
}

JOURNEY_STAGE_MAPPING: dict[str, str] = {
    "starting": "Just Starting Out",
    "few-weeks": "A Few Weeks In",
    "few-months": "A Few Months Strong",
    "steady": "Feeling Steady",
    "starting-again": "Restarting After a Pause",
}


def _render(template: str, *, theme: str, tool: str) -> str:
    return template.format(theme=theme, theme_lower=theme.lower(), tool=tool)


def _build_days(
    *,
    foundation: list[dict[str, Any]],
    template: list[dict[str, Any]],
    weeks: list[dict[str, Any]],
    total_days: int,
) -> list[JourneyDay]:
    days: list[JourneyDay] = []
    for idx, raw in enumerate(foundation, start=1):
        days.append(JourneyDay(day=idx, **raw))

    for week in weeks:
        theme = str(week["theme"])
        tool = str(week["tool"])
        for step in template:
            if len(days) >= total_days:
                return days
            days.append(
                JourneyDay(
                    day=len(days) + 1,
                    title=_render(step["title"], theme=theme, tool=tool),
                    key_message=_render(step["key_message"], theme=theme, tool=tool),
                    activity=_render(step["activity"], theme=theme, tool=tool),
                    tool=tool,
                )
            )
    return days[:total_days]


@dataclass(frozen=True)
class JourneyCatalog:
    journeys: tuple[CoreJourney, ...]
    phase_modifiers: tuple[PhaseModifier, ...]
    total_days: int

    @classmethod
    def from_payload(cls, payload: dict[str, Any], *, total_days: int) -> "JourneyCatalog":
        foundation = list(payload.get("foundation_week") or [])
        template = list(payload.get("day_template") or [])
        journeys = tuple(
            CoreJourney(
                focus_area=str(raw["focus_area"]),
                days=_build_days(
                    foundation=foundation,
                    template=template,
                    weeks=list(raw.get("weeks") or []),
                    total_days=total_days,
                ),
            )
            for raw in payload.get("core_journeys") or []
        )
        modifiers = tuple(
            PhaseModifier.model_validate(raw)
            for raw in payload.get("phase_modifiers") or []
        )
        logger.debug(
            "Journey catalog loaded",
            extra={"journey_count": len(journeys), "modifier_count": len(modifiers)},
        )
        return cls(journeys=journeys, phase_modifiers=modifiers, total_days=total_days)

    def journey_by_focus_area(self, focus_area: str) -> CoreJourney | None:
        return next((j for j in self.journeys if j.focus_area == focus_area), None)

    def modifier_by_phase(self, phase: str) -> PhaseModifier | None:
        return next((m for m in self.phase_modifiers if m.phase == phase), None)

    def get_user_journey(self, focus_areas: list[str] | None) -> CoreJourney | None:
        if not focus_areas:
            logger.warning("No focus areas provided, defaulting to %s", DEFAULT_JOURNEY)
            return self.journey_by_focus_area(DEFAULT_JOURNEY)

        primary = focus_areas[0]
        mapped = FOCUS_AREA_MAPPING.get(primary)
        if mapped is None and self.journey_by_focus_area(primary) is not None:
            # Already a journey name rather than an onboarding answer.
            mapped = primary
        if mapped is None:
            logger.warning(
                "Unknown focus area, defaulting to %s",
                DEFAULT_JOURNEY,
                extra={"focus_area": primary},
            )
            return self.journey_by_focus_area(DEFAULT_JOURNEY)
        return self.journey_by_focus_area(mapped)

    def get_phase_modifier(self, journey_stage: str | None) -> PhaseModifier:
        mapped = JOURNEY_STAGE_MAPPING.get(journey_stage or "")
        if mapped is None and journey_stage and self.modifier_by_phase(journey_stage):
            mapped = journey_stage
        if mapped is None:
            logger.warning(
                "Unknown journey stage, defaulting to %s",
                DEFAULT_PHASE,
                extra={"stage": journey_stage},
            )
            mapped = DEFAULT_PHASE
        modifier = self.modifier_by_phase(mapped) or self.modifier_by_phase(DEFAULT_PHASE)
        if modifier is None:
            # Content table without modifiers still needs a neutral overlay.
            return PhaseModifier(phase=DEFAULT_PHASE, tone="neutral", pacing="steady")
        return modifier

    def get_journey_day(self, focus_areas: list[str] | None, day_number: int) -> JourneyDay | None:
        journey = self.get_user_journey(focus_areas)
        if journey is None or day_number < 1 or day_number > len(journey.days):
            return None
        return journey.days[day_number - 1]

    def get_journey_week(self, focus_areas: list[str] | None, week_number: int) -> list[JourneyDay]:
        journey = self.get_user_journey(focus_areas)
        if journey is None or week_number < 1:
            return []
        start = (week_number - 1) * DAYS_PER_WEEK
        return list(journey.days[start : start + DAYS_PER_WEEK])

    def get_available_journeys(self) -> list[str]:
        return [j.focus_area for j in self.journeys]

    def get_available_phases(self) -> list[str]:
        return [m.phase for m in self.phase_modifiers]


def apply_phase_modifier(content: JourneyDay, modifier: PhaseModifier) -> ModifiedJourneyDay:
    return ModifiedJourneyDay(
        **content.model_dump(),
        phase=modifier.phase,
        modified_tone=modifier.tone,
        modified_pacing=modifier.pacing,
        optional_extras=list(modifier.optional_extras),
    )


def load_catalog(path: Path = DATA_FILE, *, total_days: int = 90) -> JourneyCatalog:
    with path.open(encoding="utf-8") as fh:
        payload = json.load(fh)
    return JourneyCatalog.from_payload(payload, total_days=total_days)


@lru_cache(maxsize=1)
def get_catalog() -> JourneyCatalog:
    return load_catalog(total_days=settings.journey_total_days)
