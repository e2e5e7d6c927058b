from __future__ import annotations

import pytest

from app.services.journey_content import (
    DEFAULT_JOURNEY,
    DEFAULT_PHASE,
    FOCUS_AREA_MAPPING,
    JourneyCatalog,
    apply_phase_modifier,
    load_catalog,
)


@pytest.fixture(scope="module")
def catalog() -> JourneyCatalog:
    return load_catalog(total_days=90)


def test_catalog_lists_five_journeys_and_phases(catalog: JourneyCatalog) -> None:
    assert catalog.get_available_journeys() == [
        "Craving Control",
        "Connection Boost",
        "Routine Builder",
        "Toolbox Mastery",
        "Accountability Path",
    ]
    assert DEFAULT_PHASE in catalog.get_available_phases()
    assert len(catalog.get_available_phases()) == 5


@pytest.mark.parametrize("answer,journey", sorted(FOCUS_AREA_MAPPING.items()))
def test_every_focus_answer_maps_to_a_full_journey(
    catalog: JourneyCatalog, answer: str, journey: str
) -> None:
    resolved = catalog.get_user_journey([answer])
    assert resolved is not None
    assert resolved.focus_area == journey
    assert len(resolved.days) == 90
    assert [d.day for d in resolved.days] == list(range(1, 91))


def test_primary_focus_area_wins(catalog: JourneyCatalog) -> None:
    resolved = catalog.get_user_journey(["routines", "connections"])
    assert resolved is not None
    assert resolved.focus_area == "Routine Builder"


@pytest.mark.parametrize("focus_areas", [None, [], ["something-else"]])
def test_unknown_or_missing_focus_defaults(catalog: JourneyCatalog, focus_areas) -> None:
    resolved = catalog.get_user_journey(focus_areas)
    assert resolved is not None
    assert resolved.focus_area == DEFAULT_JOURNEY


def test_phase_modifier_maps_stage_and_defaults(catalog: JourneyCatalog) -> None:
    assert catalog.get_phase_modifier("few-months").phase == "A Few Months Strong"
    assert catalog.get_phase_modifier("Feeling Steady").phase == "Feeling Steady"
    assert catalog.get_phase_modifier("unknown-stage").phase == DEFAULT_PHASE
    assert catalog.get_phase_modifier(None).phase == DEFAULT_PHASE


def test_get_journey_day_bounds(catalog: JourneyCatalog) -> None:
    assert catalog.get_journey_day(["tools"], 0) is None
    assert catalog.get_journey_day(["tools"], 91) is None
    day = catalog.get_journey_day(["tools"], 8)
    assert day is not None
    assert day.day == 8


def test_journey_week_slices_seven_days(catalog: JourneyCatalog) -> None:
    week_two = catalog.get_journey_week(["staying-track"], 2)
    assert [d.day for d in week_two] == list(range(8, 15))

    # 90 days leave a short final week.
    last = catalog.get_journey_week(["staying-track"], 13)
    assert [d.day for d in last] == list(range(85, 91))
    assert catalog.get_journey_week(["staying-track"], 14) == []


def test_template_days_render_weekly_theme(catalog: JourneyCatalog) -> None:
    day = catalog.get_journey_day(["tough-moments"], 8)
    assert day is not None
    assert "{" not in day.title
    assert day.title.startswith("Urge Awareness")
    assert day.tool == "Urge Tracking"


def test_apply_phase_modifier_overlays_tone(catalog: JourneyCatalog) -> None:
    content = catalog.get_journey_day(["connections"], 1)
    modifier = catalog.get_phase_modifier("starting-again")
    assert content is not None

    modified = apply_phase_modifier(content, modifier)
    assert modified.title == content.title
    assert modified.phase == "Restarting After a Pause"
    assert modified.modified_tone == modifier.tone
    assert modified.modified_pacing == modifier.pacing
    assert modified.optional_extras == modifier.optional_extras


def test_catalog_without_modifiers_still_returns_neutral_overlay() -> None:
    catalog = JourneyCatalog.from_payload(
        {"foundation_week": [], "day_template": [], "core_journeys": []},
        total_days=90,
    )
    assert catalog.get_available_journeys() == []
    assert catalog.get_user_journey(["tools"]) is None
    assert catalog.get_phase_modifier("starting").phase == DEFAULT_PHASE
