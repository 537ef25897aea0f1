from __future__ import annotations

from backend.app.cards import (
    build_card_items,
    card_description,
    card_title,
    severity_color,
    severity_label,
)
from backend.app.schemas import DengueMetrics, HazardRecord, HeatMetrics, WindMetrics


def test_card_titles_default_to_hazard_alert():
    assert card_title("flood") == "Flash Flood"
    assert card_title("haze") == "Haze (PM2.5)"
    assert card_title("dengue") == "Dengue Clusters"
    assert card_title("wind") == "Strong Winds"
    assert card_title("heat") == "Heat Advisory"
    assert card_title("unknown") == "Hazard Alert"


def test_severity_label_and_color():
    assert severity_label("danger") == "High"
    assert severity_label("warning") == "Med"
    assert severity_label(None) == "Safe"
    assert severity_color("danger") == "#F25555"
    assert severity_color("bogus") == "#03A55A"


def test_heat_description_formats_hi_to_one_decimal():
    hazard = HazardRecord(
        kind="heat",
        severity="warning",
        metrics=HeatMetrics(hi=35.234, region="Central Region"),
    )
    assert card_description(hazard).startswith("High heat in the Central Region (HI ≈ 35.2°C)")


def test_wind_description_uses_region():
    hazard = HazardRecord(kind="wind", severity="danger", metrics=WindMetrics(kt=30, region="West Region"))
    assert "Damaging winds in the West Region" in card_description(hazard)


def test_dengue_descriptions():
    danger = HazardRecord(
        kind="dengue",
        severity="danger",
        location_name="Tampines St 81",
        metrics=DengueMetrics(cases=23, km=1.234, locality="Tampines St 81"),
    )
    warning = HazardRecord(
        kind="dengue",
        severity="warning",
        metrics=DengueMetrics(cases=4, km=2.06, locality="Bedok North"),
    )
    assert "Tampines St 81 (23+ cases)" in card_description(danger)
    assert "Bedok North (~2.1 km)" in card_description(warning)


def test_placeholder_and_unknown_kinds_still_describe():
    assert card_description(HazardRecord(kind="flood", severity="safe")).startswith("No significant rain")
    assert card_description(HazardRecord(kind="none", severity="safe")) == "Stay Alert, Stay Safe"


def test_build_card_items_honours_limit():
    hazards = [HazardRecord(kind=kind, severity="safe") for kind in ("flood", "haze", "dengue", "wind", "heat")]
    cards = build_card_items(hazards, limit=2)
    assert [card.id for card in cards] == ["flood", "haze"]
    assert cards[0].hazard == hazards[0]
    assert len(build_card_items(hazards)) == 5
