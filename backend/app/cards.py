"""Early-warning cards built from hazard records (English copy only)."""

from __future__ import annotations

from .schemas import HazardCard, HazardRecord

DEFAULT_PLACE = "Singapore"

CARD_TITLES = {
    "flood": "Flash Flood",
    "haze": "Haze (PM2.5)",
    "dengue": "Dengue Clusters",
    "wind": "Strong Winds",
    "heat": "Heat Advisory",
}

SEVERITY_LABELS = {"safe": "Safe", "warning": "Med", "danger": "High"}
SEVERITY_COLORS = {"safe": "#03A55A", "warning": "#F29F3D", "danger": "#F25555"}


def card_title(kind: str) -> str:
    return CARD_TITLES.get(kind, "Hazard Alert")


def severity_label(severity: str | None) -> str:
    return SEVERITY_LABELS.get(severity or "safe", SEVERITY_LABELS["safe"])


def severity_color(severity: str | None) -> str:
    return SEVERITY_COLORS.get(severity or "safe", SEVERITY_COLORS["safe"])


def _metric(hazard: HazardRecord, name: str):
    return getattr(hazard.metrics, name, None) if hazard.metrics is not None else None


def card_description(hazard: HazardRecord) -> str:
    sev = hazard.severity
    place = hazard.location_name or _metric(hazard, "locality") or DEFAULT_PLACE
    region = _metric(hazard, "region") or hazard.location_name or DEFAULT_PLACE

    if hazard.kind == "flood":
        if sev == "danger":
            return f"Flash flooding around {place}. Do not drive through floodwater; avoid underpasses and basements."
        if sev == "warning":
            return f"Heavy showers near {place}. Ponding possible. Avoid low-lying roads and kerbside lanes."
        return "No significant rain detected. Drains and canals at normal levels."

    if hazard.kind == "haze":
        if sev == "danger":
            return f"Unhealthy PM2.5 in the {region}. Stay indoors; use purifier; wear N95 if going out."
        if sev == "warning":
            return f"Elevated PM2.5 in the {region}. Limit prolonged outdoor activity; consider a mask."
        return "Air quality is within normal range."

    if hazard.kind == "dengue":
        cases = _metric(hazard, "cases")
        km = _metric(hazard, "km")
        km_text = f"{km:.1f}" if km is not None else "?"
        if sev == "danger":
            cases_text = f"{cases}+ cases" if cases is not None else "many cases"
            return (
                f"High-risk cluster near {place} ({cases_text}). Avoid dawn/dusk bites; "
                "check home daily; see a doctor if fever persists."
            )
        if sev == "warning":
            return f"Active cluster near {place} (~{km_text} km). Remove stagnant water; use repellent."
        return "No active cluster near your location."

    if hazard.kind == "wind":
        if sev == "danger":
            return f"Damaging winds in the {region}. Stay indoors; avoid coastal and open areas."
        if sev == "warning":
            return f"Strong winds in the {region}. Secure loose items; caution for riders and high vehicles."
        return "Winds are light to moderate."

    if hazard.kind == "heat":
        hi = _metric(hazard, "hi")
        hi_text = f"{hi:.1f}" if hi is not None else "?"
        if sev == "danger":
            return f"Extreme heat in the {region} (HI ≈ {hi_text}°C). Stay in shade/AC; check on the vulnerable."
        if sev == "warning":
            return f"High heat in the {region} (HI ≈ {hi_text}°C). Reduce strenuous activity; drink water often."
        return "Heat risk is low."

    return "Stay Alert, Stay Safe"


def to_card_item(hazard: HazardRecord) -> HazardCard:
    return HazardCard(
        id=hazard.kind,
        title=card_title(hazard.kind),
        level=severity_label(hazard.severity),
        color=severity_color(hazard.severity),
        desc=card_description(hazard),
        hazard=hazard,
    )


def build_card_items(hazards: list[HazardRecord], limit: int | None = None) -> list[HazardCard]:
    cards = [to_card_item(hazard) for hazard in hazards]
    return cards[:limit] if limit is not None else cards
