"""
Aggregate reports over the houses registered in a period.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, List, Optional

from firesafe.db import DbClient, HouseRecord, ReportRecord
from firesafe.errors import InvalidRequestError
from shared.json_utils import parse_iso, parse_json_field, to_iso

logger = logging.getLogger(__name__)

GENERAL_REPORT = "general"
REPORT_TYPES = (GENERAL_REPORT,)
TOP_SENSITIVE_OBJECTS = 10


def _distribution(values: Iterable) -> dict:
    return dict(Counter(str(v) for v in values))


def _as_float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _average(values: List[float]) -> float:
    if not values:
        return 0
    return sum(values) / len(values)


def risk_level(analysis) -> Optional[str]:
    if not isinstance(analysis, dict):
        return None
    level = analysis.get("overallRisk")
    if level in (None, ""):
        level = analysis.get("overall_risk_score")
    if level in (None, ""):
        return None
    return str(level)


def compute_general_report(
    houses: List[HouseRecord],
    total_users: int,
    period_start: str,
    period_end: str,
) -> dict:
    """
    Builds the "general" report payload.

    The averages divide by the number of houses and are 0 for an empty
    period.
    """
    sensitive_counts: Counter = Counter()
    risk_levels = []
    with_plans = 0
    with_analysis = 0
    for house in houses:
        objects = parse_json_field(
            house.sensitive_objects, [], "sensitive_objects", expected=list
        )
        sensitive_counts.update(str(o) for o in objects)
        if house.plan_url:
            with_plans += 1
        analysis = parse_json_field(
            house.plan_analysis, None, "plan_analysis", expected=dict
        )
        if analysis:
            with_analysis += 1
            level = risk_level(analysis)
            if level is not None:
                risk_levels.append(level)

    # Counter.most_common keeps first-seen order for equal counts.
    top_objects = [
        {"name": name, "count": count}
        for name, count in sensitive_counts.most_common(TOP_SENSITIVE_OBJECTS)
    ]

    return {
        "summary": {
            "totalHouses": len(houses),
            "totalUsers": total_users,
            "housesWithPlans": with_plans,
            "housesWithAnalysis": with_analysis,
            "periodStart": period_start,
            "periodEnd": period_end,
        },
        "distributions": {
            "status": _distribution(h.status or "pending" for h in houses),
            "propertyType": _distribution(h.property_type for h in houses),
            "city": _distribution(h.city for h in houses),
            "riskLevel": _distribution(risk_levels),
        },
        "sensitiveObjects": top_objects,
        "trends": {
            "averageRoomsPerHouse": _average(
                [float(h.number_of_rooms or 0) for h in houses]
            ),
            "averageSurfaceArea": _average(
                [_as_float(h.surface_area) for h in houses]
            ),
        },
    }


def parse_period(period_start: Optional[str], period_end: Optional[str]) -> tuple[float, float]:
    if not period_start or not period_end:
        raise InvalidRequestError(
            "periodStart and periodEnd are required", "MISSING_REQUIRED_FIELD"
        )
    try:
        start = parse_iso(period_start)
        end = parse_iso(period_end)
    except ValueError:
        raise InvalidRequestError(
            "periodStart and periodEnd must be ISO-8601 dates", "INVALID_PERIOD"
        )
    if start > end:
        raise InvalidRequestError("periodStart must not be after periodEnd", "INVALID_PERIOD")
    return start, end


def generate_report(
    db: DbClient,
    report_type: Optional[str],
    period_start: Optional[str],
    period_end: Optional[str],
    created_by: Optional[str] = None,
) -> ReportRecord:
    """Computes a report for the period and stores it. Reports are never updated."""
    if report_type not in REPORT_TYPES:
        raise InvalidRequestError(
            f"Unknown report type '{report_type}'. Must be one of: {', '.join(REPORT_TYPES)}",
            "INVALID_REPORT_TYPE",
        )
    start, end = parse_period(period_start, period_end)
    logger.info("Generating %s report for %s - %s", report_type, to_iso(start), to_iso(end))

    houses = db.list_houses_created_between(start, end)
    total_users = db.count_users()
    report_data = compute_general_report(
        houses, total_users, period_start=period_start, period_end=period_end
    )
    report = db.create_report(
        report_type, report_data, period_start=start, period_end=end, created_by=created_by
    )
    logger.info("Report generated successfully: %s", report.id)
    return report
