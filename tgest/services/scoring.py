"""
Pure CRM and reporting arithmetic: retention buckets, loss-risk score, NPS
and ABC classification. Nothing here touches the database.
"""
from typing import Any, Dict, List, Optional, Sequence


# ---------- RETENTION ----------
ACTIVE = "ACTIVE"
AT_RISK = "AT_RISK"
INACTIVE = "INACTIVE"
LOST = "LOST"
NO_HISTORY = "NO_HISTORY"

RETENTION_STATUSES = (ACTIVE, AT_RISK, INACTIVE, LOST, NO_HISTORY)


def retention_status(days_since_last_visit: Optional[int]) -> str:
    """Bucket a customer by days since the last finalized order (upper bounds inclusive)."""
    if days_since_last_visit is None:
        return NO_HISTORY
    if days_since_last_visit <= 90:
        return ACTIVE
    if days_since_last_visit <= 180:
        return AT_RISK
    if days_since_last_visit <= 365:
        return INACTIVE
    return LOST


# ---------- LOSS RISK ----------
RISK_LEVELS = (
    # (min score, level, colour, recommendation)
    (70, "CRITICAL", "#EF4444", "Urgent action needed! Contact the customer immediately and offer promotions."),
    (50, "HIGH", "#F59E0B", "Customer at risk. Send reminders and personalised offers."),
    (30, "MEDIUM", "#3B82F6", "Monitor the customer and keep them engaged."),
    (0, "LOW", "#10B981", "Healthy relationship. Keep regular communication."),
)


def risk_score(
    days_since_last_visit: Optional[int],
    total_visits: int,
    average_ticket: Optional[float],
    stale_reminders: int,
) -> Dict[str, Any]:
    """
    Additive 0-100 loss-risk score.

    Args:
        days_since_last_visit: Days since the last finalized order (None when never)
        total_visits: Number of finalized orders
        average_ticket: Mean order total
        stale_reminders: Reminders sent but not acted on for over 30 days

    Returns:
        Dict with score, level, color, recommendation and the contributing factors
    """
    score = 0
    factors: List[Dict[str, Any]] = []

    def add(points: int, label: str, critical: bool = False):
        nonlocal score
        score += points
        factors.append({"factor": label, "weight": points, "critical": critical})

    days = days_since_last_visit or 0
    if days > 365:
        add(40, "Over a year without a visit", True)
    elif days > 180:
        add(30, "Over six months without a visit", True)
    elif days > 90:
        add(15, "Over three months without a visit")

    if total_visits == 1:
        add(30, "Only one visit on record", True)
    elif total_visits <= 3:
        add(20, "Few visits on record")

    ticket = average_ticket or 0
    if ticket > 1000:
        add(0, "High value customer")
    elif ticket < 300:
        add(20, "Low average ticket")

    if stale_reminders > 0:
        add(10, "Reminders not acted on")

    for threshold, level, color, recommendation in RISK_LEVELS:
        if score >= threshold:
            break
    return {
        "score": score,
        "level": level,
        "color": color,
        "recommendation": recommendation,
        "factors": factors,
    }


# ---------- NPS ----------
NPS_BANDS = (
    # (upper bound exclusive, label)
    (0, "Critical"),
    (30, "Needs Improvement"),
    (50, "Reasonable"),
    (75, "Very Good"),
)


def nps(promoters: int, detractors: int, total: int) -> float:
    """%promoters - %detractors, always within [-100, 100]."""
    if not total:
        return 0.0
    return round((promoters / total - detractors / total) * 100, 2)


def classify_nps(score: float) -> str:
    for upper, label in NPS_BANDS:
        if score < upper:
            return label
    return "Excellent"


# ---------- ABC ----------
def abc_class(cumulative_percent: float) -> str:
    if cumulative_percent <= 80:
        return "A"
    if cumulative_percent <= 95:
        return "B"
    return "C"


def abc_curve(rows: Sequence[Dict[str, Any]], value_key: str = "revenue") -> List[Dict[str, Any]]:
    """
    Rank rows by ``value_key`` descending and attach position, share and class.

    The class is decided by the cumulative share *after* including the row, so a
    row that brings the running total from 78% to 82% is already B.
    """
    ordered = sorted(rows, key=lambda r: r.get(value_key) or 0, reverse=True)
    grand_total = sum(r.get(value_key) or 0 for r in ordered)
    running = 0.0
    ranked = []
    for position, row in enumerate(ordered, start=1):
        value = row.get(value_key) or 0
        running += value
        share = (value / grand_total * 100) if grand_total else 0.0
        cumulative = (running / grand_total * 100) if grand_total else 0.0
        ranked.append({
            **row,
            "position": position,
            "revenue_percent": round(share, 2),
            "cumulative_percent": round(cumulative, 2),
            "abc_class": abc_class(round(cumulative, 6)),
        })
    return ranked


def abc_summary(ranked: Sequence[Dict[str, Any]], value_key: str = "revenue") -> Dict[str, Any]:
    summary = {cls: {"count": 0, "revenue": 0.0} for cls in ("A", "B", "C")}
    for row in ranked:
        bucket = summary[row["abc_class"]]
        bucket["count"] += 1
        bucket["revenue"] = round(bucket["revenue"] + (row.get(value_key) or 0), 2)
    return summary
