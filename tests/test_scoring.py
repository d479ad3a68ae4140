import pytest

from tgest.services import scoring


@pytest.mark.parametrize(
    "days, expected",
    [
        (None, "NO_HISTORY"),
        (0, "ACTIVE"),
        (90, "ACTIVE"),
        (91, "AT_RISK"),
        (180, "AT_RISK"),
        (200, "INACTIVE"),
        (365, "INACTIVE"),
        (366, "LOST"),
    ],
)
def test_retention_status_buckets(days, expected):
    assert scoring.retention_status(days) == expected


def test_nps_three_promoters_one_detractor():
    score = scoring.nps(promoters=3, detractors=1, total=4)
    assert score == 50
    assert scoring.classify_nps(score) == "Very Good"


@pytest.mark.parametrize(
    "score, label",
    [(-10, "Critical"), (0, "Needs Improvement"), (30, "Reasonable"), (74.9, "Very Good"), (75, "Excellent")],
)
def test_nps_bands(score, label):
    assert scoring.classify_nps(score) == label


def test_nps_stays_in_range():
    assert scoring.nps(0, 0, 0) == 0
    assert scoring.nps(5, 0, 5) == 100
    assert scoring.nps(0, 5, 5) == -100


def test_abc_curve_uses_cumulative_share_after_inclusion():
    # cumulative shares 60, 82, 90, 97, 100
    rows = [
        {"name": "e", "revenue": 3},
        {"name": "a", "revenue": 60},
        {"name": "c", "revenue": 8},
        {"name": "b", "revenue": 22},
        {"name": "d", "revenue": 7},
    ]
    ranked = scoring.abc_curve(rows)
    assert [r["name"] for r in ranked] == ["a", "b", "c", "d", "e"]
    assert [r["cumulative_percent"] for r in ranked] == [60, 82, 90, 97, 100]
    assert [r["abc_class"] for r in ranked] == ["A", "B", "B", "C", "C"]

    summary = scoring.abc_summary(ranked)
    assert summary["A"] == {"count": 1, "revenue": 60}
    assert summary["B"]["count"] == 2
    assert summary["C"]["count"] == 2


def test_abc_curve_boundary_at_eighty_is_a():
    ranked = scoring.abc_curve([{"revenue": 80}, {"revenue": 20}])
    assert [r["abc_class"] for r in ranked] == ["A", "C"]


def test_abc_curve_with_no_revenue():
    ranked = scoring.abc_curve([{"revenue": 0}, {"revenue": 0}])
    assert all(r["cumulative_percent"] == 0 for r in ranked)


def test_risk_score_healthy_customer():
    result = scoring.risk_score(days_since_last_visit=10, total_visits=10, average_ticket=1500, stale_reminders=0)
    assert result["score"] == 0
    assert result["level"] == "LOW"


def test_risk_score_critical_customer():
    result = scoring.risk_score(days_since_last_visit=400, total_visits=1, average_ticket=100, stale_reminders=2)
    assert result["score"] == 100
    assert result["level"] == "CRITICAL"
    assert result["recommendation"].startswith("Urgent action needed")
    assert {f["weight"] for f in result["factors"]} == {40, 30, 20, 10}


@pytest.mark.parametrize(
    "days, visits, ticket, stale, score, level",
    [
        (100, 5, 500, 0, 15, "LOW"),
        (100, 2, 500, 0, 35, "MEDIUM"),
        (200, 2, 500, 0, 50, "HIGH"),
        (200, 2, 200, 0, 70, "CRITICAL"),
    ],
)
def test_risk_score_thresholds(days, visits, ticket, stale, score, level):
    result = scoring.risk_score(days, visits, ticket, stale)
    assert result["score"] == score
    assert result["level"] == level
