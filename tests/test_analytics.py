from datetime import date
from types import SimpleNamespace

import pytest

import analytics

TODAY = date(2025, 3, 10)


def tx(amount, type_, category="other", day=TODAY):
    return SimpleNamespace(amount=amount, type=type_, category=category, date=day)


def card(limit, debt, cutoff=15, payment=25):
    return SimpleNamespace(limit=limit, current_debt=debt, cutoff_day=cutoff, payment_day=payment)


def sub(amount, day, frequency="monthly", status="active", category="service", last_paid=None):
    return SimpleNamespace(
        amount=amount,
        payment_day=day,
        frequency=frequency,
        status=status,
        category=category,
        last_paid_date=last_paid,
    )


def test_transaction_totals():
    totals = analytics.summarize_transactions([tx(100, "income"), tx(40, "expense")])
    assert totals == {"income": 100, "expense": 40, "balance": 60}


def test_transaction_totals_are_repeatable():
    items = (tx(10, "income"), tx(3.5, "expense"), tx(2, "expense"))
    assert analytics.summarize_transactions(items) == analytics.summarize_transactions(items)


def test_category_breakdown_falls_back_to_other():
    items = [tx(30, "expense", "food"), tx(10, "expense", None), tx(60, "expense", "food"), tx(500, "income", "salary")]
    breakdown = analytics.category_breakdown(items, "expense")
    assert [b["category"] for b in breakdown] == ["food", "other"]
    assert breakdown[0]["amount"] == 90
    assert breakdown[0]["count"] == 2
    assert breakdown[0]["percentage"] == pytest.approx(90)
    assert breakdown[1]["percentage"] == pytest.approx(10)


def test_category_breakdown_empty():
    assert analytics.category_breakdown([tx(10, "income")], "expense") == []


def test_monthly_trend_covers_six_months():
    items = [
        tx(1000, "income", day=date(2025, 3, 1)),
        tx(250, "expense", day=date(2025, 3, 2)),
        tx(400, "expense", day=date(2025, 1, 15)),
        tx(999, "income", day=date(2024, 9, 1)),
    ]
    trend = analytics.monthly_trend(items, TODAY)
    assert [t["label"] for t in trend] == ["2024-10", "2024-11", "2024-12", "2025-01", "2025-02", "2025-03"]
    assert trend[-1]["balance"] == 750
    assert trend[-1]["savings_rate"] == pytest.approx(75)
    assert trend[3]["expense"] == 400
    assert trend[3]["savings_rate"] == 0


def test_month_comparison():
    items = [
        tx(200, "expense", day=date(2025, 3, 3)),
        tx(100, "expense", day=date(2025, 2, 3)),
        tx(500, "income", day=date(2025, 3, 1)),
    ]
    result = analytics.month_comparison(items, TODAY)
    assert result["change"]["expense"] == pytest.approx(100)
    assert result["change"]["expense_direction"] == "up"
    assert result["change"]["income"] == 100
    assert result["last"]["income"] == 0


def test_daily_averages_project_to_month_end():
    result = analytics.daily_averages(100, 50, TODAY)
    assert result["avg_daily_income"] == pytest.approx(10)
    assert result["projected_expense"] == pytest.approx(5 * 31)
    assert result["projected_balance"] == pytest.approx(5 * 31)


def test_top_expenses_limited_to_current_month():
    items = [tx(n, "expense") for n in range(1, 9)] + [tx(100, "expense", day=date(2025, 2, 1))]
    top = analytics.top_expenses(items, TODAY)
    assert [t.amount for t in top] == [8, 7, 6, 5, 4]


def test_card_utilization_and_high_flag():
    status = analytics.card_status(card(1000, 850), TODAY)
    assert status["utilization"] == pytest.approx(85)
    assert status["is_high_utilization"]
    assert status["days_to_cutoff"] == 5
    assert status["days_to_payment"] == 15


def test_empty_card_list_has_zero_utilization():
    totals = analytics.summarize_cards([])
    assert totals["utilization"] == 0
    assert totals["average_utilization"] == 0
    assert totals["health_status"] == "excellent"


def test_card_totals():
    totals = analytics.summarize_cards([card(1000, 200), card(3000, 1200)])
    assert totals["total_limit"] == 4000
    assert totals["total_debt"] == 1400
    assert totals["available_credit"] == 2600
    assert totals["utilization"] == pytest.approx(35)
    assert totals["average_utilization"] == pytest.approx(30)
    assert totals["health_status"] == "good"


def test_subscription_totals_skip_inactive():
    subs = [
        sub(10, 15),
        sub(120, 1, "quarterly", category="home"),
        sub(5, 3, "weekly", status="paused"),
        sub(1200, 20, "annual", status="cancelled"),
    ]
    totals = analytics.summarize_subscriptions(subs, TODAY)
    assert totals["count"] == 2
    assert totals["monthly_total"] == pytest.approx(49.6)
    assert totals["annual_total"] == pytest.approx(49.6 * 12)
    assert totals["this_month_total"] == 10
    assert totals["next_7_days_total"] == 10
    assert totals["by_category"]["home"]["monthly"] == pytest.approx(39.6)
    assert totals["by_category"]["service"]["percentage"] == pytest.approx(10 / 49.6 * 100)


def test_subscription_totals_empty():
    totals = analytics.summarize_subscriptions([], TODAY)
    assert totals["monthly_total"] == 0
    assert totals["average_per_subscription"] == 0
    assert totals["by_category"] == {}


def test_longer_cycles_follow_the_current_month():
    # quarterly on day 20 is still ahead on 2025-03-10, so it lands in this month
    totals = analytics.summarize_subscriptions([sub(120, 20, "quarterly")], TODAY)
    assert totals["this_month_total"] == 120
    assert totals["monthly_total"] == pytest.approx(39.6)
    # once day 5 has passed it moves a full cycle ahead
    totals = analytics.summarize_subscriptions([sub(120, 5, "quarterly")], TODAY)
    assert totals["this_month_total"] == 0


def test_subscription_alerts():
    subs = [
        sub(10, 7, last_paid=date(2025, 2, 7)),
        sub(20, 10, last_paid=date(2025, 2, 10)),
        sub(30, 12),
        sub(40, 28),
    ]
    alerts = analytics.subscription_alerts(subs, TODAY)
    assert [s.amount for s in alerts["overdue"]] == [10]
    assert [s.amount for s in alerts["due_today"]] == [20]
    assert [s.amount for s in alerts["urgent"]] == [30]


def test_budget_status_and_totals():
    budgets = [
        SimpleNamespace(amount=100, spent=85),
        SimpleNamespace(amount=200, spent=250),
        SimpleNamespace(amount=50, spent=0),
    ]
    assert analytics.budget_status(budgets[0])["is_near_limit"]
    assert analytics.budget_status(budgets[1])["is_over_budget"]
    stats = analytics.summarize_budgets(budgets)
    assert stats["total_budget"] == 350
    assert stats["remaining"] == 15
    assert stats["over_budget_count"] == 1
    assert stats["near_limit_count"] == 1
    assert analytics.summarize_budgets([])["percent_used"] == 0


def test_goal_status():
    goal = SimpleNamespace(target_amount=1000, current_amount=400, target_date=date(2025, 4, 9))
    status = analytics.goal_status(goal, TODAY)
    assert status["progress"] == pytest.approx(40)
    assert status["days_left"] == 30
    assert status["monthly_needed"] == pytest.approx(600)
    assert not status["is_completed"]

    done = SimpleNamespace(target_amount=100, current_amount=150, target_date=date(2025, 1, 1))
    status = analytics.goal_status(done, TODAY)
    assert status["progress"] == 100
    assert status["is_completed"]
    assert status["is_overdue"]
    assert status["monthly_needed"] == 0


def test_goal_totals():
    goals = [
        SimpleNamespace(target_amount=100, current_amount=100),
        SimpleNamespace(target_amount=300, current_amount=50),
    ]
    stats = analytics.summarize_goals(goals)
    assert stats["completed_goals"] == 1
    assert stats["active_goals"] == 1
    assert stats["overall_progress"] == pytest.approx(37.5)


def test_health_score_worst_brackets():
    report = analytics.health_score(income=100, expense=105, credit_utilization=75, fixed_expense_ratio=55)
    assert report["savings_rate"] == pytest.approx(-5)
    assert report["score"] == 25
    assert report["status"] == "poor"
    assert report["recommendations"] == [
        analytics.RECOMMENDATIONS["savings"],
        analytics.RECOMMENDATIONS["credit"],
        analytics.RECOMMENDATIONS["fixed"],
    ]


def test_health_score_perfect():
    report = analytics.health_score(income=1000, expense=500, credit_utilization=10, fixed_expense_ratio=5)
    assert report["score"] == 100
    assert report["status"] == "excellent"
    assert report["recommendations"] == []


@pytest.mark.parametrize(
    "expense, utilization, fixed, expected",
    [
        (950, 0, 0, 80),
        (850, 0, 0, 90),
        (800, 0, 0, 100),
        (800, 31, 0, 95),
        (800, 51, 0, 85),
        (800, 30, 30, 100),
        (800, 0, 31, 90),
    ],
)
def test_health_score_brackets(expense, utilization, fixed, expected):
    assert analytics.health_score(1000, expense, utilization, fixed)["score"] == expected


def test_health_score_without_income():
    report = analytics.health_score(0, 0, 0, 0)
    assert report["savings_rate"] == 0
    assert report["score"] == 80
    assert report["debt_to_income_ratio"] == 0


def test_financial_health_from_records():
    report = analytics.financial_health(
        [tx(1000, "income"), tx(900, "expense")],
        [card(1000, 400)],
        [sub(400, 15)],
        TODAY,
    )
    # savings 10% -> -10, utilization 40% -> -5, fixed 40% -> -10
    assert report["score"] == 75
    assert report["fixed_expense_ratio"] == pytest.approx(40)
    assert report["debt_to_income_ratio"] == pytest.approx(40)
