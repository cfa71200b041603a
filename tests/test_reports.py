import pytest


@pytest.fixture
def ledger_user(client, headers):
    """A user with a month of activity, a card and a subscription."""
    for payload in [
        {"amount": 1000, "type": "income", "category": "salary"},
        {"amount": 300, "type": "expense", "category": "food"},
        {"amount": 100, "type": "expense", "category": "transport"},
        {"amount": 500, "type": "income", "category": "freelance", "date": "2025-02-14"},
        {"amount": 250, "type": "expense", "category": "food", "date": "2025-02-20"},
    ]:
        assert client.post("/transactions", json=payload, headers=headers).status_code == 201
    client.post(
        "/cards",
        json={"name": "Visa", "limit": 2000, "current_debt": 1500, "cutoff_day": 12, "payment_day": 14},
        headers=headers,
    )
    client.post("/subscriptions", json={"name": "Phone", "amount": 200, "payment_day": 15}, headers=headers)
    return headers


def test_summary(client, ledger_user):
    totals = client.get("/reports/summary", headers=ledger_user).json()
    assert totals == {"income": 1500, "expense": 650, "balance": 850}


def test_periods(client, ledger_user):
    monthly = client.get("/reports/periods", headers=ledger_user).json()
    assert [m["label"] for m in monthly] == ["2025-02", "2025-03"]
    assert monthly[1] == {"label": "2025-03", "income": 1000, "expense": 400, "balance": 600}

    yearly = client.get("/reports/periods?period=yearly", headers=ledger_user).json()
    assert yearly == [{"label": "2025", "income": 1500, "expense": 650, "balance": 850}]

    ranged = client.get("/reports/periods?period=daily&from_date=2025-03-01", headers=ledger_user).json()
    assert [d["label"] for d in ranged] == ["2025-03-10"]


def test_categories_for_current_month(client, ledger_user):
    items = client.get("/reports/categories", headers=ledger_user).json()
    assert [(i["category"], i["amount"]) for i in items] == [("food", 300), ("transport", 100)]
    assert items[0]["percentage"] == 75
    income = client.get("/reports/categories?kind=income", headers=ledger_user).json()
    assert income == [{"category": "salary", "amount": 1000, "count": 1, "percentage": 100}]


def test_trend_and_comparison(client, ledger_user):
    trend = client.get("/reports/trend?months=2", headers=ledger_user).json()
    assert [t["label"] for t in trend] == ["2025-02", "2025-03"]
    assert trend[0]["savings_rate"] == 50

    comparison = client.get("/reports/comparison", headers=ledger_user).json()
    assert comparison["change"]["income"] == 100
    assert comparison["change"]["expense"] == 60
    assert comparison["change"]["expense_direction"] == "up"


def test_daily(client, ledger_user):
    daily = client.get("/reports/daily", headers=ledger_user).json()
    assert daily["avg_daily_income"] == 100
    assert daily["projected_expense"] == 40 * 31
    assert [t["amount"] for t in daily["top_expenses"]] == [300, 100]


def test_cards_report(client, ledger_user):
    report = client.get("/reports/cards", headers=ledger_user).json()
    assert report["totals"]["utilization"] == 75
    assert report["totals"]["health_status"] == "poor"
    assert [c["name"] for c in report["high_utilization"]] == ["Visa"]
    assert [c["days_to_payment"] for c in report["upcoming_payments"]] == [4]


def test_subscriptions_report(client, ledger_user):
    report = client.get("/reports/subscriptions", headers=ledger_user).json()
    assert report["totals"]["monthly_total"] == 200
    assert report["totals"]["next_7_days_total"] == 200
    assert report["alerts"] == {"overdue": [], "due_today": [], "urgent": []}


def test_health(client, ledger_user):
    health = client.get("/reports/health", headers=ledger_user).json()
    # savings 56.7% -> 0, utilization 75% -> -25, fixed 13.3% -> 0
    assert health["score"] == 75
    assert health["status"] == "good"
    assert health["recommendations"] == ["Reduce the balance you carry on your credit cards"]


def test_health_for_empty_account(client, headers):
    health = client.get("/reports/health", headers=headers).json()
    assert health["score"] == 80
    assert health["savings_rate"] == 0


def test_budgets_and_goals_reports(client, headers):
    client.post("/budgets", json={"name": "Food", "amount": 200, "category": "food"}, headers=headers)
    client.post("/transactions", json={"amount": 250, "type": "expense", "category": "food"}, headers=headers)
    budgets = client.get("/reports/budgets", headers=headers).json()
    assert budgets["over_budget_count"] == 1
    assert budgets["remaining"] == -50

    client.post("/goals", json={"name": "Car", "target_amount": 400}, headers=headers)
    goals = client.get("/reports/goals", headers=headers).json()
    assert goals["total_goals"] == 1
    assert goals["overall_progress"] == 0


def test_overview(client, ledger_user):
    overview = client.get("/reports/overview", headers=ledger_user).json()
    assert set(overview) == {
        "totals",
        "expenses_by_category",
        "income_by_category",
        "trend",
        "comparison",
        "cards",
        "subscriptions",
        "budgets",
        "goals",
        "health",
    }
    assert overview["totals"]["balance"] == 850
    assert overview["health"]["score"] == 75
    assert len(overview["trend"]) == 6
