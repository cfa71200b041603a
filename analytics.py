"""
Derived financial state

Pure reductions that turn stored records into the figures the API reports:
balances, category shares, trends, card utilization, subscription totals,
budget and goal progress, and the financial health score.

Records are read by attribute, so ORM rows and plain objects both work.
Nothing here touches the database or the clock: the reference date is
always passed in.
"""
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional

from dateutil.relativedelta import relativedelta

import recurrence
from schemas import DEFAULT_CATEGORY

HIGH_UTILIZATION = 80
NEAR_LIMIT = 80
TOP_EXPENSES = 5
TREND_MONTHS = 6
DAYS_PER_MONTH = 30


def percentage(part: float, total: float) -> float:
    return (part / total) * 100 if total else 0.0


def _category(record) -> str:
    return getattr(record, "category", None) or DEFAULT_CATEGORY


def _same_month(day: date, today: date) -> bool:
    return day.year == today.year and day.month == today.month


# ----------------------------------------------------------------------------
# Transactions
# ----------------------------------------------------------------------------
def summarize_transactions(transactions: Iterable) -> Dict[str, float]:
    income = 0.0
    expense = 0.0
    for tx in transactions:
        if tx.type == "income":
            income += tx.amount
        elif tx.type == "expense":
            expense += tx.amount
    return {"income": income, "expense": expense, "balance": income - expense}


def in_month(transactions: Iterable, today: date) -> list:
    return [tx for tx in transactions if _same_month(tx.date, today)]


def category_breakdown(transactions: Iterable, kind: str = "expense") -> List[dict]:
    """Amount, count and share of each category for one transaction type, largest first."""
    grouped = defaultdict(lambda: {"amount": 0.0, "count": 0})
    total = 0.0
    for tx in transactions:
        if tx.type != kind:
            continue
        bucket = grouped[_category(tx)]
        bucket["amount"] += tx.amount
        bucket["count"] += 1
        total += tx.amount

    items = [
        {"category": cat, **data, "percentage": percentage(data["amount"], total)}
        for cat, data in grouped.items()
    ]
    items.sort(key=lambda item: item["amount"], reverse=True)
    return items


def monthly_trend(transactions: Iterable, today: date, months: int = TREND_MONTHS) -> List[dict]:
    """Income, expense, balance and savings rate for the last ``months`` months, oldest first."""
    transactions = list(transactions)
    first = today.replace(day=1)
    items = []
    for offset in range(months - 1, -1, -1):
        month = first - relativedelta(months=offset)
        totals = summarize_transactions(in_month(transactions, month))
        items.append({
            "label": f"{month.year:04d}-{month.month:02d}",
            **totals,
            "savings_rate": percentage(totals["balance"], totals["income"]),
        })
    return items


def _change(current: float, last: float) -> float:
    if last > 0:
        return ((current - last) / last) * 100
    return 100.0 if current > 0 else 0.0


def month_comparison(transactions: Iterable, today: date) -> dict:
    transactions = list(transactions)
    current = summarize_transactions(in_month(transactions, today))
    last = summarize_transactions(in_month(transactions, today - relativedelta(months=1)))
    income_change = _change(current["income"], last["income"])
    expense_change = _change(current["expense"], last["expense"])
    return {
        "current": current,
        "last": last,
        "change": {
            "income": income_change,
            "expense": expense_change,
            "income_direction": "up" if income_change >= 0 else "down",
            "expense_direction": "up" if expense_change >= 0 else "down",
        },
    }


def daily_averages(income: float, expense: float, today: date) -> dict:
    """Average per elapsed day of the month and the projection to month end."""
    elapsed = today.day
    days_in_month = recurrence.clamp_day(today.year, today.month, 31).day
    avg_income = income / elapsed
    avg_expense = expense / elapsed
    return {
        "avg_daily_income": avg_income,
        "avg_daily_expense": avg_expense,
        "projected_income": avg_income * days_in_month,
        "projected_expense": avg_expense * days_in_month,
        "projected_balance": (avg_income - avg_expense) * days_in_month,
    }


def top_expenses(transactions: Iterable, today: date, limit: int = TOP_EXPENSES) -> list:
    expenses = [tx for tx in in_month(transactions, today) if tx.type == "expense"]
    expenses.sort(key=lambda tx: tx.amount, reverse=True)
    return expenses[:limit]


# ----------------------------------------------------------------------------
# Credit cards
# ----------------------------------------------------------------------------
def card_utilization(card) -> float:
    if card.limit <= 0:
        return 0.0
    return min(percentage(card.current_debt, card.limit), 100.0)


def card_status(card, today: date) -> dict:
    utilization = card_utilization(card)
    return {
        "days_to_cutoff": recurrence.days_until(today, card.cutoff_day),
        "days_to_payment": recurrence.days_until(today, card.payment_day),
        "utilization": utilization,
        "is_high_utilization": utilization > HIGH_UTILIZATION,
    }


def credit_health(utilization: float) -> str:
    if utilization < 30:
        return "excellent"
    if utilization < 50:
        return "good"
    if utilization < 70:
        return "fair"
    return "poor"


def summarize_cards(cards: Iterable) -> dict:
    cards = list(cards)
    total_limit = sum(card.limit for card in cards)
    total_debt = sum(card.current_debt for card in cards)
    utilization = percentage(total_debt, total_limit)
    average = sum(card_utilization(card) for card in cards) / len(cards) if cards else 0.0
    return {
        "total_cards": len(cards),
        "total_limit": total_limit,
        "total_debt": total_debt,
        "available_credit": total_limit - total_debt,
        "utilization": utilization,
        "average_utilization": average,
        "health_status": credit_health(utilization),
    }


# ----------------------------------------------------------------------------
# Subscriptions
# ----------------------------------------------------------------------------
def subscription_status(sub, today: date) -> dict:
    occurrence = recurrence.next_occurrence(
        today, sub.payment_day, sub.frequency, getattr(sub, "last_paid_date", None)
    )
    return {
        "next_payment_date": occurrence.next_date,
        "days_left": occurrence.days_left,
        "is_overdue": occurrence.is_overdue,
        "urgency": occurrence.urgency,
        "monthly_amount": recurrence.monthly_equivalent(sub.amount, sub.frequency),
        "annual_amount": recurrence.annual_equivalent(sub.amount, sub.frequency),
    }


def summarize_subscriptions(subs: Iterable, today: date) -> dict:
    """Totals over the active subscriptions; paused and cancelled ones are ignored."""
    active = [sub for sub in subs if sub.status == "active"]
    monthly_total = 0.0
    this_month_total = 0.0
    next_7_days_total = 0.0
    by_category = defaultdict(lambda: {"monthly": 0.0, "count": 0})

    for sub in active:
        status = subscription_status(sub, today)
        monthly_total += status["monthly_amount"]
        if _same_month(status["next_payment_date"], today):
            this_month_total += sub.amount
        if 0 <= status["days_left"] <= recurrence.SOON_DAYS:
            next_7_days_total += sub.amount
        bucket = by_category[_category(sub)]
        bucket["monthly"] += status["monthly_amount"]
        bucket["count"] += 1

    for bucket in by_category.values():
        bucket["percentage"] = percentage(bucket["monthly"], monthly_total)

    return {
        "monthly_total": monthly_total,
        "annual_total": monthly_total * 12,
        "this_month_total": this_month_total,
        "next_7_days_total": next_7_days_total,
        "by_category": dict(by_category),
        "count": len(active),
        "average_per_subscription": monthly_total / len(active) if active else 0.0,
    }


def subscription_alerts(subs: Iterable, today: date) -> Dict[str, list]:
    alerts = {"overdue": [], "due_today": [], "urgent": []}
    for sub in subs:
        if sub.status != "active":
            continue
        level = subscription_status(sub, today)["urgency"]
        if level == "overdue":
            alerts["overdue"].append(sub)
        elif level == "today":
            alerts["due_today"].append(sub)
        elif level == "urgent":
            alerts["urgent"].append(sub)
    return alerts


# ----------------------------------------------------------------------------
# Budgets
# ----------------------------------------------------------------------------
def budget_status(budget) -> dict:
    used = percentage(budget.spent, budget.amount)
    return {
        "remaining": budget.amount - budget.spent,
        "percent_used": used,
        "is_over_budget": budget.spent > budget.amount,
        "is_near_limit": NEAR_LIMIT <= used < 100,
    }


def summarize_budgets(budgets: Iterable) -> dict:
    budgets = list(budgets)
    total_budget = sum(b.amount for b in budgets)
    total_spent = sum(b.spent for b in budgets)
    statuses = [budget_status(b) for b in budgets]
    return {
        "total_budget": total_budget,
        "total_spent": total_spent,
        "remaining": total_budget - total_spent,
        "percent_used": percentage(total_spent, total_budget),
        "over_budget_count": sum(1 for s in statuses if s["is_over_budget"]),
        "near_limit_count": sum(1 for s in statuses if s["is_near_limit"]),
    }


# ----------------------------------------------------------------------------
# Savings goals
# ----------------------------------------------------------------------------
def goal_status(goal, today: date) -> dict:
    days_left: Optional[int] = None
    if goal.target_date is not None:
        days_left = (goal.target_date - today).days

    monthly_needed = 0.0
    remaining = max(goal.target_amount - goal.current_amount, 0.0)
    if days_left and days_left > 0:
        monthly_needed = remaining / (days_left / DAYS_PER_MONTH)

    return {
        "progress": min(percentage(goal.current_amount, goal.target_amount), 100.0),
        "days_left": days_left,
        "is_overdue": days_left is not None and days_left < 0,
        "is_completed": goal.current_amount >= goal.target_amount,
        "monthly_needed": monthly_needed,
    }


def summarize_goals(goals: Iterable) -> dict:
    goals = list(goals)
    total_target = sum(g.target_amount for g in goals)
    total_saved = sum(g.current_amount for g in goals)
    completed = sum(1 for g in goals if g.current_amount >= g.target_amount)
    return {
        "total_goals": len(goals),
        "active_goals": len(goals) - completed,
        "completed_goals": completed,
        "total_target": total_target,
        "total_saved": total_saved,
        "total_remaining": total_target - total_saved,
        "overall_progress": percentage(total_saved, total_target),
    }


# ----------------------------------------------------------------------------
# Financial health
# ----------------------------------------------------------------------------
RECOMMENDATIONS = {
    "savings": "Try to save at least 20% of your income",
    "credit": "Reduce the balance you carry on your credit cards",
    "fixed": "Review your subscriptions and fixed expenses",
}


def health_status(score: int) -> str:
    if score < 50:
        return "poor"
    if score < 70:
        return "fair"
    if score < 85:
        return "good"
    return "excellent"


def health_score(
    income: float,
    expense: float,
    credit_utilization: float,
    fixed_expense_ratio: float,
    total_debt: float = 0.0,
) -> dict:
    """Score overall financial health from 0 to 100.

    Starts at 100 and deducts by bracket:

    * savings rate: negative -30, under 10% -20, under 20% -10
    * credit utilization: over 70% -25, over 50% -15, over 30% -5
    * fixed-expense ratio: over 50% -20, over 30% -10

    One recommendation is emitted per unmet target (savings below 20%,
    utilization above 30%, fixed ratio above 30%), in that order.
    """
    savings_rate = percentage(income - expense, income)

    score = 100
    if savings_rate < 0:
        score -= 30
    elif savings_rate < 10:
        score -= 20
    elif savings_rate < 20:
        score -= 10

    if credit_utilization > 70:
        score -= 25
    elif credit_utilization > 50:
        score -= 15
    elif credit_utilization > 30:
        score -= 5

    if fixed_expense_ratio > 50:
        score -= 20
    elif fixed_expense_ratio > 30:
        score -= 10

    score = max(0, score)

    recommendations = []
    if savings_rate < 20:
        recommendations.append(RECOMMENDATIONS["savings"])
    if credit_utilization > 30:
        recommendations.append(RECOMMENDATIONS["credit"])
    if fixed_expense_ratio > 30:
        recommendations.append(RECOMMENDATIONS["fixed"])

    return {
        "score": score,
        "status": health_status(score),
        "savings_rate": savings_rate,
        "fixed_expense_ratio": fixed_expense_ratio,
        "debt_to_income_ratio": percentage(total_debt, income),
        "recommendations": recommendations,
    }


def financial_health(transactions: Iterable, cards: Iterable, subs: Iterable, today: date) -> dict:
    """Health score computed straight from the user's records."""
    totals = summarize_transactions(transactions)
    card_totals = summarize_cards(cards)
    sub_totals = summarize_subscriptions(subs, today)
    return health_score(
        totals["income"],
        totals["expense"],
        card_totals["utilization"],
        percentage(sub_totals["monthly_total"], totals["income"]),
        total_debt=card_totals["total_debt"],
    )
