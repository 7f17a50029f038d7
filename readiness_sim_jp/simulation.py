"""Deterministic cashflow schedule and single-path projection."""

from collections.abc import Iterable
from dataclasses import dataclass

from readiness_sim_jp.events import LifeEvent, apply_life_events
from readiness_sim_jp.income import net_income_for_age
from readiness_sim_jp.params import END_AGE, Profile, check_profile


@dataclass(frozen=True)
class YearCashflow:
    """Cashflow components for one simulated year (万円, nominal)."""

    age: int
    income: float
    expenses: float
    event_delta: float
    one_time: float

    @property
    def net(self) -> float:
        return self.income - self.expenses + self.event_delta + self.one_time


def base_expenses(profile: Profile, age: int) -> float:
    """Living + housing cost at `age`, inflated and reduced after retirement."""
    base = (profile.living_cost_annual + profile.housing_cost_annual) * profile.inflation_factor(
        age - profile.current_age
    )
    if age >= profile.target_retire_age:
        base *= profile.retire_spending_multiplier
    return base


def _event_amounts(profile: Profile, events: tuple[LifeEvent, ...], age: int) -> tuple[float, float]:
    """(recurring delta, one-time amount) from events at `age`.

    Income and rental deltas are handled by the income model; only their
    one-time amounts land here.
    """
    inflation = profile.inflation_factor(age - profile.current_age)
    delta = 0.0
    one_time = 0.0
    for event in events:
        factor = inflation if event.indexed else 1.0
        if event.age == age and event.amount_one_time:
            one_time += event.amount_one_time * factor
        if event.is_income or event.type == "rental_income":
            continue
        if event.amount_annual_delta and event.is_active(age):
            delta += event.amount_annual_delta * factor
    return delta, one_time


def build_cashflow_schedule(
    profile: Profile, events: Iterable[LifeEvent] = (),
) -> tuple[YearCashflow, ...]:
    """Per-year cashflows for ages current_age .. END_AGE-1.

    Depends only on the profile and events (no randomness), so Monte Carlo
    trials and the FIRE search reuse it across return paths.
    """
    events = tuple(events)
    schedule = []
    for age in range(profile.current_age, END_AGE):
        delta, one_time = _event_amounts(profile, events, age)
        schedule.append(YearCashflow(
            age=age,
            income=net_income_for_age(profile, age, events),
            expenses=base_expenses(profile, age),
            event_delta=delta,
            one_time=one_time,
        ))
    return tuple(schedule)


def advance_balance(balance: float, annual_return: float, cashflow: float) -> float:
    """One year of growth then cashflow. Debt does not earn market returns."""
    if balance >= 0:
        return balance * (1 + annual_return) + cashflow
    return balance + cashflow


def simulate_deterministic(profile: Profile, life_events: Iterable[LifeEvent] = ()) -> dict:
    """Single projection at the fixed expected return.

    Returns a dict with the per-year log, balances by age (current_age .. END_AGE),
    the first age with a negative balance (None if never) and sanitization warnings.
    """
    profile, warnings = check_profile(profile)
    events = apply_life_events(profile, life_events)
    schedule = build_cashflow_schedule(profile, events)
    annual_return = profile.expected_return / 100

    balance = profile.liquid_assets
    balances = {profile.current_age: balance}
    depletion_age = None
    yearly_log = []
    for year in schedule:
        balance = advance_balance(balance, annual_return, year.net)
        balances[year.age + 1] = balance
        if depletion_age is None and balance < 0:
            depletion_age = year.age + 1
        yearly_log.append({
            "age": year.age,
            "income": year.income,
            "expenses": year.expenses,
            "events": year.event_delta + year.one_time,
            "cashflow": year.net,
            "balance": balance,
        })

    return {
        "yearly_log": yearly_log,
        "balances": balances,
        "depletion_age": depletion_age,
        "final_balance": balance,
        "warnings": warnings,
    }
