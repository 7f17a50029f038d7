"""Age-indexed household income and pension estimates."""

from collections.abc import Iterable

from readiness_sim_jp.params import END_AGE, PENSION_AGE, Profile
from readiness_sim_jp.tax import POST_RETIRE_TAX_RATE, calc_net_income

# 確定拠出年金（DC）の運用利回りと年金化の前提
DC_GROWTH_RATE = 0.02

# 公的年金計算定数（簡易版）
KISO_PENSION_FULL = 80.0        # 老齢基礎年金 満額（万円/年）
KOSEI_RATE = 5.481 / 1000       # 厚生年金 報酬比例乗率
STANDARD_MONTHLY_CAP = 65.0     # 標準報酬月額上限（万円）
PENSION_ENTRY_AGE = 20
PENSION_EXIT_AGE = 60
MAX_COVERED_YEARS = 40

INCOME_EVENT_TYPES = ("income_increase", "income_decrease")


def income_adjustment(events: Iterable, age: int, target: str) -> float:
    """Sum of gross income deltas from income events active at `age` for `target`."""
    adjustment = 0.0
    for event in events:
        if event.type not in INCOME_EVENT_TYPES or event.target != target:
            continue
        if event.is_active(age):
            adjustment += event.amount_annual_delta
    return adjustment


def rental_income(events: Iterable, age: int) -> float:
    """Rental income active at `age` (applies before and after retirement)."""
    return sum(
        event.amount_annual_delta
        for event in events
        if event.type == "rental_income" and event.is_active(age)
    )


def career_average_gross(
    base_gross: float, events: Iterable, current_age: int, retire_age: int, target: str,
) -> float:
    """Average gross income over the covered years with income events applied.

    Years before current_age use the current salary; later years add the
    income events active at that age for `target`.
    """
    end_age = min(retire_age, PENSION_EXIT_AGE)
    if end_age <= PENSION_ENTRY_AGE:
        return base_gross
    events = tuple(events)
    total = 0.0
    for age in range(PENSION_ENTRY_AGE, end_age):
        yearly = base_gross
        if age >= current_age:
            yearly += income_adjustment(events, age, target)
        total += max(0.0, yearly)
    return total / (end_age - PENSION_ENTRY_AGE)


def _person_pension(gross_annual: float, retire_age: int) -> float:
    """Public pension for one person (基礎年金 + 厚生年金報酬比例, 万円/年)."""
    if gross_annual <= 0:
        return 0.0
    covered_years = max(0, min(retire_age, PENSION_EXIT_AGE) - PENSION_ENTRY_AGE)
    covered_years = min(covered_years, MAX_COVERED_YEARS)
    basic = KISO_PENSION_FULL * covered_years / MAX_COVERED_YEARS
    avg_monthly = min(gross_annual / 12, STANDARD_MONTHLY_CAP)
    proportional = avg_monthly * KOSEI_RATE * covered_years * 12
    return basic + proportional


def public_pension(profile: Profile, events: Iterable = ()) -> float:
    """Household public pension (万円/年), partner included in couple mode.

    The proportional part follows the career-average salary, so income
    events before retirement lower or raise it.
    """
    events = tuple(events)
    retire_age = profile.target_retire_age
    self_avg = career_average_gross(
        profile.gross_income + profile.rsu_annual, events, profile.current_age, retire_age, "self",
    )
    total = _person_pension(self_avg, retire_age)
    if profile.is_couple:
        partner_avg = career_average_gross(
            profile.partner_gross_income + profile.partner_rsu_annual,
            events, profile.current_age, retire_age, "partner",
        )
        total += _person_pension(partner_avg, retire_age)
    return total


def annual_pension(profile: Profile) -> float:
    """DC annuity (万円/年) paid from PENSION_AGE to END_AGE.

    The current DC balance and annual contributions compound at DC_GROWTH_RATE
    until retirement or PENSION_AGE, whichever comes first; the pot then grows
    untouched until PENSION_AGE and is paid out as a level annuity.
    """
    balance = profile.asset_defined_contribution_jp
    contribution = profile.dc_contribution_annual
    if balance <= 0 and contribution <= 0:
        return 0.0

    accumulation_end = max(profile.current_age, min(profile.target_retire_age, PENSION_AGE))
    years = accumulation_end - profile.current_age
    g = DC_GROWTH_RATE
    growth = (1 + g) ** years
    pot = balance * growth + contribution * (growth - 1) / g

    # 受給開始まで据え置き運用
    deferral = max(0, PENSION_AGE - accumulation_end)
    pot *= (1 + g) ** deferral

    payout_years = END_AGE - PENSION_AGE
    return pot * g / (1 - (1 + g) ** -payout_years)


def household_pension(profile: Profile, events: Iterable = ()) -> float:
    return public_pension(profile, events) + annual_pension(profile)


def net_income_for_age(profile: Profile, age: int, events: Iterable = ()) -> float:
    """Household net (after-tax) income at `age` (万円/年).

    Working years: per-person gross (+RSU, +income events) taxed at the effective
    rate, side income added as-is, partner included in couple mode.
    Retired: post-retirement business income (20% tax) until its end age,
    passive income, and household pension from PENSION_AGE.
    Rental income events apply in both phases. Never negative.
    """
    events = tuple(events)
    rental = rental_income(events, age)

    if age >= profile.target_retire_age:
        income = profile.retire_passive_income + rental
        if profile.post_retire_income > 0 and age < profile.post_retire_end_age:
            income += profile.post_retire_income * (1 - POST_RETIRE_TAX_RATE / 100)
        if age >= PENSION_AGE:
            income += household_pension(profile, events)
        return max(0.0, income)

    override = profile.effective_tax_rate
    main_gross = max(
        0.0,
        profile.gross_income + profile.rsu_annual + income_adjustment(events, age, "self"),
    )
    income = calc_net_income(main_gross, override) + profile.side_income_net

    if profile.is_couple:
        partner_gross = max(
            0.0,
            profile.partner_gross_income + profile.partner_rsu_annual
            + income_adjustment(events, age, "partner"),
        )
        income += calc_net_income(partner_gross, override)

    return max(0.0, income + rental)
