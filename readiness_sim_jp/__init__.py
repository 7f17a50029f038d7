"""Household exit-readiness (FIRE) simulation package."""

from readiness_sim_jp.params import (
    END_AGE,
    PENSION_AGE,
    Profile,
    ProfileValidationError,
    check_profile,
    sanitize_profile,
    validate_profile,
)
from readiness_sim_jp.tax import calc_effective_tax_rate, calc_net_income
from readiness_sim_jp.income import annual_pension, net_income_for_age, public_pension
from readiness_sim_jp.events import (
    Branch,
    LifeEvent,
    LifeEventError,
    apply_life_events,
    branch_to_life_events,
    branches_to_life_events,
    create_default_branches,
)
from readiness_sim_jp.simulation import build_cashflow_schedule, simulate_deterministic
from readiness_sim_jp.monte_carlo import (
    KeyMetrics,
    MonteCarloConfig,
    ScoreDetail,
    SimulationResult,
    simulate,
)
from readiness_sim_jp.margin import (
    Margin,
    MoneyMargin,
    RiskMargin,
    TimeMargin,
    calculate_margin,
    calculate_money_margin,
    calculate_risk_margin,
    calculate_time_margin,
    evaluate_money_margin_health,
)
from readiness_sim_jp.worldline import (
    ImpactFinding,
    WorldlineCandidate,
    WorldlineDiff,
    build_candidates,
    diff_candidate,
    find_most_impactful_branch,
    rank_candidates,
)

__all__ = [
    "END_AGE",
    "PENSION_AGE",
    "Profile",
    "ProfileValidationError",
    "check_profile",
    "sanitize_profile",
    "validate_profile",
    "calc_effective_tax_rate",
    "calc_net_income",
    "annual_pension",
    "net_income_for_age",
    "public_pension",
    "Branch",
    "LifeEvent",
    "LifeEventError",
    "apply_life_events",
    "branch_to_life_events",
    "branches_to_life_events",
    "create_default_branches",
    "build_cashflow_schedule",
    "simulate_deterministic",
    "KeyMetrics",
    "MonteCarloConfig",
    "ScoreDetail",
    "SimulationResult",
    "simulate",
    "Margin",
    "MoneyMargin",
    "RiskMargin",
    "TimeMargin",
    "calculate_margin",
    "calculate_money_margin",
    "calculate_risk_margin",
    "calculate_time_margin",
    "evaluate_money_margin_health",
    "ImpactFinding",
    "WorldlineCandidate",
    "WorldlineDiff",
    "build_candidates",
    "diff_candidate",
    "find_most_impactful_branch",
    "rank_candidates",
]
