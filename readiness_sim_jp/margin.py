"""Money, time and risk margins derived from a profile and its simulation result.

All values are recomputed per call from their inputs; nothing is cached.
"""

from dataclasses import dataclass

from readiness_sim_jp.income import net_income_for_age
from readiness_sim_jp.monte_carlo import SimulationResult
from readiness_sim_jp.params import Profile

STANDARD_RETIRE_AGE = 65  # 標準的な退職年齢（就労可能年数の基準）
CAREER_START_AGE = 20     # 資産形成の起点
DEFAULT_STOCK_RATIO = 70  # 資産ゼロ時の株式比率（%）

# (閾値, 値): 生存率が閾値以上なら値を採用
_DRAWDOWN_STEPS = ((90, 30), (70, 20))
_DRAWDOWN_FLOOR = 10
_SEQUENCE_RISK_STEPS = ((85, 0.2), (70, 0.4))
_SEQUENCE_RISK_CEILING = 0.7

HEALTH_LEVELS = ("excellent", "good", "fair", "poor")
HEALTH_LABELS = {
    "excellent": "非常に良好",
    "good": "良好",
    "fair": "要改善",
    "poor": "要注意",
}


@dataclass(frozen=True)
class MoneyMargin:
    monthly_net_savings: float
    emergency_fund_coverage: float  # 生活費何か月分の現金
    annual_disposable_income: float


@dataclass(frozen=True)
class TimeMargin:
    years_to_target: int
    progress_percent: float
    working_years_left: int
    buffer_years: int


@dataclass(frozen=True)
class RiskMargin:
    drawdown_capacity: float  # 許容できる下落率（%）
    volatility_tolerance: float
    emergency_fund_coverage: float
    sequence_risk: float  # 0=低 〜 1=高


@dataclass(frozen=True)
class Margin:
    money: MoneyMargin
    time: TimeMargin
    risk: RiskMargin


def _fire_age(sim_result: SimulationResult | None) -> int | None:
    return sim_result.metrics.fire_age if sim_result is not None else None


def _survival_rate(sim_result: SimulationResult | None) -> float:
    return sim_result.metrics.survival_rate if sim_result is not None else 0.0


def calculate_money_margin(profile: Profile, sim_result: SimulationResult | None = None) -> MoneyMargin:
    """Cash-flow slack at the current age."""
    annual_cost = profile.living_cost_annual + profile.housing_cost_annual
    disposable = net_income_for_age(profile, profile.current_age) - annual_cost
    return MoneyMargin(
        monthly_net_savings=disposable / 12,
        emergency_fund_coverage=profile.asset_cash / max(1.0, annual_cost / 12),
        annual_disposable_income=disposable,
    )


def evaluate_money_margin_health(margin: MoneyMargin) -> str:
    """Step function over coverage and savings. Values on a threshold fall to the lower tier."""
    coverage = margin.emergency_fund_coverage
    savings = margin.monthly_net_savings
    if coverage > 12 and savings > 0:
        return "excellent"
    if coverage > 6 and savings >= 0:
        return "good"
    if coverage > 3:
        return "fair"
    return "poor"


def calculate_time_margin(profile: Profile, sim_result: SimulationResult | None = None) -> TimeMargin:
    target = profile.target_retire_age
    current = profile.current_age
    fire_age = _fire_age(sim_result)

    goal = fire_age if fire_age is not None and fire_age <= target else target
    span = goal - CAREER_START_AGE
    if span > 0:
        progress = (current - CAREER_START_AGE) / span * 100
    else:
        progress = 100.0 if current >= goal else 0.0

    return TimeMargin(
        years_to_target=max(0, target - current),
        progress_percent=max(0.0, min(100.0, progress)),
        working_years_left=max(0, STANDARD_RETIRE_AGE - current),
        buffer_years=max(0, target - fire_age) if fire_age is not None else 0,
    )


def _step(value: float, steps: tuple[tuple[float, float], ...], fallback: float) -> float:
    for threshold, result in steps:
        if value >= threshold:
            return result
    return fallback


def calculate_risk_margin(profile: Profile, sim_result: SimulationResult | None = None) -> RiskMargin:
    survival = _survival_rate(sim_result)
    total_assets = profile.asset_cash + profile.asset_invest + profile.asset_defined_contribution_jp
    stock_ratio = profile.asset_invest / total_assets * 100 if total_assets > 0 else DEFAULT_STOCK_RATIO

    return RiskMargin(
        drawdown_capacity=_step(survival, _DRAWDOWN_STEPS, _DRAWDOWN_FLOOR),
        volatility_tolerance=max(5.0, 30 - stock_ratio / 5),
        emergency_fund_coverage=calculate_money_margin(profile).emergency_fund_coverage,
        sequence_risk=_step(survival, _SEQUENCE_RISK_STEPS, _SEQUENCE_RISK_CEILING),
    )


def calculate_margin(profile: Profile, sim_result: SimulationResult | None = None) -> Margin:
    return Margin(
        money=calculate_money_margin(profile, sim_result),
        time=calculate_time_margin(profile, sim_result),
        risk=calculate_risk_margin(profile, sim_result),
    )
