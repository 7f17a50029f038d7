"""Monte Carlo simulation engine."""

import dataclasses
import math
import sys
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from random import Random
from typing import Callable

from readiness_sim_jp.events import LifeEvent, apply_life_events
from readiness_sim_jp.params import END_AGE, Profile, check_profile
from readiness_sim_jp.simulation import base_expenses, build_cashflow_schedule


MC_PERCENTILES = (5, 10, 25, 50, 75, 90, 95)

# スコア構成: 生存率と最終資産バッファの加重平均
SURVIVAL_WEIGHT = 0.7
BUFFER_WEIGHT = 0.3
BUFFER_TARGET_YEARS = 10  # 最終年の基本生活費×10年分で満点

SCORE_LEVELS = ((80, "GREEN"), (60, "YELLOW"), (40, "ORANGE"))


@dataclass
class MonteCarloConfig:
    """Configuration for Monte Carlo simulation."""

    n_simulations: int = 1000
    seed: int | None = 42
    return_volatility: float = 0.15
    fire_threshold: float = 90.0  # FIRE判定に必要な生存率（%）
    time_budget: float | None = None  # 秒; None=無制限
    clock: Callable[[], float] = time.monotonic


@dataclass(frozen=True)
class ScoreDetail:
    overall: int
    level: str
    survival: float
    buffer: float


@dataclass(frozen=True)
class KeyMetrics:
    survival_rate: float
    fire_age: int | None
    years_to_fire: int | None
    median_terminal_balance: float


@dataclass(frozen=True)
class SimulationResult:
    """Results from Monte Carlo simulation for a single profile."""

    score: ScoreDetail
    metrics: KeyMetrics
    # age → {5: val, 10: val, 25: val, 50: val, 75: val, 90: val, 95: val}
    yearly_percentiles: dict[int, dict[int, float]]
    n_simulations: int
    trials_completed: int
    low_confidence: bool = False
    seed: int | None = None
    warnings: tuple[str, ...] = field(default_factory=tuple)


def _standard_normal(rng) -> float:
    """Box-Muller transform using only rng.random()."""
    u1 = 1.0 - rng.random()  # (0, 1] keeps log finite
    u2 = rng.random()
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def _sample_log_normal_returns(
    rng,
    n_years: int,
    target_mean: float,
    volatility: float,
) -> list[float]:
    """Sample annual investment returns from log-normal distribution.

    Maps target arithmetic mean and volatility to log-normal parameters
    so that E[r] = target_mean and Std[r] ≈ volatility.
    """
    # log-normal: if X = exp(mu + sigma*Z) - 1, then
    # E[X+1] = exp(mu + sigma^2/2), Var[X+1] = (exp(sigma^2)-1)*exp(2*mu+sigma^2)
    m = 1 + target_mean  # target E[X+1]
    v = volatility ** 2   # target Var[X+1]
    sigma_sq = math.log(1 + v / (m * m))
    sigma = math.sqrt(sigma_sq)
    mu = math.log(m) - sigma_sq / 2

    return [math.exp(mu + sigma * _standard_normal(rng)) - 1 for _ in range(n_years)]


def _percentile_from_sorted(sorted_vals: list[float], p: int) -> float:
    """Calculate percentile from a pre-sorted list."""
    n = len(sorted_vals)
    idx = max(0, min(int(p / 100 * n), n - 1))
    return sorted_vals[idx]


def _run_trial(initial: float, returns: list[float], cashflows: list[float]) -> tuple[list[float], bool]:
    """Walk one return path. Returns (balances incl. initial, survived)."""
    balance = initial
    balances = [balance]
    survived = True
    for r, cf in zip(returns, cashflows):
        if balance >= 0:
            balance = balance * (1 + r) + cf
        else:
            balance += cf
        if balance < 0:
            survived = False
        balances.append(balance)
    return balances, survived


def _survives(initial: float, returns: list[float], cashflows: list[float]) -> bool:
    balance = initial
    for r, cf in zip(returns, cashflows):
        balance = balance * (1 + r) + cf
        if balance < 0:
            return False
    return True


def _survival_rate(survivors: int, trials: int) -> float:
    return survivors / trials * 100 if trials > 0 else 0.0


def score_level(score: float) -> str:
    for threshold, level in SCORE_LEVELS:
        if score >= threshold:
            return level
    return "RED"


def calculate_score(survival_rate: float, median_terminal: float, final_expenses: float) -> ScoreDetail:
    """Readiness score from survival and the terminal-balance buffer."""
    if final_expenses > 0:
        buffer = median_terminal / (BUFFER_TARGET_YEARS * final_expenses) * 100
        buffer = min(100.0, max(0.0, buffer))
    else:
        buffer = 100.0 if median_terminal > 0 else 0.0
    overall = round(SURVIVAL_WEIGHT * survival_rate + BUFFER_WEIGHT * buffer)
    overall = max(0, min(100, overall))
    return ScoreDetail(overall=overall, level=score_level(overall), survival=survival_rate, buffer=buffer)


def _meets_threshold(
    profile: Profile,
    events: tuple[LifeEvent, ...],
    return_paths: list[list[float]],
    threshold: float,
) -> bool:
    """Whether `profile` survives in at least `threshold`% of the given paths."""
    cashflows = [year.net for year in build_cashflow_schedule(profile, events)]
    initial = profile.liquid_assets
    trials = len(return_paths)
    failures = 0
    for returns in return_paths:
        if not _survives(initial, returns, cashflows):
            failures += 1
            if _survival_rate(trials - failures, trials) < threshold:
                return False
    return _survival_rate(trials - failures, trials) >= threshold


def find_fire_age(
    profile: Profile,
    events: tuple[LifeEvent, ...],
    return_paths: list[list[float]],
    threshold: float,
    over_budget: Callable[[], bool] = lambda: False,
) -> tuple[int | None, bool]:
    """Earliest retirement age whose survival over `return_paths` reaches `threshold`.

    Returns (fire_age, interrupted). Pension is recomputed per candidate age.
    """
    for retire_age in range(profile.current_age, END_AGE + 1):
        candidate = dataclasses.replace(profile, target_retire_age=retire_age)
        if _meets_threshold(candidate, events, return_paths, threshold):
            return retire_age, False
        if over_budget():
            return None, True
    return None, False


def simulate(
    profile: Profile,
    life_events: Iterable[LifeEvent] = (),
    config: MonteCarloConfig | None = None,
    rng=None,
    quiet: bool = True,
) -> SimulationResult:
    """Run the Monte Carlo cashflow simulation for a profile.

    rng: any object with a random() method; defaults to Random(config.seed).
    Raises ProfileValidationError / LifeEventError before any trial runs.
    """
    config = config or MonteCarloConfig()
    if config.n_simulations < 1:
        raise ValueError(f"試行回数は1以上で指定してください: {config.n_simulations}")
    profile, sanitize_warnings = check_profile(profile)
    warnings = list(sanitize_warnings)
    events = apply_life_events(profile, life_events)
    if rng is None:
        rng = Random(config.seed)

    clock = config.clock
    start = clock()

    def over_budget() -> bool:
        return config.time_budget is not None and clock() - start > config.time_budget

    n_years = END_AGE - profile.current_age
    expected = profile.expected_return / 100
    cashflows = [year.net for year in build_cashflow_schedule(profile, events)]
    initial = profile.liquid_assets

    return_paths: list[list[float]] = []
    yearly_balances: list[list[float]] = [[] for _ in range(n_years + 1)]
    survivors = 0
    low_confidence = False

    for i in range(config.n_simulations):
        returns = _sample_log_normal_returns(rng, n_years, expected, config.return_volatility)
        return_paths.append(returns)
        balances, survived = _run_trial(initial, returns, cashflows)
        if survived:
            survivors += 1
        for year_idx, balance in enumerate(balances):
            yearly_balances[year_idx].append(balance)

        if not quiet and (i + 1) % 100 == 0:
            print(f"\r  試行: {i + 1}/{config.n_simulations}", end="", file=sys.stderr)

        if i + 1 < config.n_simulations and over_budget():
            low_confidence = True
            break

    if not quiet and config.n_simulations >= 100:
        print(file=sys.stderr)

    completed = len(return_paths)
    survival_rate = _survival_rate(survivors, completed)

    fire_age = None
    if not low_confidence:
        fire_age, interrupted = find_fire_age(
            profile, events, return_paths, config.fire_threshold, over_budget,
        )
        low_confidence = interrupted

    if completed < config.n_simulations:
        warnings.append(f"時間制限により試行{completed}/{config.n_simulations}回で打ち切り")
    elif low_confidence:
        warnings.append("時間制限によりFIRE年齢探索を中断")

    yearly_percentiles = {}
    for year_idx, values in enumerate(yearly_balances):
        values.sort()
        yearly_percentiles[profile.current_age + year_idx] = {
            p: _percentile_from_sorted(values, p) for p in MC_PERCENTILES
        }

    median_terminal = yearly_percentiles[END_AGE][50]
    score = calculate_score(survival_rate, median_terminal, base_expenses(profile, END_AGE - 1))

    return SimulationResult(
        score=score,
        metrics=KeyMetrics(
            survival_rate=survival_rate,
            fire_age=fire_age,
            years_to_fire=fire_age - profile.current_age if fire_age is not None else None,
            median_terminal_balance=median_terminal,
        ),
        yearly_percentiles=yearly_percentiles,
        n_simulations=config.n_simulations,
        trials_completed=completed,
        low_confidence=low_confidence,
        seed=config.seed,
        warnings=tuple(warnings),
    )
