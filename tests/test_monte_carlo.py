"""Tests for the Monte Carlo engine: scoring, FIRE search and time budget."""

import dataclasses
from random import Random

import pytest
from readiness_sim_jp import END_AGE, Profile, ProfileValidationError
from readiness_sim_jp.events import LifeEvent, LifeEventError
from readiness_sim_jp.monte_carlo import (
    MC_PERCENTILES,
    MonteCarloConfig,
    _sample_log_normal_returns,
    calculate_score,
    score_level,
    simulate,
)


BASE = Profile(
    current_age=30,
    target_retire_age=50,
    gross_income=800,
    living_cost_annual=300,
    housing_cost_annual=120,
    asset_cash=500,
    asset_invest=300,
)

# 支出が小さく貯蓄率の高い世帯（FIRE年齢の探索用）
SAVER = Profile(
    current_age=30,
    target_retire_age=60,
    gross_income=1500,
    living_cost_annual=200,
    housing_cost_annual=0,
    asset_cash=0,
    asset_invest=0,
    inflation_rate=0,
)

FAST = MonteCarloConfig(n_simulations=200)


class _WrappedRandom:
    """RNG exposing only random()."""

    def __init__(self, seed):
        self._rng = Random(seed)

    def random(self):
        return self._rng.random()


class _FakeClock:
    """Advances one second per call."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        t = self.now
        self.now += 1.0
        return t


class TestSimulate:
    def test_result_bounds(self):
        result = simulate(BASE, config=FAST)
        assert 0 <= result.score.overall <= 100
        assert 0 <= result.metrics.survival_rate <= 100
        assert result.trials_completed == 200
        assert result.n_simulations == 200
        assert result.low_confidence is False
        assert result.seed == 42

    def test_deterministic_with_seed(self):
        assert simulate(BASE, config=FAST) == simulate(BASE, config=FAST)

    def test_injected_rng(self):
        config = MonteCarloConfig(n_simulations=100, seed=7)
        injected = simulate(BASE, config=config, rng=_WrappedRandom(7))
        assert injected.yearly_percentiles == simulate(BASE, config=config).yearly_percentiles

    def test_percentile_table(self):
        result = simulate(BASE, config=FAST)
        assert sorted(result.yearly_percentiles) == list(range(30, END_AGE + 1))
        for row in result.yearly_percentiles.values():
            assert tuple(row) == MC_PERCENTILES
            values = [row[p] for p in MC_PERCENTILES]
            assert values == sorted(values)

    def test_initial_balance_row(self):
        result = simulate(BASE, config=FAST)
        assert set(result.yearly_percentiles[30].values()) == {800}

    def test_median_terminal_matches_table(self):
        result = simulate(BASE, config=FAST)
        assert result.metrics.median_terminal_balance == result.yearly_percentiles[END_AGE][50]

    def test_more_assets_never_worse(self):
        poor = simulate(BASE, config=FAST)
        rich = simulate(dataclasses.replace(BASE, asset_invest=3000), config=FAST)
        assert rich.metrics.survival_rate >= poor.metrics.survival_rate
        for age, row in rich.yearly_percentiles.items():
            for p in MC_PERCENTILES:
                assert row[p] >= poor.yearly_percentiles[age][p]

    def test_higher_costs_never_better(self):
        base = simulate(BASE, config=FAST)
        costly = simulate(dataclasses.replace(BASE, living_cost_annual=400), config=FAST)
        assert costly.metrics.survival_rate <= base.metrics.survival_rate
        assert costly.metrics.median_terminal_balance <= base.metrics.median_terminal_balance

    def test_hopeless_profile(self):
        p = Profile(
            current_age=30, target_retire_age=40, gross_income=0, living_cost_annual=100,
            housing_cost_annual=0, asset_cash=0, asset_invest=0,
        )
        result = simulate(p, config=MonteCarloConfig(n_simulations=50))
        assert result.metrics.survival_rate == 0
        assert result.metrics.fire_age is None
        assert result.metrics.years_to_fire is None
        assert result.score.overall == 0
        assert result.score.level == "RED"

    def test_sanitize_warnings_surface(self):
        p = dataclasses.replace(BASE, inflation_rate=float("nan"))
        result = simulate(p, config=MonteCarloConfig(n_simulations=20))
        assert any("inflation_rate" in w for w in result.warnings)

    def test_progress_on_stderr(self, capsys):
        simulate(BASE, config=MonteCarloConfig(n_simulations=100), quiet=False)
        assert "試行: 100/100" in capsys.readouterr().err


class TestRegressionScenario:
    """30歳・年収800万・資産800万、1000試行・seed 42 の結果を固定する"""

    def test_pinned_result(self):
        result = simulate(BASE, config=MonteCarloConfig(n_simulations=1000, seed=42))
        assert result.score.overall == 3
        assert result.metrics.survival_rate == pytest.approx(4.4)
        assert result.metrics.fire_age is None
        assert result.trials_completed == 1000


class TestSimulateErrors:
    def test_zero_trials(self):
        with pytest.raises(ValueError):
            simulate(BASE, config=MonteCarloConfig(n_simulations=0))

    def test_invalid_profile(self):
        with pytest.raises(ProfileValidationError):
            simulate(dataclasses.replace(BASE, asset_cash=-1), config=FAST)

    def test_event_before_current_age(self):
        event = LifeEvent(age=25, type="expense_increase", amount_one_time=-100)
        with pytest.raises(LifeEventError):
            simulate(BASE, [event], config=FAST)


class TestFireAge:
    def test_fire_age_is_earliest_passing_age(self):
        result = simulate(SAVER, config=FAST)
        fire_age = result.metrics.fire_age
        assert fire_age is not None
        assert SAVER.current_age < fire_age
        assert result.metrics.years_to_fire == fire_age - SAVER.current_age

        at_fire = simulate(dataclasses.replace(SAVER, target_retire_age=fire_age), config=FAST)
        assert at_fire.metrics.survival_rate >= FAST.fire_threshold
        before = simulate(dataclasses.replace(SAVER, target_retire_age=fire_age - 1), config=FAST)
        assert before.metrics.survival_rate < FAST.fire_threshold

    def test_fire_age_independent_of_target(self):
        later = dataclasses.replace(SAVER, target_retire_age=70)
        assert simulate(later, config=FAST).metrics.fire_age == simulate(SAVER, config=FAST).metrics.fire_age

    def test_lower_threshold_never_later(self):
        strict = simulate(SAVER, config=FAST).metrics.fire_age
        loose = simulate(SAVER, config=MonteCarloConfig(n_simulations=200, fire_threshold=50)).metrics.fire_age
        assert loose <= strict


class TestTimeBudget:
    def test_trials_cut_short(self):
        config = MonteCarloConfig(n_simulations=50, time_budget=0.5, clock=_FakeClock())
        result = simulate(BASE, config=config)
        assert result.trials_completed == 1
        assert result.low_confidence is True
        assert result.metrics.fire_age is None
        assert any("1/50" in w for w in result.warnings)

    def test_single_trial_always_runs(self):
        config = MonteCarloConfig(n_simulations=1, time_budget=0.0, clock=_FakeClock())
        result = simulate(BASE, config=config)
        assert result.trials_completed == 1

    def test_generous_budget(self):
        config = MonteCarloConfig(n_simulations=50, time_budget=3600)
        result = simulate(BASE, config=config)
        assert result.trials_completed == 50
        assert result.low_confidence is False
        assert result.warnings == ()


class TestLifeEventsInSimulation:
    def test_event_only_changes_later_balances(self):
        cost = LifeEvent(age=40, type="expense_increase", amount_one_time=-500)
        base = simulate(BASE, config=FAST)
        with_cost = simulate(BASE, [cost], config=FAST)
        for age in range(30, 41):
            assert with_cost.yearly_percentiles[age] == base.yearly_percentiles[age]
        assert with_cost.yearly_percentiles[41][50] < base.yearly_percentiles[41][50]


class TestScore:
    def test_full_survival_no_buffer(self):
        detail = calculate_score(100, 0, 100)
        assert detail.buffer == 0
        assert detail.overall == 70
        assert detail.level == "YELLOW"

    def test_full_marks(self):
        detail = calculate_score(100, 1000, 100)
        assert detail.buffer == 100
        assert detail.overall == 100
        assert detail.level == "GREEN"

    def test_buffer_clamped(self):
        assert calculate_score(0, 1e9, 100).buffer == 100
        assert calculate_score(0, -1e9, 100).buffer == 0

    def test_weighted(self):
        detail = calculate_score(50, 500, 100)
        assert detail.overall == 50
        assert detail.level == "ORANGE"

    def test_zero_final_expenses(self):
        assert calculate_score(100, 10, 0).buffer == 100
        assert calculate_score(100, 0, 0).buffer == 0

    @pytest.mark.parametrize("score,level", [
        (100, "GREEN"), (80, "GREEN"), (79, "YELLOW"), (60, "YELLOW"),
        (59, "ORANGE"), (40, "ORANGE"), (39, "RED"), (0, "RED"),
    ])
    def test_levels(self, score, level):
        assert score_level(score) == level


class TestLogNormalReturns:
    def test_arithmetic_mean(self):
        returns = _sample_log_normal_returns(Random(1), 40000, 0.05, 0.15)
        assert sum(returns) / len(returns) == pytest.approx(0.05, abs=0.004)

    def test_no_total_loss(self):
        returns = _sample_log_normal_returns(Random(2), 10000, 0.05, 0.3)
        assert min(returns) > -1

    def test_zero_volatility(self):
        returns = _sample_log_normal_returns(Random(3), 10, 0.04, 0.0)
        assert returns == pytest.approx([0.04] * 10)
