"""Tests for Profile validation and numeric guards."""

import dataclasses
import math

import pytest
from readiness_sim_jp import MonteCarloConfig, Profile, ProfileValidationError, simulate
from readiness_sim_jp.params import (
    SAFE_EXPECTED_RETURN,
    check_profile,
    sanitize_profile,
    validate_profile,
)


VALID = Profile(
    current_age=30,
    target_retire_age=50,
    gross_income=800,
    living_cost_annual=300,
    housing_cost_annual=120,
    asset_cash=500,
    asset_invest=300,
)


def _fields(profile: Profile) -> list[str]:
    return [name for name, _ in validate_profile(profile)]


class TestValidateProfile:
    def test_valid_profile(self):
        assert validate_profile(VALID) == []

    def test_retire_age_not_after_current(self):
        assert _fields(dataclasses.replace(VALID, target_retire_age=30)) == ["target_retire_age"]
        assert "target_retire_age" in _fields(dataclasses.replace(VALID, target_retire_age=25))

    def test_negative_amounts(self):
        assert _fields(dataclasses.replace(VALID, gross_income=-1)) == ["gross_income"]
        assert _fields(dataclasses.replace(VALID, asset_cash=-100)) == ["asset_cash"]
        assert _fields(dataclasses.replace(VALID, dc_contribution_annual=-1)) == ["dc_contribution_annual"]

    def test_current_age_range(self):
        assert "current_age" in _fields(dataclasses.replace(VALID, current_age=-1))
        assert "current_age" in _fields(dataclasses.replace(VALID, current_age=100, target_retire_age=101))

    def test_non_integer_age(self):
        assert "current_age" in _fields(dataclasses.replace(VALID, current_age=30.5))

    def test_mode(self):
        assert _fields(dataclasses.replace(VALID, mode="triple")) == ["mode"]

    def test_expected_return_range(self):
        assert _fields(dataclasses.replace(VALID, expected_return=150)) == ["expected_return"]

    def test_tax_rate_override_range(self):
        assert _fields(dataclasses.replace(VALID, effective_tax_rate=120)) == ["effective_tax_rate"]
        assert _fields(dataclasses.replace(VALID, effective_tax_rate=0)) == []

    def test_post_retire_income_end_age(self):
        p = dataclasses.replace(VALID, post_retire_income_end_age=45)
        assert _fields(p) == ["post_retire_income_end_age"]
        assert _fields(dataclasses.replace(VALID, post_retire_income_end_age=50)) == []

    def test_missing_required(self):
        p = dataclasses.replace(VALID, living_cost_annual=None)
        assert _fields(p) == ["living_cost_annual"]


class TestSanitizeProfile:
    def test_clean_profile_untouched(self):
        sanitized, warnings = sanitize_profile(VALID)
        assert sanitized is VALID
        assert warnings == []

    def test_nan_inflation_defaults(self):
        p = dataclasses.replace(VALID, inflation_rate=float("nan"))
        sanitized, warnings = sanitize_profile(p)
        assert sanitized.inflation_rate == 2.0
        assert any("inflation_rate" in w for w in warnings)

    def test_expected_return_safe_fallback(self):
        for bad in (None, float("nan")):
            sanitized, warnings = sanitize_profile(dataclasses.replace(VALID, expected_return=bad))
            assert sanitized.expected_return == SAFE_EXPECTED_RETURN
            assert len(warnings) == 1

    def test_nan_tax_override_becomes_auto(self):
        sanitized, warnings = sanitize_profile(dataclasses.replace(VALID, effective_tax_rate=float("nan")))
        assert sanitized.effective_tax_rate is None
        assert warnings

    def test_required_fields_left_for_validation(self):
        p = dataclasses.replace(VALID, asset_cash=float("nan"))
        sanitized, _ = sanitize_profile(p)
        assert math.isnan(sanitized.asset_cash)


class TestCheckProfile:
    def test_raises_with_field_names(self):
        p = dataclasses.replace(VALID, target_retire_age=20, gross_income=-5)
        with pytest.raises(ProfileValidationError, match="target_retire_age") as exc:
            check_profile(p)
        assert set(exc.value.fields) == {"target_retire_age", "gross_income"}

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            check_profile(dataclasses.replace(VALID, mode="x"))

    def test_returns_sanitized(self):
        sanitized, warnings = check_profile(dataclasses.replace(VALID, retire_passive_income=None))
        assert sanitized.retire_passive_income == 0.0
        assert len(warnings) == 1


class TestProfileHelpers:
    def test_liquid_assets(self):
        assert VALID.liquid_assets == 800

    def test_inflation_factor(self):
        assert VALID.inflation_factor(0) == 1.0
        assert VALID.inflation_factor(10) == pytest.approx(1.02 ** 10, rel=1e-10)

    def test_post_retire_end_age_default(self):
        assert VALID.post_retire_end_age == 75
        assert dataclasses.replace(VALID, post_retire_income_end_age=70).post_retire_end_age == 70

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            VALID.gross_income = 1000


class TestFloatAges:
    def test_integral_float_ages_become_int(self):
        p = dataclasses.replace(VALID, current_age=30.0, target_retire_age=50.0, post_retire_income_end_age=70.0)
        sanitized, warnings = sanitize_profile(p)
        assert type(sanitized.current_age) is int
        assert type(sanitized.target_retire_age) is int
        assert type(sanitized.post_retire_income_end_age) is int
        assert warnings == []

    def test_fractional_age_rejected(self):
        with pytest.raises(ProfileValidationError) as exc:
            check_profile(dataclasses.replace(VALID, current_age=30.5))
        assert exc.value.fields == ["current_age"]

    def test_float_ages_simulate(self):
        p = dataclasses.replace(VALID, current_age=30.0, target_retire_age=50.0)
        result = simulate(p, config=MonteCarloConfig(n_simulations=20))
        assert result == simulate(VALID, config=MonteCarloConfig(n_simulations=20))
