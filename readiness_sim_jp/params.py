"""Household profile, validation and numeric guards."""

import dataclasses
import math
from dataclasses import dataclass

END_AGE = 100  # シミュレーション終端年齢
PENSION_AGE = 65  # 公的年金・DC年金の受給開始年齢
DEFAULT_POST_RETIRE_INCOME_END_AGE = 75

# expected_return が NaN/None のときの安全側フォールバック（%）
SAFE_EXPECTED_RETURN = 3.0

HOUSEHOLD_MODES = ("solo", "couple")


@dataclass(frozen=True)
class Profile:
    """Household financial snapshot (万円/年, ages in years)."""

    current_age: int
    target_retire_age: int
    mode: str = "solo"

    # Income (額面, 万円/年)
    gross_income: float = 0.0
    partner_gross_income: float = 0.0
    rsu_annual: float = 0.0
    partner_rsu_annual: float = 0.0
    side_income_net: float = 0.0  # 副業収入（手取り）

    # Expenses (万円/年, 現在価値)
    living_cost_annual: float = 0.0
    housing_cost_annual: float = 0.0

    # Assets (万円)
    asset_cash: float = 0.0
    asset_invest: float = 0.0
    asset_defined_contribution_jp: float = 0.0  # 企業型DC・iDeCo残高
    dc_contribution_annual: float = 0.0

    # Investment / macro (%)
    expected_return: float = 5.0
    inflation_rate: float = 2.0

    # Retirement
    post_retire_income: float = 0.0  # 退職後の事業収入（顧問・コンサル等、額面）
    post_retire_income_end_age: int | None = None
    retire_passive_income: float = 0.0
    retire_spending_multiplier: float = 0.8

    # None=年収から自動計算, 数値=手動の実効税率（%）
    effective_tax_rate: float | None = None

    @property
    def is_couple(self) -> bool:
        return self.mode == "couple"

    @property
    def liquid_assets(self) -> float:
        return self.asset_cash + self.asset_invest

    @property
    def post_retire_end_age(self) -> int:
        if self.post_retire_income_end_age is None:
            return DEFAULT_POST_RETIRE_INCOME_END_AGE
        return self.post_retire_income_end_age

    def inflation_factor(self, years: float) -> float:
        """Cumulative cost inflation factor after `years` from current age."""
        return (1 + self.inflation_rate / 100) ** years


_REQUIRED_NUMERIC = (
    "current_age",
    "target_retire_age",
    "gross_income",
    "living_cost_annual",
    "housing_cost_annual",
    "asset_cash",
    "asset_invest",
)

_NON_NEGATIVE = (
    "gross_income",
    "partner_gross_income",
    "rsu_annual",
    "partner_rsu_annual",
    "side_income_net",
    "living_cost_annual",
    "housing_cost_annual",
    "asset_cash",
    "asset_invest",
    "asset_defined_contribution_jp",
    "dc_contribution_annual",
    "post_retire_income",
    "retire_passive_income",
    "retire_spending_multiplier",
)

# Optional numerics: NaN/None is replaced by these (field → default)
_OPTIONAL_DEFAULTS = {
    f.name: f.default
    for f in dataclasses.fields(Profile)
    if f.name not in _REQUIRED_NUMERIC and f.name not in ("mode", "post_retire_income_end_age", "effective_tax_rate")
}
_OPTIONAL_DEFAULTS["expected_return"] = SAFE_EXPECTED_RETURN

_AGE_FIELDS = ("current_age", "target_retire_age", "post_retire_income_end_age")


class ProfileValidationError(ValueError):
    """Profile rejected before simulation. `errors` holds (field, message) pairs."""

    def __init__(self, errors: list[tuple[str, str]]):
        self.errors = errors
        messages = "; ".join(f"{name}: {message}" for name, message in errors)
        super().__init__(f"プロファイルのバリデーションエラー: {messages}")

    @property
    def fields(self) -> list[str]:
        return [name for name, _ in self.errors]


def _is_missing(value) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def sanitize_profile(profile: Profile) -> tuple[Profile, list[str]]:
    """Replace NaN/None in optional numeric fields with defaults and turn
    integral float ages (e.g. `30.0` from TOML) into ints.

    Returns (sanitized_profile, warnings). Required fields are left untouched
    so that validate_profile() reports them.
    """
    warnings: list[str] = []
    updates: dict = {}
    for name, default in _OPTIONAL_DEFAULTS.items():
        value = getattr(profile, name)
        if _is_missing(value):
            updates[name] = default
            warnings.append(f"{name}: 数値でないため既定値{default}を使用")
    end_age = profile.post_retire_income_end_age
    if end_age is not None and isinstance(end_age, float) and math.isnan(end_age):
        updates["post_retire_income_end_age"] = None
        warnings.append("post_retire_income_end_age: 数値でないため未設定として扱う")
    if _is_missing(profile.effective_tax_rate) and profile.effective_tax_rate is not None:
        updates["effective_tax_rate"] = None
        warnings.append("effective_tax_rate: 数値でないため自動計算に切替")
    # TOML の `30.0` など整数値の float 年齢は int に揃える
    for name in _AGE_FIELDS:
        value = getattr(profile, name)
        if isinstance(value, float) and value.is_integer():
            updates[name] = int(value)
    if not updates:
        return profile, warnings
    return dataclasses.replace(profile, **updates), warnings


def validate_profile(profile: Profile) -> list[tuple[str, str]]:
    """Validate a profile. Returns list of (field, message); empty when valid."""
    errors: list[tuple[str, str]] = []

    for name in _REQUIRED_NUMERIC:
        if _is_missing(getattr(profile, name)):
            errors.append((name, "必須項目が未入力です"))
    if errors:
        return errors

    if profile.mode not in HOUSEHOLD_MODES:
        errors.append(("mode", f"世帯区分は{'/'.join(HOUSEHOLD_MODES)}のいずれかです"))

    if int(profile.current_age) != profile.current_age or not 0 <= profile.current_age < END_AGE:
        errors.append(("current_age", f"年齢は0〜{END_AGE - 1}の整数で入力してください"))
    if int(profile.target_retire_age) != profile.target_retire_age:
        errors.append(("target_retire_age", "目標退職年齢は整数で入力してください"))
    elif profile.target_retire_age <= profile.current_age:
        errors.append((
            "target_retire_age",
            f"目標退職年齢{profile.target_retire_age}歳は現在年齢{profile.current_age}歳より後にしてください",
        ))

    for name in _NON_NEGATIVE:
        value = getattr(profile, name)
        if not _is_missing(value) and value < 0:
            errors.append((name, "0以上で入力してください"))

    if not _is_missing(profile.expected_return) and not -50 <= profile.expected_return <= 100:
        errors.append(("expected_return", "期待リターンは-50〜100の範囲で入力してください"))
    if not _is_missing(profile.inflation_rate) and not -10 <= profile.inflation_rate <= 30:
        errors.append(("inflation_rate", "インフレ率は-10〜30の範囲で入力してください"))

    if profile.effective_tax_rate is not None and not 0 <= profile.effective_tax_rate <= 100:
        errors.append(("effective_tax_rate", "実効税率は0〜100の範囲で入力してください"))

    end_age = profile.post_retire_income_end_age
    if end_age is not None and end_age < profile.target_retire_age:
        errors.append((
            "post_retire_income_end_age",
            f"退職後収入の終了年齢{end_age}歳は目標退職年齢{profile.target_retire_age}歳以上にしてください",
        ))

    return errors


def check_profile(profile: Profile) -> tuple[Profile, list[str]]:
    """Sanitize then validate. Raises ProfileValidationError on invalid input."""
    sanitized, warnings = sanitize_profile(profile)
    errors = validate_profile(sanitized)
    if errors:
        raise ProfileValidationError(errors)
    return sanitized, warnings
