"""Effective tax rate estimation for employment income (simplified Japanese system)."""

# 所得税累進税率テーブル（国税庁）
# (上限課税所得・万円, 税率)
_INCOME_TAX_BRACKETS: tuple[tuple[float, float], ...] = (
    (195, 0.05),
    (330, 0.10),
    (695, 0.20),
    (900, 0.23),
    (1800, 0.33),
    (4000, 0.40),
    (float("inf"), 0.45),
)

RESIDENT_TAX_RATE = 0.10  # 住民税率（一律10%）
RECONSTRUCTION_SURTAX = 0.021  # 復興特別所得税

# 給与所得控除（2024年基準）: (上限年収, 係数, 加算額)
_EMPLOYMENT_DEDUCTION_MIN = 55
_EMPLOYMENT_DEDUCTION_STEPS: tuple[tuple[float, float, float], ...] = (
    (180, 0.4, -10),
    (360, 0.3, 8),
    (660, 0.2, 44),
    (850, 0.1, 110),
)
_EMPLOYMENT_DEDUCTION_CAP = 195

# 社会保険料: (料率, 上限年収)
PENSION_INSURANCE = (0.0915, 780)   # 厚生年金（標準報酬月額65万で上限）
HEALTH_INSURANCE = (0.05, 1390)     # 健康保険
EMPLOYMENT_INSURANCE_RATE = 0.006   # 雇用保険

# 基礎控除: 合計所得2400万超で段階縮小（2500万で0）
BASIC_DEDUCTION = 48
_BASIC_DEDUCTION_PHASEOUT = (2400, 2500)

POST_RETIRE_TAX_RATE = 20.0  # 退職後事業収入の実効税率（%、固定）


def calc_employment_income_deduction(gross_annual: float) -> float:
    """給与所得控除 (万円) for a gross annual salary."""
    if gross_annual <= 162.5:
        return _EMPLOYMENT_DEDUCTION_MIN
    for upper, rate, offset in _EMPLOYMENT_DEDUCTION_STEPS:
        if gross_annual <= upper:
            return gross_annual * rate + offset
    return _EMPLOYMENT_DEDUCTION_CAP


def calc_social_insurance(gross_annual: float) -> float:
    """Employee share of social insurance premiums (万円/年)."""
    pension_rate, pension_cap = PENSION_INSURANCE
    health_rate, health_cap = HEALTH_INSURANCE
    return (
        min(gross_annual, pension_cap) * pension_rate
        + min(gross_annual, health_cap) * health_rate
        + gross_annual * EMPLOYMENT_INSURANCE_RATE
    )


def calc_basic_deduction(total_income: float) -> float:
    """基礎控除, phased out linearly between 2400万 and 2500万 of total income.

    Linear phase-out keeps take-home pay monotonic in gross income.
    """
    lo, hi = _BASIC_DEDUCTION_PHASEOUT
    if total_income <= lo:
        return BASIC_DEDUCTION
    if total_income >= hi:
        return 0.0
    return BASIC_DEDUCTION * (hi - total_income) / (hi - lo)


def calc_progressive_income_tax(taxable_income: float) -> float:
    """National income tax incl. reconstruction surtax (万円)."""
    tax = 0.0
    prev = 0.0
    for upper, rate in _INCOME_TAX_BRACKETS:
        if taxable_income <= prev:
            break
        tax += (min(taxable_income, upper) - prev) * rate
        prev = upper
    return tax * (1 + RECONSTRUCTION_SURTAX)


def calc_effective_tax_rate(gross_annual: float) -> float:
    """Return effective tax+social insurance rate (%) for a gross annual salary (万円).

    所得税（累進）+ 復興特別所得税 + 住民税10% + 社会保険料の合計 / 額面。
    Not tax-accurate; roughly ±2% in the 800万-3000万 band.
    """
    if gross_annual <= 0:
        return 0.0
    employment_deduction = calc_employment_income_deduction(gross_annual)
    social_insurance = calc_social_insurance(gross_annual)
    basic_deduction = calc_basic_deduction(gross_annual - employment_deduction)
    taxable = max(0.0, gross_annual - employment_deduction - basic_deduction - social_insurance)

    income_tax = calc_progressive_income_tax(taxable)
    resident_tax = taxable * RESIDENT_TAX_RATE
    total = income_tax + resident_tax + social_insurance
    return total / gross_annual * 100


def calc_net_income(gross_annual: float, tax_rate_override: float | None = None) -> float:
    """Take-home pay (万円/年) from gross, using the override rate (%) when given."""
    if gross_annual <= 0:
        return 0.0
    rate = calc_effective_tax_rate(gross_annual) if tax_rate_override is None else tax_rate_override
    return gross_annual * (1 - rate / 100)
