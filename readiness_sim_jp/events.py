"""Life decisions (branches) and the dated cashflow adjustments they imply."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from readiness_sim_jp.params import Profile

CERTAINTIES = ("confirmed", "likely", "uncertain")

EVENT_TYPES = (
    "income_increase",
    "income_decrease",
    "expense_increase",
    "expense_decrease",
    "asset_gain",
    "asset_purchase",
    "housing_purchase",
    "rental_income",
    "custom",
)

# 名目額で発生するイベント（インフレ調整しない）
NOMINAL_EVENT_TYPES = ("asset_gain",)

# Housing purchase defaults
DEFAULT_PROPERTY_PRICE = 8000
DEFAULT_DOWN_PAYMENT = 1500
DEFAULT_LOAN_YEARS = 35
DEFAULT_LOAN_RATE = 0.5  # %
DEFAULT_OWNER_ANNUAL_COST = 40  # 管理費+固定資産税（万円/年）
DEFAULT_PURCHASE_COST_RATE = 7  # 諸費用（物件価格の%）
HOUSING_PRICE_RANGE = (5000, 12000)

# 教育費モデル（子の年齢ベース）: (開始年齢, 年数, 万円/年)
CHILD_COST_STAGES: tuple[tuple[int, int, float], ...] = (
    (0, 6, 50),     # 保育料
    (6, 12, 100),   # 学費+塾
    (18, 4, 200),   # 大学費用
)
_CHILD_STAGE_LABELS = ("保育料", "学費+塾", "大学費用")


class LifeEventError(ValueError):
    """Raised when a life event cannot be applied to a profile."""


@dataclass(frozen=True)
class LifeEvent:
    """Dated cashflow adjustment (万円). Positive adds cash, negative withdraws.

    For income_increase/income_decrease, amount_annual_delta is a signed change
    to `target`'s gross income, applied before tax during working years.
    """

    age: int
    type: str
    amount_one_time: float = 0.0
    amount_annual_delta: float = 0.0
    end_age: int | None = None  # exclusive; None = horizon
    target: str = "self"
    label: str = ""
    indexed: bool = True

    def is_active(self, age: int) -> bool:
        """Whether the recurring delta applies at `age`."""
        if age < self.age:
            return False
        return self.end_age is None or age < self.end_age

    @property
    def is_income(self) -> bool:
        return self.type in ("income_increase", "income_decrease")


@dataclass(frozen=True)
class Branch:
    """Hypothetical life decision tagged with how certain it is.

    `params` holds event-type specific inputs (property price, change amount, ...);
    the generic deltas cover any other event type.
    """

    id: str
    label: str
    event_type: str
    age_at_event: int
    certainty: str = "uncertain"
    description: str = ""
    one_time_amount: float = 0.0
    annual_delta: float = 0.0
    delta_end_age: int | None = None
    params: dict = field(default_factory=dict)


def _calc_equal_payment(principal: float, annual_rate: float, years: int) -> float:
    """Annual loan payment (元利均等返済)"""
    if years <= 0 or principal <= 0:
        return 0.0
    if annual_rate == 0:
        return principal / years
    r = annual_rate
    n = years
    return principal * r * (1 + r) ** n / ((1 + r) ** n - 1)


def _housing_events(branch: Branch) -> list[LifeEvent]:
    p = branch.params
    age = branch.age_at_event
    price = p.get("property_price", DEFAULT_PROPERTY_PRICE)
    down = min(p.get("down_payment", DEFAULT_DOWN_PAYMENT), price)
    loan_years = int(p.get("loan_years", DEFAULT_LOAN_YEARS))
    rate = p.get("interest_rate", DEFAULT_LOAN_RATE) / 100
    owner_cost = p.get("owner_annual_cost", DEFAULT_OWNER_ANNUAL_COST)
    purchase_cost = price * p.get("purchase_cost_rate", DEFAULT_PURCHASE_COST_RATE) / 100
    replaced_rent = p.get("replaces_housing_cost", 0.0)

    events = [
        LifeEvent(
            age=age, type="housing_purchase", amount_one_time=-(down + purchase_cost),
            label=f"{branch.label} 頭金+諸費用",
        ),
    ]
    payment = _calc_equal_payment(price - down, rate, loan_years)
    if payment > 0:
        # ローン返済は名目固定
        events.append(LifeEvent(
            age=age, type="housing_purchase", amount_annual_delta=-payment,
            end_age=age + loan_years, label=f"{branch.label} ローン返済", indexed=False,
        ))
    if owner_cost > 0:
        events.append(LifeEvent(
            age=age, type="expense_increase", amount_annual_delta=-owner_cost,
            label=f"{branch.label} 管理費・固定資産税",
        ))
    if replaced_rent > 0:
        events.append(LifeEvent(
            age=age, type="expense_decrease", amount_annual_delta=replaced_rent,
            label=f"{branch.label} 家賃終了",
        ))
    return events


def _child_events(branch: Branch) -> list[LifeEvent]:
    number = branch.params.get("child_number", 1)
    base_age = branch.age_at_event
    return [
        LifeEvent(
            age=base_age + offset, type="expense_increase", amount_annual_delta=-cost,
            end_age=base_age + offset + years, label=f"第{number}子 {stage}",
        )
        for (offset, years, cost), stage in zip(CHILD_COST_STAGES, _CHILD_STAGE_LABELS)
    ]


def _income_change_events(branch: Branch) -> list[LifeEvent]:
    change = branch.params.get("change_amount", 0.0)
    if change == 0:
        return []
    duration = branch.params.get("duration")
    age = branch.age_at_event
    return [LifeEvent(
        age=age,
        type="income_increase" if change > 0 else "income_decrease",
        amount_annual_delta=change,
        end_age=age + duration if duration else None,
        target=branch.params.get("target", "self"),
        label=branch.label,
    )]


def _partner_income_events(branch: Branch) -> list[LifeEvent]:
    amount = branch.params.get("amount", 0.0)
    if amount <= 0:
        return []
    return [LifeEvent(
        age=branch.age_at_event, type="income_decrease", amount_annual_delta=-amount,
        target="partner", label=branch.label,
    )]


def _relocation_events(branch: Branch) -> list[LifeEvent]:
    age = branch.age_at_event
    moving_cost = branch.params.get("moving_cost", 0.0)
    housing_delta = branch.params.get("housing_cost_delta", 0.0)
    events = []
    if moving_cost:
        events.append(LifeEvent(
            age=age, type="expense_increase", amount_one_time=-moving_cost,
            label=f"{branch.label} 引越し費用",
        ))
    if housing_delta:
        events.append(LifeEvent(
            age=age,
            type="expense_decrease" if housing_delta > 0 else "expense_increase",
            amount_annual_delta=housing_delta,
            label=f"{branch.label} 住居費変動",
        ))
    return events


def _generic_events(branch: Branch) -> list[LifeEvent]:
    event_type = branch.event_type if branch.event_type in EVENT_TYPES else "custom"
    indexed = branch.params.get("indexed", event_type not in NOMINAL_EVENT_TYPES)
    target = branch.params.get("target", "self")
    age = branch.age_at_event
    events = []
    if branch.one_time_amount:
        events.append(LifeEvent(
            age=age, type=event_type, amount_one_time=branch.one_time_amount,
            target=target, label=branch.label, indexed=indexed,
        ))
    if branch.annual_delta:
        events.append(LifeEvent(
            age=age, type=event_type, amount_annual_delta=branch.annual_delta,
            end_age=branch.delta_end_age, target=target, label=branch.label, indexed=indexed,
        ))
    return events


_CONVERTERS = {
    "housing_purchase": _housing_events,
    "child": _child_events,
    "income_change": _income_change_events,
    "partner_income_change": _partner_income_events,
    "relocation": _relocation_events,
    "_auto": lambda branch: [],
}


def branch_to_life_events(branch: Branch) -> tuple[LifeEvent, ...]:
    """Convert a branch into its life events, sorted by age.

    Certainty is metadata only and never changes the events produced.
    """
    converter = _CONVERTERS.get(branch.event_type, _generic_events)
    return tuple(sorted(converter(branch), key=lambda e: e.age))


def branches_to_life_events(branches: Iterable[Branch]) -> tuple[LifeEvent, ...]:
    """Union of the events of several branches, sorted by age (stable)."""
    events: list[LifeEvent] = []
    for branch in branches:
        events.extend(branch_to_life_events(branch))
    return tuple(sorted(events, key=lambda e: e.age))


def estimate_housing_purchase(profile: Profile) -> tuple[int, int]:
    """Estimate (property price, down payment) from household income and cash."""
    total_income = profile.gross_income + profile.partner_gross_income
    lo, hi = HOUSING_PRICE_RANGE
    price = min(hi, max(lo, round(total_income * 5 / 100) * 100))
    down = min(max(500, round(profile.asset_cash * 0.3 / 100) * 100), round(price * 0.2))
    return price, down


def create_default_branches(profile: Profile) -> tuple[Branch, ...]:
    """Standard what-if branches for a profile: housing, income shocks, family."""
    age = profile.current_age
    gross = profile.gross_income
    price, down = estimate_housing_purchase(profile)

    housing = Branch(
        id="housing_purchase",
        label="住宅購入",
        description=f"{price}万円（頭金{down}万円・{DEFAULT_LOAN_YEARS}年）",
        event_type="housing_purchase",
        age_at_event=age + 2,
        certainty="likely",
        params={
            "property_price": price,
            "down_payment": down,
            "loan_years": DEFAULT_LOAN_YEARS,
            "interest_rate": DEFAULT_LOAN_RATE,
            "owner_annual_cost": DEFAULT_OWNER_ANNUAL_COST,
            "purchase_cost_rate": DEFAULT_PURCHASE_COST_RATE,
            "replaces_housing_cost": profile.housing_cost_annual,
        },
    )

    def income_down(percent: int, at_age: int, branch_id: str, label: str) -> Branch:
        amount = round(gross * percent / 100)
        return Branch(
            id=branch_id,
            label=label,
            description=f"年収 -{percent}%（{amount}万円減）",
            event_type="income_change",
            age_at_event=at_age,
            certainty="uncertain",
            params={"change_amount": -amount},
        )

    pacedown_age = max(age, profile.target_retire_age - 5)
    income_20 = income_down(20, age + 3, "income_down_20", "年収ダウン -20%")
    pacedown = income_down(50, pacedown_age, "pacedown", "ペースダウン")

    if not profile.is_couple:
        return (
            housing,
            income_20,
            income_down(30, age + 3, "income_down_30", "年収ダウン -30%"),
            pacedown,
        )

    children = tuple(
        Branch(
            id=f"child_{n}",
            label=f"第{'一二'[n - 1]}子",
            description=f"{age + offset}歳",
            event_type="child",
            age_at_event=age + offset,
            certainty="likely",
            params={"child_number": n},
        )
        for n, offset in ((1, 2), (2, 4))
    )
    partner_quit = Branch(
        id="partner_quit",
        label="パートナー退職",
        description=f"{profile.partner_gross_income:.0f}万円 → 0",
        event_type="partner_income_change",
        age_at_event=age + 2,
        certainty="uncertain",
        params={"amount": profile.partner_gross_income},
    )
    return (housing, *children, income_20, pacedown, partner_quit)


def apply_life_events(profile: Profile, events: Iterable[LifeEvent]) -> tuple[LifeEvent, ...]:
    """Check events against the profile and return them sorted by age.

    Raises LifeEventError for an event dated before the current age, an unknown
    type, or an end age not after its start.
    """
    checked = tuple(sorted(events, key=lambda e: e.age))
    for event in checked:
        if event.age < profile.current_age:
            raise LifeEventError(
                f"イベント「{event.label or event.type}」の年齢{event.age}歳が"
                f"現在年齢{profile.current_age}歳より前です"
            )
        if event.type not in EVENT_TYPES:
            raise LifeEventError(f"未知のイベント種別: {event.type}")
        if event.end_age is not None and event.end_age <= event.age:
            raise LifeEventError(
                f"イベント「{event.label or event.type}」の終了年齢{event.end_age}歳は"
                f"開始年齢{event.age}歳より後にしてください"
            )
    return checked
