"""CLI entry point for a single readiness simulation."""

import sys

from readiness_sim_jp.config import build_mc_config, build_profile, parse_args
from readiness_sim_jp.events import (
    LifeEventError,
    branches_to_life_events,
    create_default_branches,
)
from readiness_sim_jp.income import annual_pension, net_income_for_age, public_pension
from readiness_sim_jp.margin import HEALTH_LABELS, calculate_margin, evaluate_money_margin_health
from readiness_sim_jp.monte_carlo import SimulationResult, simulate
from readiness_sim_jp.params import END_AGE, PENSION_AGE, Profile, ProfileValidationError, check_profile
from readiness_sim_jp.simulation import simulate_deterministic

LEVEL_LABELS = {
    "GREEN": "良好",
    "YELLOW": "概ね良好",
    "ORANGE": "要注意",
    "RED": "危険",
}


def _fmt_oku(v: float) -> str:
    """Format value in 万円 to 億円 string with sign."""
    oku = v / 10000
    if oku < 0:
        return f"▲{abs(oku):.2f}億"
    return f"{oku:.2f}億"


def _add_args(parser):
    parser.add_argument(
        "--apply", type=str, default="",
        help="適用する分岐ID（カンマ区切り、設定ファイルまたは既定分岐から選択）",
    )
    parser.add_argument("--yearly", action="store_true", help="期待リターン固定の年次推移を表示")


def _print_header(profile: Profile, applied: list[str], events=()):
    print("=" * 80)
    print(
        f"FIRE準備度シミュレーション（{profile.current_age}歳-{END_AGE}歳、"
        f"{END_AGE - profile.current_age}年間）"
    )
    mode = "夫婦" if profile.is_couple else "単身"
    income = f"本人額面: {profile.gross_income:.0f}万円"
    if profile.is_couple:
        income += f" / パートナー額面: {profile.partner_gross_income:.0f}万円"
    print(f"  世帯: {mode} / {income}")
    print(
        f"  手取り（現在）: {net_income_for_age(profile, profile.current_age):.0f}万円/年 / "
        f"生活費: {profile.living_cost_annual:.0f}万円 / 住居費: {profile.housing_cost_annual:.0f}万円"
    )
    print(
        f"  金融資産: {profile.liquid_assets:.0f}万円（現金{profile.asset_cash:.0f} + 投資{profile.asset_invest:.0f}）"
        f" / DC残高: {profile.asset_defined_contribution_jp:.0f}万円"
    )
    print(
        f"  目標退職: {profile.target_retire_age}歳 / 期待リターン: {profile.expected_return:.1f}% / "
        f"インフレ: {profile.inflation_rate:.1f}%"
    )
    print(
        f"  年金（{PENSION_AGE}歳〜）: 公的{public_pension(profile, events):.0f}万円 + DC{annual_pension(profile):.0f}万円/年"
    )
    if applied:
        print(f"  適用分岐: {', '.join(applied)}")
    print("=" * 80)


def _print_result(result: SimulationResult, current_age: int):
    score = result.score
    metrics = result.metrics
    print("\n【準備度スコア】")
    print("─" * 80)
    print(f"  スコア: {score.overall} / 100（{score.level}: {LEVEL_LABELS[score.level]}）")
    print(f"  生存率: {metrics.survival_rate:.1f}% / 資産バッファ: {score.buffer:.0f}")
    if metrics.fire_age is not None:
        print(f"  FIRE可能年齢: {metrics.fire_age}歳（あと{metrics.years_to_fire}年）")
    else:
        print(f"  FIRE可能年齢: {END_AGE}歳までに到達せず")
    print(f"  {END_AGE}歳時点の資産（中央値）: {_fmt_oku(metrics.median_terminal_balance)}")
    confidence = "（低信頼: 時間制限で打ち切り）" if result.low_confidence else ""
    print(f"  試行: {result.trials_completed:,}/{result.n_simulations:,}回 / seed={result.seed}{confidence}")
    print("─" * 80)

    print(f"\n{'年齢':<6}{'P5(悲観)':>12}{'P25':>12}{'P50(中央値)':>14}{'P75':>12}{'P95(楽観)':>12}")
    print("─" * 70)
    for age, pct in result.yearly_percentiles.items():
        if (age - current_age) % 10 != 0 and age != END_AGE:
            continue
        print(
            f"{age:<6}"
            f"{_fmt_oku(pct[5]):>12}"
            f"{_fmt_oku(pct[25]):>12}"
            f"{_fmt_oku(pct[50]):>14}"
            f"{_fmt_oku(pct[75]):>12}"
            f"{_fmt_oku(pct[95]):>12}"
        )
    print("─" * 70)


def _print_margin(profile: Profile, result: SimulationResult):
    margin = calculate_margin(profile, result)
    health = evaluate_money_margin_health(margin.money)
    print("\n【余白】")
    print("─" * 80)
    print(
        f"  お金: 月間貯蓄{margin.money.monthly_net_savings:.1f}万円 / "
        f"生活防衛資金{margin.money.emergency_fund_coverage:.1f}か月分 / "
        f"可処分所得{margin.money.annual_disposable_income:.0f}万円/年"
        f"（{HEALTH_LABELS[health]}）"
    )
    print(
        f"  時間: 目標まで{margin.time.years_to_target}年 / 進捗{margin.time.progress_percent:.0f}% / "
        f"就労可能{margin.time.working_years_left}年 / 前倒し余地{margin.time.buffer_years}年"
    )
    print(
        f"  リスク: 許容下落{margin.risk.drawdown_capacity:.0f}% / "
        f"ボラティリティ許容{margin.risk.volatility_tolerance:.0f} / "
        f"順序リスク{margin.risk.sequence_risk:.1f}"
    )
    print("─" * 80)


def _print_yearly_log(log: dict):
    print("\n【年次推移（期待リターン固定）】")
    print(f"{'年齢':<6}{'手取り':>10}{'支出':>10}{'イベント':>10}{'収支':>10}{'資産':>12}")
    print("─" * 60)
    for entry in log["yearly_log"]:
        print(
            f"{entry['age']:<6}"
            f"{entry['income']:>10.0f}"
            f"{entry['expenses']:>10.0f}"
            f"{entry['events']:>10.0f}"
            f"{entry['cashflow']:>10.0f}"
            f"{_fmt_oku(entry['balance']):>12}"
        )
    print("─" * 60)
    if log["depletion_age"] is not None:
        print(f"  資産枯渇: {log['depletion_age']}歳")


def _fail_validation(e: ProfileValidationError):
    for field, message in e.errors:
        print(f"  ✗ {field}: {message}", file=sys.stderr)
    raise SystemExit(1)


def main(argv: list[str] | None = None):
    r, args = parse_args("FIRE準備度シミュレーション", _add_args, argv)
    config = build_mc_config(r)
    try:
        profile, warnings = check_profile(build_profile(r))
    except ProfileValidationError as e:
        _fail_validation(e)

    applied = [s.strip() for s in args.apply.split(",") if s.strip()]
    branches = {b.id: b for b in (r["branches"] or create_default_branches(profile))}
    unknown = [branch_id for branch_id in applied if branch_id not in branches]
    if unknown:
        print(f"未知の分岐ID: {', '.join(unknown)}", file=sys.stderr)
        raise SystemExit(1)
    events = branches_to_life_events(branches[branch_id] for branch_id in applied)

    try:
        result = simulate(profile, events, config, quiet=args.quiet)
    except LifeEventError as e:
        print(f"  ✗ {e}", file=sys.stderr)
        raise SystemExit(1)

    _print_header(profile, applied, events)
    for warning in (*warnings, *result.warnings):
        print(f"  ⚠ {warning}")
    _print_result(result, profile.current_age)
    _print_margin(profile, result)
    if args.yearly:
        _print_yearly_log(simulate_deterministic(profile, events))


if __name__ == "__main__":
    main()
