"""TOML config loader with CLI > config > default resolution."""

import argparse
import sys
import tomllib
from pathlib import Path
from typing import Callable

from readiness_sim_jp.events import Branch, CERTAINTIES
from readiness_sim_jp.monte_carlo import MonteCarloConfig
from readiness_sim_jp.params import Profile

DEFAULT_CONFIG_PATH = Path("config.toml")

PROFILE_KEYS = (
    "current_age",
    "target_retire_age",
    "mode",
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
    "expected_return",
    "inflation_rate",
    "post_retire_income",
    "post_retire_income_end_age",
    "retire_passive_income",
    "retire_spending_multiplier",
    "effective_tax_rate",
)

DEFAULTS = {
    "current_age": 30,
    "target_retire_age": 50,
    "mode": "solo",
    "gross_income": 800.0,
    "partner_gross_income": 0.0,
    "rsu_annual": 0.0,
    "partner_rsu_annual": 0.0,
    "side_income_net": 0.0,
    "living_cost_annual": 300.0,
    "housing_cost_annual": 120.0,
    "asset_cash": 500.0,
    "asset_invest": 300.0,
    "asset_defined_contribution_jp": 0.0,
    "dc_contribution_annual": 0.0,
    "expected_return": 5.0,
    "inflation_rate": 2.0,
    "post_retire_income": 0.0,
    "post_retire_income_end_age": None,
    "retire_passive_income": 0.0,
    "retire_spending_multiplier": 0.8,
    "effective_tax_rate": None,
    # Monte Carlo
    "mc_runs": 1000,
    "seed": 42,
    "volatility": 0.15,
    "fire_threshold": 90.0,
    "time_budget": None,
    # Branches (config file only)
    "branches": None,
    "combinations": None,
}

# [[branches]] テーブルのうち Branch のフィールドに対応するキー
_BRANCH_FIELDS = {
    "id": "id",
    "label": "label",
    "event_type": "event_type",
    "age": "age_at_event",
    "age_at_event": "age_at_event",
    "certainty": "certainty",
    "description": "description",
    "one_time_amount": "one_time_amount",
    "annual_delta": "annual_delta",
    "delta_end_age": "delta_end_age",
}


def parse_branch(table: dict) -> Branch:
    """Build a Branch from one [[branches]] table.

    Keys other than the Branch fields (and an explicit `params` table) are
    collected into Branch.params.
    """
    kwargs: dict = {}
    params = dict(table.get("params", {}))
    for key, value in table.items():
        if key == "params":
            continue
        if key in _BRANCH_FIELDS:
            kwargs[_BRANCH_FIELDS[key]] = value
        else:
            params[key] = value

    missing = [name for name in ("id", "event_type", "age_at_event") if name not in kwargs]
    if missing:
        raise ValueError(f"分岐の必須項目が不足: {', '.join(missing)}")
    kwargs.setdefault("label", kwargs["id"])
    certainty = kwargs.setdefault("certainty", "uncertain")
    if certainty not in CERTAINTIES:
        raise ValueError(
            f"分岐「{kwargs['id']}」の確度{certainty}は{'/'.join(CERTAINTIES)}のいずれかです"
        )
    return Branch(params=params, **kwargs)


def parse_branches(tables: list[dict]) -> tuple[Branch, ...]:
    return tuple(parse_branch(table) for table in tables)


def load_config(path: Path | None = None) -> dict:
    """Load TOML config file. Returns empty dict if file doesn't exist."""
    if path is None:
        path = DEFAULT_CONFIG_PATH
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        print(f"設定ファイルの読み込みに失敗: {path}: {e}", file=sys.stderr)
        raise SystemExit(1)
    # Normalize branches: TOML [[branches]] → tuple[Branch, ...]
    if "branches" in raw:
        try:
            raw["branches"] = parse_branches(raw["branches"])
        except (TypeError, ValueError) as e:
            print(f"設定ファイルの分岐定義が不正: {path}: {e}", file=sys.stderr)
            raise SystemExit(1)
    # Normalize combinations: [["a", "b"], ...] → tuple of id tuples
    if "combinations" in raw:
        raw["combinations"] = tuple(tuple(str(x) for x in combo) for combo in raw["combinations"])
    return raw


def create_parser(description: str) -> argparse.ArgumentParser:
    """Create argparse parser with shared profile and Monte Carlo flags."""
    d = DEFAULTS
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("--config", type=Path, default=None, help="設定ファイルパス (default: config.toml)")
    parser.add_argument("--current-age", type=int, default=None, help=f"現在の年齢 (default: {d['current_age']})")
    parser.add_argument("--target-retire-age", type=int, default=None, help=f"目標退職年齢 (default: {d['target_retire_age']})")
    parser.add_argument("--mode", choices=("solo", "couple"), default=None, help=f"世帯区分 (default: {d['mode']})")
    parser.add_argument("--gross-income", type=float, default=None, help=f"本人の額面年収・万円 (default: {d['gross_income']:.0f})")
    parser.add_argument("--partner-gross-income", type=float, default=None, help="パートナーの額面年収・万円 (default: 0)")
    parser.add_argument("--rsu-annual", type=float, default=None, help="本人のRSU年額・万円 (default: 0)")
    parser.add_argument("--partner-rsu-annual", type=float, default=None, help="パートナーのRSU年額・万円 (default: 0)")
    parser.add_argument("--side-income-net", type=float, default=None, help="副業収入（手取り）・万円/年 (default: 0)")
    parser.add_argument("--living-cost-annual", type=float, default=None, help=f"生活費・万円/年 (default: {d['living_cost_annual']:.0f})")
    parser.add_argument("--housing-cost-annual", type=float, default=None, help=f"住居費・万円/年 (default: {d['housing_cost_annual']:.0f})")
    parser.add_argument("--asset-cash", type=float, default=None, help=f"現金・預金・万円 (default: {d['asset_cash']:.0f})")
    parser.add_argument("--asset-invest", type=float, default=None, help=f"投資資産・万円 (default: {d['asset_invest']:.0f})")
    parser.add_argument("--asset-dc", dest="asset_defined_contribution_jp", type=float, default=None, help="企業型DC・iDeCo残高・万円 (default: 0)")
    parser.add_argument("--dc-contribution-annual", type=float, default=None, help="DC拠出額・万円/年 (default: 0)")
    parser.add_argument("--expected-return", type=float, default=None, help=f"期待リターン（%%）(default: {d['expected_return']})")
    parser.add_argument("--inflation-rate", type=float, default=None, help=f"インフレ率（%%）(default: {d['inflation_rate']})")
    parser.add_argument("--post-retire-income", type=float, default=None, help="退職後の事業収入（額面）・万円/年 (default: 0)")
    parser.add_argument("--post-retire-income-end-age", type=int, default=None, help="退職後収入の終了年齢 (default: 75)")
    parser.add_argument("--retire-passive-income", type=float, default=None, help="退職後の不労所得・万円/年 (default: 0)")
    parser.add_argument("--retire-spending-multiplier", type=float, default=None, help=f"退職後の支出倍率 (default: {d['retire_spending_multiplier']})")
    parser.add_argument("--effective-tax-rate", type=float, default=None, help="実効税率（%%）。未指定なら年収から自動計算")
    parser.add_argument("--mc-runs", type=int, default=None, help=f"シミュレーション回数 (default: {d['mc_runs']})")
    parser.add_argument("--seed", type=int, default=None, help=f"乱数シード (default: {d['seed']})")
    parser.add_argument("--volatility", type=float, default=None, help=f"投資リターンのボラティリティ σ (default: {d['volatility']})")
    parser.add_argument("--fire-threshold", type=float, default=None, help=f"FIRE判定の生存率しきい値（%%）(default: {d['fire_threshold']:.0f})")
    parser.add_argument("--time-budget", type=float, default=None, help="計算時間の上限（秒）。超過時は途中結果を低信頼として返す")
    parser.add_argument("--quiet", action="store_true", help="進捗表示を抑制")
    return parser


def resolve(args: argparse.Namespace, config: dict) -> dict:
    """Resolve values with priority: CLI flag > config.toml > hardcoded default."""
    resolved = {}
    for key, default in DEFAULTS.items():
        cli_val = getattr(args, key, None)
        resolved[key] = cli_val if cli_val is not None else config.get(key, default)
    return resolved


def build_profile(r: dict) -> Profile:
    """Build Profile from resolved config dict."""
    return Profile(**{key: r[key] for key in PROFILE_KEYS})


def build_mc_config(r: dict) -> MonteCarloConfig:
    """Build MonteCarloConfig from resolved config dict."""
    return MonteCarloConfig(
        n_simulations=r["mc_runs"],
        seed=r["seed"],
        return_volatility=r["volatility"],
        fire_threshold=r["fire_threshold"],
        time_budget=r["time_budget"],
    )


def parse_args(
    description: str,
    add_args_fn: Callable[[argparse.ArgumentParser], None] | None = None,
    argv: list[str] | None = None,
) -> tuple[dict, argparse.Namespace]:
    """Parse CLI args, load config, resolve values.

    Returns (resolved_dict, namespace). namespace carries extra CLI args added
    via add_args_fn.
    """
    parser = create_parser(description)
    if add_args_fn:
        add_args_fn(parser)
    args = parser.parse_args(argv)
    config = load_config(args.config)
    return resolve(args, config), args
