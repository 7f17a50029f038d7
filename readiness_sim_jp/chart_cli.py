"""CLI entry point for chart generation."""

import sys
from pathlib import Path

from readiness_sim_jp.charts import event_markers, plot_balance_fan, plot_trajectory, plot_worldline_scores
from readiness_sim_jp.config import build_mc_config, build_profile, parse_args
from readiness_sim_jp.events import LifeEventError, branches_to_life_events, create_default_branches
from readiness_sim_jp.monte_carlo import simulate
from readiness_sim_jp.params import ProfileValidationError
from readiness_sim_jp.simulation import simulate_deterministic
from readiness_sim_jp.worldline import build_candidates


def _add_args(parser):
    parser.add_argument(
        "--output", type=Path, default=Path("reports/charts"),
        help="出力ディレクトリ (default: reports/charts)",
    )
    parser.add_argument(
        "--no-worldline", action="store_true",
        help="世界線比較チャートを生成しない（高速）",
    )
    parser.add_argument(
        "--apply", type=str, default="",
        help="資産推移に適用する分岐ID（カンマ区切り）",
    )
    parser.add_argument(
        "--name", type=str, default="",
        help="出力ファイル名のサフィックス（例: 30 → balance_fan-30.png）",
    )


def main(argv: list[str] | None = None):
    r, args = parse_args("FIRE準備度シミュレーション チャート生成", _add_args, argv)
    profile = build_profile(r)
    config = build_mc_config(r)
    output_dir = args.output
    chart_name = args.name
    branches = r["branches"] or create_default_branches(profile)
    by_id = {b.id: b for b in branches}
    applied = [s.strip() for s in args.apply.split(",") if s.strip()]
    unknown = [branch_id for branch_id in applied if branch_id not in by_id]
    if unknown:
        print(f"未知の分岐ID: {', '.join(unknown)}", file=sys.stderr)
        raise SystemExit(1)
    events = branches_to_life_events(by_id[branch_id] for branch_id in applied)
    markers = event_markers(events)

    try:
        # --- Deterministic trajectory ---
        print(f"確定論シミュレーション（{profile.current_age}歳→100歳）...", file=sys.stderr)
        log = simulate_deterministic(profile, events)
        path = plot_trajectory(log, output_dir, name=chart_name, markers=markers)
        print(f"  → {path}", file=sys.stderr)

        # --- Monte Carlo fan chart ---
        print(f"Monte Carlo シミュレーション（N={config.n_simulations:,}）...", file=sys.stderr)
        result = simulate(profile, events, config, quiet=args.quiet)
        path = plot_balance_fan(result, output_dir, name=chart_name, markers=markers)
        print(f"  → {path}", file=sys.stderr)

        # --- Worldline scores ---
        if not args.no_worldline:
            print(f"世界線比較（分岐{len(branches)}件）...", file=sys.stderr)
            candidates = build_candidates(
                profile, branches, selected_combinations=r["combinations"], config=config,
            )
            path = plot_worldline_scores(candidates, output_dir, name=chart_name)
            print(f"  → {path}", file=sys.stderr)
    except ProfileValidationError as e:
        for field, message in e.errors:
            print(f"  ✗ {field}: {message}", file=sys.stderr)
        raise SystemExit(1)
    except LifeEventError as e:
        print(f"  ✗ {e}", file=sys.stderr)
        raise SystemExit(1)

    print("完了", file=sys.stderr)


if __name__ == "__main__":
    main()
