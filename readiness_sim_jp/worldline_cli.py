"""CLI entry point for worldline comparison (baseline vs. branch variants)."""

import sys

from readiness_sim_jp.config import build_mc_config, build_profile, parse_args
from readiness_sim_jp.events import LifeEventError, create_default_branches
from readiness_sim_jp.params import ProfileValidationError
from readiness_sim_jp.worldline import (
    BASELINE_ID,
    WorldlineCandidate,
    build_candidates,
    diff_candidate,
    find_most_impactful_branch,
    rank_candidates,
)

CERTAINTY_LABELS = {"confirmed": "確定", "likely": "計画", "uncertain": "不確定"}


def _add_args(parser):
    parser.add_argument("--workers", type=int, default=None, help="並列プロセス数（2以上で並列実行）")
    parser.add_argument("--max-candidates", type=int, default=None, help="世界線候補の上限数")


def _fmt_age(age: int | None) -> str:
    return f"{age}歳" if age is not None else "未達"


def _print_candidates(candidates: list[WorldlineCandidate]):
    baseline = next((c for c in candidates if c.id == BASELINE_ID), None)
    print("\n【世界線比較】")
    print("─" * 80)
    print(f"{'世界線':<20}{'スコア':>8}{'生存率':>10}{'FIRE年齢':>10}{'差分':>8}  推奨")
    print("─" * 80)
    for c in candidates:
        metrics = c.result.metrics
        if baseline is None or c.id == BASELINE_ID:
            diff_str, note = "-", ""
        else:
            diff = diff_candidate(baseline, c)
            diff_str, note = f"{diff.score_diff:+d}", diff.recommendation
        print(
            f"{c.label:<20}"
            f"{c.score:>8}"
            f"{metrics.survival_rate:>9.1f}%"
            f"{_fmt_age(metrics.fire_age):>10}"
            f"{diff_str:>8}  {note}"
        )
    print("─" * 80)


def main(argv: list[str] | None = None):
    r, args = parse_args("世界線比較シミュレーション", _add_args, argv)
    profile = build_profile(r)
    config = build_mc_config(r)
    branches = r["branches"] or create_default_branches(profile)

    print("=" * 80)
    print(f"世界線比較（{profile.current_age}歳 / 目標退職{profile.target_retire_age}歳 / N={config.n_simulations:,}）")
    for b in branches:
        label = CERTAINTY_LABELS.get(b.certainty, b.certainty)
        detail = f"（{b.description}）" if b.description else ""
        print(f"  [{label}] {b.id}: {b.label} {b.age_at_event}歳{detail}")
    print("=" * 80)

    try:
        candidates = build_candidates(
            profile, branches,
            selected_combinations=r["combinations"],
            config=config,
            max_workers=args.workers,
            max_candidates=args.max_candidates,
        )
    except ProfileValidationError as e:
        for field, message in e.errors:
            print(f"  ✗ {field}: {message}", file=sys.stderr)
        raise SystemExit(1)
    except (LifeEventError, ValueError) as e:
        print(f"  ✗ {e}", file=sys.stderr)
        raise SystemExit(1)

    _print_candidates(candidates)

    print("\n【ランキング】")
    for rank, c in enumerate(rank_candidates(candidates), 1):
        print(f"  {rank}. {c.label}（{c.score}）")

    finding = find_most_impactful_branch(candidates)
    if finding is not None:
        direction = "低下" if finding.score_diff > 0 else "上昇"
        print(
            f"\n最も影響が大きい分岐: {finding.candidate.label}"
            f"（スコア{abs(finding.score_diff)}ポイント{direction}）"
        )


if __name__ == "__main__":
    main()
