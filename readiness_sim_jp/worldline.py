"""Worldline candidates: alternate futures built from branches and compared to a baseline."""

from collections.abc import Iterable, Sequence
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass

from readiness_sim_jp.events import Branch, LifeEventError, branches_to_life_events
from readiness_sim_jp.monte_carlo import MonteCarloConfig, SimulationResult, simulate
from readiness_sim_jp.params import Profile

BASELINE_ID = "baseline"
WORST_CASE_ID = "worst-case"

CANDIDATE_COLORS = {
    "baseline": "#4A7C59",
    "variant": "#4A6FA5",
    "worst": "#8A7A62",
    "extra": "#7B5EA7",
}
VARIANT_COLORS = (CANDIDATE_COLORS["variant"], "#6B8E5A", "#A85C5C", "#5A8A8A")

# 推奨文で「差あり」とみなす生存率差（ポイント）
SURVIVAL_DIFF_THRESHOLD = 5


@dataclass(frozen=True)
class WorldlineCandidate:
    id: str
    label: str
    desc: str
    color: str
    branch_ids: frozenset = frozenset()
    score: int | None = None
    result: SimulationResult | None = None


@dataclass(frozen=True)
class ImpactFinding:
    candidate: WorldlineCandidate
    branch_id: str
    score_diff: int  # baseline.score - candidate.score


@dataclass(frozen=True)
class WorldlineDiff:
    """Candidate minus baseline."""

    score_diff: int | None
    survival_rate_diff: float | None
    fire_age_diff: int | None
    recommendation: str


def _simulate_candidate(args: tuple) -> SimulationResult:
    """ProcessPool adapter: one candidate simulation from a picklable tuple."""
    profile, events, config = args
    return simulate(profile, events, config)


def _plan_candidates(
    branches: Sequence[Branch],
    selected_combinations: Iterable[Iterable[str]] | None,
) -> list[tuple[WorldlineCandidate, tuple[Branch, ...]]]:
    by_id = {branch.id: branch for branch in branches}
    if len(by_id) != len(branches):
        raise ValueError("分岐IDが重複しています")

    plans = [(
        WorldlineCandidate(
            id=BASELINE_ID, label="ベースライン", desc="現在の計画のみ",
            color=CANDIDATE_COLORS["baseline"],
        ),
        (),
    )]

    for i, branch in enumerate(branches):
        plans.append((
            WorldlineCandidate(
                id=f"variant-{branch.id}",
                label=branch.label,
                desc=f"ベースライン + {branch.label}",
                color=VARIANT_COLORS[i % len(VARIANT_COLORS)],
                branch_ids=frozenset({branch.id}),
            ),
            (branch,),
        ))

    if selected_combinations is None:
        uncertain = [branch for branch in branches if branch.certainty == "uncertain"]
        if len(uncertain) >= 2:
            plans.append((
                WorldlineCandidate(
                    id=WORST_CASE_ID,
                    label="複合リスク",
                    desc="全不確定: " + " + ".join(branch.label for branch in uncertain),
                    color=CANDIDATE_COLORS["worst"],
                    branch_ids=frozenset(branch.id for branch in uncertain),
                ),
                tuple(uncertain),
            ))
        return plans

    for combination in selected_combinations:
        ids = tuple(combination)
        unknown = [branch_id for branch_id in ids if branch_id not in by_id]
        if unknown:
            raise ValueError(f"未知の分岐ID: {', '.join(unknown)}")
        combo = tuple(by_id[branch_id] for branch_id in ids)
        plans.append((
            WorldlineCandidate(
                id="combo-" + "+".join(ids),
                label=" + ".join(branch.label for branch in combo),
                desc="組み合わせ: " + " + ".join(branch.label for branch in combo),
                color=CANDIDATE_COLORS["extra"],
                branch_ids=frozenset(ids),
            ),
            combo,
        ))
    return plans


def build_candidates(
    profile: Profile,
    branches: Sequence[Branch],
    selected_combinations: Iterable[Iterable[str]] | None = None,
    config: MonteCarloConfig | None = None,
    max_workers: int | None = None,
    max_candidates: int | None = None,
) -> list[WorldlineCandidate]:
    """Simulate the baseline, one variant per branch and any combinations.

    Every candidate runs with the same seed, so score differences come from the
    branches rather than from sampling noise. max_workers > 1 runs candidates in
    worker processes with identical results.
    """
    config = config or MonteCarloConfig()
    if max_candidates is not None and max_candidates < 1:
        raise ValueError(f"世界線候補の上限は1以上で指定してください: {max_candidates}")
    branches = tuple(branches)
    for branch in branches:
        if branch.age_at_event < profile.current_age:
            raise LifeEventError(
                f"分岐「{branch.label}」の年齢{branch.age_at_event}歳が"
                f"現在年齢{profile.current_age}歳より前です"
            )

    plans = _plan_candidates(branches, selected_combinations)
    if max_candidates is not None:
        plans = plans[:max_candidates]

    jobs = [(profile, branches_to_life_events(combo), config) for _, combo in plans]
    if max_workers is not None and max_workers > 1 and len(jobs) > 1:
        with ProcessPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(_simulate_candidate, jobs))
    else:
        results = [_simulate_candidate(job) for job in jobs]

    return [
        WorldlineCandidate(
            id=candidate.id,
            label=candidate.label,
            desc=candidate.desc,
            color=candidate.color,
            branch_ids=candidate.branch_ids,
            score=result.score.overall,
            result=result,
        )
        for (candidate, _), result in zip(plans, results)
    ]


def _baseline(candidates: Iterable[WorldlineCandidate]) -> WorldlineCandidate | None:
    for candidate in candidates:
        if candidate.id == BASELINE_ID:
            return candidate
    return None


def find_most_impactful_branch(candidates: Sequence[WorldlineCandidate]) -> ImpactFinding | None:
    """Single-branch candidate whose score moves furthest from the baseline.

    Ties keep the earliest candidate. None without a scored baseline or
    without another scored candidate.
    """
    baseline = _baseline(candidates)
    if baseline is None or baseline.score is None:
        return None

    best: ImpactFinding | None = None
    for candidate in candidates:
        if candidate.id == BASELINE_ID or candidate.score is None:
            continue
        if len(candidate.branch_ids) != 1:
            continue
        diff = baseline.score - candidate.score
        if best is None or abs(diff) > abs(best.score_diff):
            (branch_id,) = candidate.branch_ids
            best = ImpactFinding(candidate=candidate, branch_id=branch_id, score_diff=diff)
    return best


def rank_candidates(candidates: Iterable[WorldlineCandidate]) -> list[WorldlineCandidate]:
    """Scored candidates, best score first (stable for equal scores)."""
    scored = [candidate for candidate in candidates if candidate.score is not None]
    return sorted(scored, key=lambda candidate: -candidate.score)


def _recommendation(name: str, fire_age_diff: int | None, survival_diff: float) -> str:
    if fire_age_diff is not None:
        if fire_age_diff < 0 and survival_diff >= 0:
            return f"「{name}」の方がFIRE達成が{abs(fire_age_diff)}年早くなります"
        if fire_age_diff > 0 and survival_diff <= 0:
            return f"現状の方がFIRE達成が{fire_age_diff}年早くなります"
    if survival_diff > SURVIVAL_DIFF_THRESHOLD:
        return f"「{name}」の方が資産維持の確率が{survival_diff:.0f}%高くなります"
    if survival_diff < -SURVIVAL_DIFF_THRESHOLD:
        return f"現状の方が資産維持の確率が{abs(survival_diff):.0f}%高くなります"
    return "両シナリオに大きな差はありません"


def diff_candidate(baseline: WorldlineCandidate, candidate: WorldlineCandidate) -> WorldlineDiff:
    """Compare a candidate against the baseline (candidate minus baseline)."""
    if baseline.result is None or candidate.result is None:
        return WorldlineDiff(
            score_diff=None, survival_rate_diff=None, fire_age_diff=None,
            recommendation="未計算の世界線があります",
        )

    base = baseline.result.metrics
    comp = candidate.result.metrics
    survival_diff = comp.survival_rate - base.survival_rate
    fire_age_diff = None
    if base.fire_age is not None and comp.fire_age is not None:
        fire_age_diff = comp.fire_age - base.fire_age

    return WorldlineDiff(
        score_diff=candidate.result.score.overall - baseline.result.score.overall,
        survival_rate_diff=survival_diff,
        fire_age_diff=fire_age_diff,
        recommendation=_recommendation(candidate.label, fire_age_diff, survival_diff),
    )
