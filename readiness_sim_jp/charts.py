"""Chart generation for readiness simulation results."""

import platform
from collections.abc import Iterable
from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import matplotlib.ticker as ticker

from readiness_sim_jp.events import LifeEvent
from readiness_sim_jp.monte_carlo import SimulationResult
from readiness_sim_jp.worldline import WorldlineCandidate

FAN_COLOR = "#4A7C59"
DEFAULT_COLOR = "#7f7f7f"
COLOR_EXPENSE = "#c0392b"
COLOR_INCOME = "#27ae60"


def _setup_japanese_font():
    """Configure matplotlib to use a Japanese font."""
    system = platform.system()
    if system == "Darwin":
        font_family = "Hiragino Sans"
    elif system == "Linux":
        font_family = "Noto Sans CJK JP"
    else:
        font_family = "sans-serif"
    plt.rcParams["font.family"] = font_family
    plt.rcParams["axes.unicode_minus"] = False


def _format_oku_axis(ax: plt.Axes):
    """Add 億円 labels on Y axis (secondary tick labels)."""
    ax.yaxis.set_major_formatter(
        ticker.FuncFormatter(lambda x, _: f"{x:,.0f}")
    )
    ax_right = ax.secondary_yaxis("right")
    ax_right.yaxis.set_major_formatter(
        ticker.FuncFormatter(lambda x, _: f"{x / 10000:.1f}億" if x != 0 else "0")
    )
    ax_right.set_ylabel("")


def _save(fig, output_path: Path, stem: str, name: str) -> Path:
    output_path.mkdir(parents=True, exist_ok=True)
    suffix = f"-{name}" if name else ""
    filepath = output_path / f"{stem}{suffix}.png"
    fig.tight_layout()
    fig.savefig(filepath, dpi=150)
    plt.close(fig)
    return filepath


def event_markers(events: Iterable[LifeEvent]) -> list[tuple[int, float, str]]:
    """One-time event amounts as chart markers [(age, signed_amount, label), ...]."""
    return sorted(
        (e.age, e.amount_one_time, e.label or e.type)
        for e in events
        if e.amount_one_time
    )


def _annotate_events(ax: plt.Axes, markers: list[tuple[int, float, str]]):
    y_lo, y_hi = ax.get_ylim()
    for i, (evt_age, evt_amount, evt_label) in enumerate(markers):
        color = COLOR_INCOME if evt_amount > 0 else COLOR_EXPENSE
        ax.axvline(evt_age, color="#888888", linewidth=0.7, linestyle=":", alpha=0.4, zorder=3)
        if evt_amount > 0:
            label = f"+{evt_label} {evt_amount:,.0f}万"
        else:
            label = f"▲{evt_label} {abs(evt_amount):,.0f}万"
        # Alternate y-position across 4 levels in the lower portion
        y_pos = y_lo + (y_hi - y_lo) * (0.05 + 0.07 * (i % 4))
        ax.annotate(
            label,
            xy=(evt_age, y_pos),
            fontsize=10, color=color,
            ha="center", va="bottom",
            bbox=dict(boxstyle="round,pad=0.5", fc="white", ec=color, alpha=0.9, linewidth=0.8),
            zorder=10,
        )


def plot_balance_fan(
    result: SimulationResult,
    output_path: Path,
    name: str = "",
    markers: list[tuple[int, float, str]] | None = None,
) -> Path:
    """Generate a fan chart (P5-P95 bands and median) of liquid assets by age.

    Args:
        result: SimulationResult from simulate().
        output_path: directory to save the PNG.
        name: optional suffix for the output filename (e.g. "30" → "balance_fan-30.png").
        markers: one-time life events [(age, signed_nominal_amount, label), ...].

    Returns:
        Path to the generated PNG file.
    """
    _setup_japanese_font()

    fig, ax = plt.subplots(figsize=(14, 8))

    pdata = result.yearly_percentiles
    ages = sorted(pdata.keys())
    p = {q: [pdata[a][q] for a in ages] for q in (5, 10, 25, 50, 75, 90, 95)}

    ax.fill_between(ages, p[5], p[95], alpha=0.12, color=FAN_COLOR, label="P5–P95")
    ax.fill_between(ages, p[10], p[90], alpha=0.2, color=FAN_COLOR, label="P10–P90")
    ax.fill_between(ages, p[25], p[75], alpha=0.3, color=FAN_COLOR, label="P25–P75")
    ax.plot(ages, p[50], color=FAN_COLOR, linewidth=2, label="P50（中央値）")
    ax.axhline(0, color="#333333", linewidth=0.8)

    fire_age = result.metrics.fire_age
    if fire_age is not None:
        ax.axvline(fire_age, color="#4A6FA5", linewidth=1.2, linestyle="--", label=f"FIRE可能 {fire_age}歳")

    ax.set_xlabel("年齢")
    ax.set_ylabel("金融資産残高（万円）")
    ax.set_title(
        f"資産推移ファンチャート（N={result.trials_completed:,}、"
        f"生存率{result.metrics.survival_rate:.1f}%、スコア{result.score.overall}）"
    )
    ax.legend(loc="upper left", fontsize=9)
    ax.grid(True, alpha=0.3)
    _format_oku_axis(ax)

    if markers:
        _annotate_events(ax, markers)

    return _save(fig, output_path, "balance_fan", name)


def plot_trajectory(
    log: dict,
    output_path: Path,
    name: str = "",
    markers: list[tuple[int, float, str]] | None = None,
) -> Path:
    """Line chart of the deterministic projection from simulate_deterministic()."""
    _setup_japanese_font()

    fig, ax = plt.subplots(figsize=(14, 8))
    ages = sorted(log["balances"])
    ax.plot(ages, [log["balances"][a] for a in ages], color=FAN_COLOR, linewidth=2, label="金融資産")
    ax.axhline(0, color="#333333", linewidth=0.8)
    if log["depletion_age"] is not None:
        ax.axvline(log["depletion_age"], color=COLOR_EXPENSE, linestyle="--", label=f"資産枯渇 {log['depletion_age']}歳")

    ax.set_xlabel("年齢")
    ax.set_ylabel("金融資産残高（万円）")
    ax.set_title("資産推移と一時イベント（確定論・期待リターン固定）")
    ax.legend(loc="upper left")
    ax.grid(True, alpha=0.3)
    _format_oku_axis(ax)

    if markers:
        _annotate_events(ax, markers)

    return _save(fig, output_path, "trajectory", name)


def plot_worldline_scores(
    candidates: list[WorldlineCandidate],
    output_path: Path,
    name: str = "",
) -> Path:
    """Horizontal bar chart of worldline scores, colored per candidate."""
    _setup_japanese_font()

    scored = [c for c in candidates if c.score is not None]
    if not scored:
        raise ValueError("No scored WorldlineCandidate")

    fig, ax = plt.subplots(figsize=(12, 1.0 + 0.7 * len(scored)))
    labels = [c.label for c in scored]
    scores = [c.score for c in scored]
    colors = [c.color or DEFAULT_COLOR for c in scored]
    bars = ax.barh(labels, scores, color=colors)
    for bar, c in zip(bars, scored):
        survival = c.result.metrics.survival_rate if c.result is not None else None
        text = f"{c.score}" if survival is None else f"{c.score}（生存率{survival:.0f}%）"
        ax.text(bar.get_width() + 1, bar.get_y() + bar.get_height() / 2, text, va="center", fontsize=10)

    ax.invert_yaxis()
    ax.set_xlim(0, 115)
    ax.set_xlabel("準備度スコア")
    ax.set_title("世界線別スコア")
    ax.grid(True, axis="x", alpha=0.3)

    return _save(fig, output_path, "worldline_scores", name)
