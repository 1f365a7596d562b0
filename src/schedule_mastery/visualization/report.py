from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
import pandas as pd

from schedule_mastery.domain.segment import SegmentKind
from schedule_mastery.engine.controller import ScheduleController
from schedule_mastery.engine.time_windows import format_hhmm


KIND_COLORS = {
    SegmentKind.OUTBOUND: "#1f77b4",        # blue
    SegmentKind.TURNAROUND: "#c7c7c7",      # light grey
    SegmentKind.INBOUND: "#2ca02c",         # green
    SegmentKind.CREW_CHANGE_GAP: "#d62728", # red
}
SCORE_TERMS = ["legs", "utilization", "charter", "late_duty", "curfew", "idle"]


@dataclass(frozen=True)
class ReportFrames:
    segments: pd.DataFrame
    aircraft_kpis: pd.DataFrame
    crew_kpis: pd.DataFrame
    inventory: pd.DataFrame
    day_start: int
    curfew_end: int


def build_report_frames(ctrl: ScheduleController) -> ReportFrames:
    # --- Segments (one row per timeline entry) ---
    seg_rows = []
    for a_id in ctrl.aircraft_ids:
        for s in ctrl.timeline(a_id):
            seg_rows.append(
                {
                    "aircraft_id": a_id,
                    "segment_id": s.segment_id,
                    "trip_id": s.trip_id,
                    "kind": s.kind.value,
                    "start": s.start,
                    "end": s.end,
                    "start_hhmm": format_hhmm(s.start),
                    "end_hhmm": format_hhmm(s.end),
                    "origin": s.origin,
                    "destination": s.destination,
                    "route_id": s.route_id,
                    "crew_index": s.crew_index,
                    "charter": s.charter,
                }
            )
    segments = pd.DataFrame(
        seg_rows,
        columns=[
            "aircraft_id", "segment_id", "trip_id", "kind", "start", "end", "start_hhmm",
            "end_hhmm", "origin", "destination", "route_id", "crew_index", "charter",
        ],
    )

    # --- Aircraft KPIs + score breakdown ---
    ac_rows = []
    crew_rows = []
    for a_id in ctrl.aircraft_ids:
        sc = ctrl.score(a_id)
        row = {
            "aircraft_id": a_id,
            "aircraft_type": ctrl.aircraft(a_id).aircraft_type,
            "points": sc.points,
            "trips": sc.trips,
            "flight_minutes": sc.flight_minutes,
            "duty_minutes": sc.duty_minutes,
            "idle_minutes": sc.idle_minutes,
        }
        for term in SCORE_TERMS:
            row[f"score_{term}"] = int(sc.breakdown.get(term, 0))
        ac_rows.append(row)

        for k in sc.crews:
            crew_rows.append(
                {
                    "aircraft_id": a_id,
                    "crew_index": k.crew_index,
                    "sectors": k.sectors,
                    "duty_start": format_hhmm(k.duty_start),
                    "duty_end": format_hhmm(k.duty_end),
                    "duty_minutes": k.duty_minutes,
                    "limit_minutes": k.limit_minutes,
                    "within_limits": k.within_limits,
                }
            )

    aircraft_kpis = pd.DataFrame(ac_rows).sort_values("aircraft_id")
    crew_kpis = pd.DataFrame(
        crew_rows,
        columns=["aircraft_id", "crew_index", "sectors", "duty_start", "duty_end",
                 "duty_minutes", "limit_minutes", "within_limits"],
    )

    # --- Inventory (requested vs remaining) ---
    remaining = ctrl.inventory
    inventory = pd.DataFrame(
        [
            {
                "route_id": r.route_id,
                "route": f"{r.origin}-{r.destination}",
                "route_type": r.route_type,
                "requested": r.requested,
                "remaining": remaining.get(r.route_id, 0),
                "placed": r.requested - remaining.get(r.route_id, 0),
            }
            for r in ctrl.routes
        ],
        columns=["route_id", "route", "route_type", "requested", "remaining", "placed"],
    )

    return ReportFrames(
        segments=segments,
        aircraft_kpis=aircraft_kpis,
        crew_kpis=crew_kpis,
        inventory=inventory,
        day_start=ctrl.rules.day_start,
        curfew_end=ctrl.rules.curfew_end,
    )


def plot_gantt(frames: ReportFrames, out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)

    aircraft = list(frames.aircraft_kpis["aircraft_id"])
    fig, ax = plt.subplots(figsize=(14, 1.2 * max(len(aircraft), 1) + 1.5))

    for row, a_id in enumerate(aircraft):
        segs = frames.segments[frames.segments["aircraft_id"] == a_id]
        for kind, color in KIND_COLORS.items():
            part = segs[segs["kind"] == kind.value]
            if part.empty:
                continue
            bars = list(zip(part["start"], part["end"] - part["start"]))
            ax.broken_barh(bars, (row - 0.35, 0.7), facecolors=color, edgecolor="white")

        legs = segs[segs["kind"] == SegmentKind.OUTBOUND.value]
        for _, s in legs.iterrows():
            ax.text(
                s["start"] + 2, row, f"{s['origin']}-{s['destination']}",
                va="center", ha="left", fontsize=8, color="white",
            )

    # ---- Curfew shading ----
    ax.axvspan(frames.day_start - 60, frames.day_start, color="#f2f2f2", zorder=0)
    ax.axvspan(frames.curfew_end, frames.curfew_end + 60, color="#f2f2f2", zorder=0)

    hours = np.arange(frames.day_start, frames.curfew_end + 1, 60)
    ax.set_xticks(hours)
    ax.set_xticklabels([format_hhmm(int(h)) for h in hours], fontsize=10)
    ax.set_xlim(frames.day_start - 30, frames.curfew_end + 30)

    ax.set_yticks(range(len(aircraft)))
    ax.set_yticklabels(aircraft, fontsize=11)
    ax.invert_yaxis()

    ax.set_xlabel("Time of day", fontsize=12)
    ax.set_title("Day Schedule", fontsize=16, fontweight="bold")
    ax.xaxis.grid(True, linestyle="--", linewidth=0.6, alpha=0.4)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)

    legend_patches = [mpatches.Patch(color=c, label=k.value) for k, c in KIND_COLORS.items()]
    ax.legend(
        handles=legend_patches,
        fontsize=10,
        loc="upper left",
        bbox_to_anchor=(1.02, 1),
        borderaxespad=0,
    )

    plt.tight_layout()
    plt.savefig(out_dir / "schedule_gantt.png", dpi=200, bbox_inches="tight")
    plt.close()


def plot_score_breakdown(frames: ReportFrames, out_dir: Path) -> None:
    """Stacked bars: positive terms above zero, penalties below."""
    out_dir.mkdir(parents=True, exist_ok=True)

    df = frames.aircraft_kpis.set_index("aircraft_id")
    x = np.arange(len(df.index))

    fig, ax = plt.subplots(figsize=(10, 6))
    pos_bottom = np.zeros(len(x))
    neg_bottom = np.zeros(len(x))
    for term in SCORE_TERMS:
        values = df[f"score_{term}"].to_numpy(dtype=float)
        bottom = np.where(values >= 0, pos_bottom, neg_bottom)
        ax.bar(x, values, bottom=bottom, label=term)
        pos_bottom += np.clip(values, 0, None)
        neg_bottom += np.clip(values, None, 0)

    ax.plot(x, df["points"], marker="o", color="black", linestyle="None", label="points")
    ax.axhline(0, color="black", linewidth=0.8)
    ax.set_xticks(x)
    ax.set_xticklabels(df.index, fontsize=11)
    ax.set_ylabel("Points", fontsize=12)
    ax.set_title(f"Score Breakdown (total {int(df['points'].sum())})", fontsize=16, fontweight="bold")
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.legend(fontsize=10, loc="upper left", bbox_to_anchor=(1.02, 1), borderaxespad=0)

    plt.tight_layout()
    plt.savefig(out_dir / "score_breakdown.png", dpi=200, bbox_inches="tight")
    plt.close()


def plot_crew_duty(frames: ReportFrames, out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)

    df = frames.crew_kpis
    if df.empty:
        return

    labels = [f"{a} / crew {c}" for a, c in zip(df["aircraft_id"], df["crew_index"])]
    colors = ["#2ca02c" if ok else "#d62728" for ok in df["within_limits"]]

    plt.figure(figsize=(10, 6))
    plt.barh(labels, df["duty_minutes"] / 60.0, color=colors)
    plt.scatter(df["limit_minutes"] / 60.0, labels, marker="|", s=400, color="black", label="Duty limit")
    plt.xlabel("Duty hours")
    plt.title("Crew Duty vs Limit")
    plt.legend()
    plt.tight_layout()
    plt.savefig(out_dir / "crew_duty.png", dpi=160)
    plt.close()


def save_plots(frames: ReportFrames, out_dir: Path) -> None:
    plot_gantt(frames, out_dir)
    plot_score_breakdown(frames, out_dir)
    plot_crew_duty(frames, out_dir)


def save_tables(frames: ReportFrames, out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    frames.segments.to_csv(out_dir / "segments.csv", index=False)
    frames.aircraft_kpis.to_csv(out_dir / "aircraft_kpis.csv", index=False)
    frames.crew_kpis.to_csv(out_dir / "crew_kpis.csv", index=False)
    frames.inventory.to_csv(out_dir / "inventory.csv", index=False)
