from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from ortools.sat.python import cp_model

from schedule_mastery.domain.route import Aircraft, Route
from schedule_mastery.domain.rules import Rules
from schedule_mastery.scoring.score import points_for_block

Key = Tuple[str, str, int]  # (aircraft_id, route_id, copy)


@dataclass(frozen=True)
class ParModel:
    model: cp_model.CpModel
    present: Dict[Key, cp_model.IntVar]      # trip copy flown or not
    start: Dict[Key, cp_model.IntVar]        # outbound start (minutes)
    span: Dict[Key, int]
    trip_points: Dict[Key, int]
    flight_minutes: Dict[str, cp_model.IntVar]
    utilization: Dict[str, cp_model.IntVar]  # aircraft earns the utilization bonus


@dataclass(frozen=True)
class ParResult:
    status: str
    points: int | None = None
    trips: List[Dict[str, Any]] = field(default_factory=list)


def build_par_model(
        fleet: Sequence[Aircraft],
        routes: Sequence[Route],
        inventory: Mapping[str, int],
        rules: Rules | None = None,
) -> ParModel:
    """
    Build the par-score CP-SAT model for the remaining inventory.

    Variables:
      present[a,r,k] = 1 if aircraft a flies the k-th copy of route r
      start[a,r,k]   = outbound start, on the departure grid

    Constraints:
      - Trips of one aircraft do not overlap and stay inside [day_start, curfew_end]
      - Aircraft duty cap on the sum of trip spans
      - At most max_crews * max_sectors / 2 trips per aircraft
      - Route inventory is shared by the whole fleet

    Crew duty windows are not modelled, so the optimum is an upper reference
    for what the player can reach by hand.
    """
    rules = rules or Rules()
    model = cp_model.CpModel()

    grid = rules.grid_minutes
    max_trips = rules.max_crews * rules.max_sectors // 2

    present: Dict[Key, cp_model.IntVar] = {}
    start: Dict[Key, cp_model.IntVar] = {}
    span: Dict[Key, int] = {}
    trip_points: Dict[Key, int] = {}
    intervals_by_aircraft: Dict[str, List[cp_model.IntervalVar]] = {a.aircraft_id: [] for a in fleet}

    # --- Variables: one optional interval per (aircraft, route, copy) ---
    for a in fleet:
        for r in routes:
            avail = int(inventory.get(r.route_id, 0))
            s = r.trip_span(a.aircraft_type)
            latest = rules.curfew_end - s
            if avail <= 0 or latest < rules.day_start:
                continue

            for k in range(min(avail, max_trips)):
                key = (a.aircraft_id, r.route_id, k)
                slot = model.NewIntVar(-(-rules.day_start // grid), latest // grid, f"slot[{a.aircraft_id},{r.route_id},{k}]")
                st = model.NewIntVar(rules.day_start, latest, f"start[{a.aircraft_id},{r.route_id},{k}]")
                model.Add(st == grid * slot)
                p = model.NewBoolVar(f"present[{a.aircraft_id},{r.route_id},{k}]")

                intervals_by_aircraft[a.aircraft_id].append(
                    model.NewOptionalFixedSizeIntervalVar(st, s, p, f"trip[{a.aircraft_id},{r.route_id},{k}]")
                )
                present[key] = p
                start[key] = st
                span[key] = s
                trip_points[key] = 2 * points_for_block(r.block_minutes, r.route_type, rules)

            # symmetry: copies are used in order and flown in order
            for k in range(1, min(avail, max_trips)):
                prev, cur = (a.aircraft_id, r.route_id, k - 1), (a.aircraft_id, r.route_id, k)
                model.Add(present[cur] <= present[prev])
                model.Add(start[prev] < start[cur]).OnlyEnforceIf(present[cur])

    # --- Per-aircraft constraints ---
    flight_minutes: Dict[str, cp_model.IntVar] = {}
    utilization: Dict[str, cp_model.IntVar] = {}
    block_by_route = {r.route_id: r.block_minutes for r in routes}

    for a in fleet:
        a_id = a.aircraft_id
        keys = [key for key in present if key[0] == a_id]

        fm = model.NewIntVar(0, rules.aircraft_duty_cap, f"flight_minutes[{a_id}]")
        flight_minutes[a_id] = fm

        if not keys:
            model.Add(fm == 0)
        else:
            model.AddNoOverlap(intervals_by_aircraft[a_id])
            model.Add(sum(present[key] * span[key] for key in keys) <= rules.aircraft_duty_cap)
            model.Add(sum(present[key] for key in keys) <= max_trips)
            model.Add(fm == sum(present[key] * 2 * block_by_route[key[1]] for key in keys))

        u = model.NewBoolVar(f"utilization[{a_id}]")
        model.Add(fm >= rules.utilization_threshold).OnlyEnforceIf(u)
        utilization[a_id] = u

    # --- Shared inventory ---
    for r in routes:
        copies = [present[key] for key in present if key[1] == r.route_id]
        if copies:
            model.Add(sum(copies) <= int(inventory.get(r.route_id, 0)))

    model.Maximize(
        sum(present[key] * trip_points[key] for key in present)
        + rules.utilization_bonus * sum(utilization.values())
    )

    return ParModel(
        model=model,
        present=present,
        start=start,
        span=span,
        trip_points=trip_points,
        flight_minutes=flight_minutes,
        utilization=utilization,
    )


def solve_par(
        fleet: Sequence[Aircraft],
        routes: Sequence[Route],
        inventory: Mapping[str, int],
        rules: Rules | None = None,
        *,
        time_limit: float = 10.0,
        num_workers: int = 4,
) -> ParResult:
    pm = build_par_model(fleet, routes, inventory, rules)

    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = float(time_limit)
    solver.parameters.num_search_workers = int(num_workers)

    status = solver.Solve(pm.model)
    status_name = solver.StatusName(status)
    if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
        return ParResult(status=status_name)

    trips = []
    for key, var in pm.present.items():
        if solver.Value(var) == 1:
            a_id, r_id, _ = key
            st = solver.Value(pm.start[key])
            trips.append(
                {
                    "aircraft_id": a_id,
                    "route_id": r_id,
                    "start": int(st),
                    "end": int(st + pm.span[key]),
                    "points": pm.trip_points[key],
                }
            )
    trips.sort(key=lambda t: (t["aircraft_id"], t["start"]))

    return ParResult(status=status_name, points=int(round(solver.ObjectiveValue())), trips=trips)
