# -*- coding: utf-8 -*-
"""
Přiřazení pracovníka a stanic k uzlu plánu.

Požadované dovednosti = dovednosti uzlu ∪ efektivní dovednosti primární stanice.

Režim `auto`:
    vhodní = aktivní pracovníci, kteří mají všechny požadované dovednosti
    a v den začátku okna nejsou nepřítomní; z nich ti, kdo jsou v okně volní
    (bez překryvu s jinými závazky). Vybere se nejméně vytížený, při shodě
    podle id. Když nikdo nezbyde, uzel zůstane bez pracovníka, dostane
    varování a `requires_attention = True` – plán jde dál uložit.

Režim `manual`:
    pracovníka volí plánovač. Chybějící dovednost je tvrdá chyba
    (`SkillMismatchError`), překryv v rozvrhu jen varování.

Rozvrhy ostatních plánů se čtou jako snímek bez zámku; dvě relace tak mohou
přiřadit stejného pracovníka do překrývajících se oken. Finální kontrolu
musí udělat plánovač výroby při potvrzení (optimistická souběžnost).
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol

from planning.catalog import Catalog, merge_skills
from planning.data_utils import natural_key
from planning.errors import PlanValidationError, SkillMismatchError
from planning.error_messages import MSG
from planning.graph_model import (
    ASSIGN_AUTO, ASSIGN_MANUAL, ASSIGNMENT_MODES,
    AssignmentResult, Commitment, Node, StationRef, TimeWindow, Worker,
)

logger = logging.getLogger(__name__)


class ScheduleLookup(Protocol):
    def commitments_for(self, worker_id: str) -> List[Commitment]: ...


class ScheduleBook:
    """Jednoduchý rozvrh v paměti: kdo je kdy čím vytížen."""

    def __init__(self, commitments: Iterable[Commitment] = ()):
        self._items: List[Commitment] = list(commitments)

    def book(self, worker_id: str, window: TimeWindow, ref: str = "") -> Commitment:
        c = Commitment(worker_id, window, ref)
        self._items.append(c)
        return c

    def release(self, ref: str) -> int:
        """Zruší všechny závazky s daným `ref`; vrací jejich počet."""
        before = len(self._items)
        self._items = [c for c in self._items if c.ref != ref]
        return before - len(self._items)

    def commitments_for(self, worker_id: str) -> List[Commitment]:
        return [c for c in self._items if c.worker_id == worker_id]

    def all(self) -> List[Commitment]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()


# ----------------------------- Dovednosti -----------------------------
def effective_required_skills(node: Node, catalog: Catalog) -> List[str]:
    station = catalog.find_station(node.primary_station_id())
    return merge_skills(node.skills, station.effective_skills if station else [])


def missing_skills(worker: Worker, required: Iterable[str]) -> List[str]:
    have = set(worker.skills)
    return sorted(s for s in set(required) if s not in have)


def eligible_workers(required: Iterable[str], catalog: Catalog, day=None) -> List[Worker]:
    """Aktivní pracovníci se všemi dovednostmi (a přítomní v den `day`), seřazení podle id."""
    req = list(required)
    out = []
    for w in catalog.workers.values():
        if not w.active or missing_skills(w, req):
            continue
        if day is not None and w.is_absent(day):
            continue
        out.append(w)
    return sorted(out, key=lambda w: natural_key(w.id))


# ----------------------------- Rozvrh -----------------------------
def node_window(node: Node, start: Optional[datetime] = None) -> TimeWindow:
    """Okno uzlu: [start, start + efektivní čas) – start default = teď."""
    minutes = node.effective_time if node.effective_time else node.duration
    return TimeWindow.from_duration(start or datetime.now(), minutes)


def overlapping(schedule: ScheduleLookup, worker_id: str, window: TimeWindow,
                ignore_ref: Optional[str] = None) -> List[Commitment]:
    return [c for c in schedule.commitments_for(worker_id)
            if (ignore_ref is None or c.ref != ignore_ref) and c.window.overlaps(window)]


def booked_minutes(schedule: ScheduleLookup, worker_id: str, ignore_ref: Optional[str] = None) -> float:
    return sum(c.window.minutes for c in schedule.commitments_for(worker_id)
               if ignore_ref is None or c.ref != ignore_ref)


# ----------------------------- Řešení -----------------------------
def _check_stations(node: Node, catalog: Catalog) -> List[StationRef]:
    stations = node.sorted_stations()
    if not stations:
        raise PlanValidationError("no_station", field="assigned_stations")
    for s in stations:
        if catalog.find_station(s.station_id) is None:
            raise PlanValidationError("unknown_station", f"{MSG['unknown_station']} ({s.station_id})",
                                      field="assigned_stations")
    return stations


def resolve_assignment(node: Node, catalog: Catalog, schedule: ScheduleLookup, *,
                       mode: str = ASSIGN_AUTO, worker_id: Optional[str] = None,
                       window: Optional[TimeWindow] = None,
                       ignore_ref: Optional[str] = None) -> AssignmentResult:
    """
    Spočítá přiřazení pro uzel. Uzel samotný nemění (viz `apply_assignment`).
    Validační chyby (bez stanice, ruční režim bez pracovníka, chybějící
    dovednosti) se vyhodí dřív, než se cokoli zapíše.
    """
    if mode not in ASSIGNMENT_MODES:
        raise PlanValidationError("invalid_mode", field="assignment_mode")
    stations = _check_stations(node, catalog)
    required = effective_required_skills(node, catalog)
    window = window or node_window(node)

    if mode == ASSIGN_MANUAL:
        return _resolve_manual(node, catalog, schedule, stations, required, worker_id, window, ignore_ref)
    return _resolve_auto(node, catalog, schedule, stations, required, window, ignore_ref)


def _resolve_manual(node, catalog, schedule, stations, required, worker_id, window, ignore_ref) -> AssignmentResult:
    if not worker_id:
        raise PlanValidationError("manual_worker_missing", field="assigned_worker")
    worker = catalog.find_worker(worker_id)
    if worker is None:
        raise PlanValidationError("unknown_worker", field="assigned_worker")
    missing = missing_skills(worker, required)
    if missing:
        logger.warning("Uzel %s: pracovník %s nemá %s", node.id, worker_id, missing)
        raise SkillMismatchError(worker_id, missing)

    warnings: List[str] = []
    if not worker.active:
        warnings.append(f"{MSG['worker_inactive']} ({worker_id})")
    if worker.is_absent(window.start.date()):
        warnings.append(f"{MSG['worker_absent']} ({worker_id}, {window.start.date().isoformat()})")
    clashes = overlapping(schedule, worker_id, window, ignore_ref)
    if clashes:
        refs = ", ".join(c.ref or "?" for c in clashes)
        warnings.append(f"{MSG['worker_overlap']} ({worker_id}: {refs})")
    for w in warnings:
        logger.warning("Uzel %s: %s", node.id, w)

    return AssignmentResult(
        assigned_worker=worker_id,
        assigned_stations=stations,
        assignment_mode=ASSIGN_MANUAL,
        assignment_warnings=warnings,
        requires_attention=False,
    )


def _resolve_auto(node, catalog, schedule, stations, required, window, ignore_ref) -> AssignmentResult:
    candidates = eligible_workers(required, catalog, window.start.date())
    if not candidates:
        warn = f"{MSG['no_eligible_worker']} ({', '.join(required) or '-'})"
        logger.warning("Uzel %s: %s", node.id, warn)
        return AssignmentResult(None, stations, ASSIGN_AUTO, [warn], True)

    free = [w for w in candidates if not overlapping(schedule, w.id, window, ignore_ref)]
    if not free:
        warn = f"{MSG['no_free_worker']} ({window.start:%Y-%m-%d %H:%M}–{window.end:%H:%M})"
        logger.warning("Uzel %s: %s", node.id, warn)
        return AssignmentResult(None, stations, ASSIGN_AUTO, [warn], True)

    load: Dict[str, float] = {w.id: booked_minutes(schedule, w.id, ignore_ref) for w in free}
    chosen = min(free, key=lambda w: (load[w.id], natural_key(w.id)))
    logger.debug("Uzel %s: vybrán %s (vytížení %.0f min)", node.id, chosen.id, load[chosen.id])
    return AssignmentResult(chosen.id, stations, ASSIGN_AUTO, [], False)


def apply_assignment(node: Node, result: AssignmentResult) -> None:
    node.assigned_worker = result.assigned_worker
    node.assigned_stations = list(result.assigned_stations)
    node.assignment_mode = result.assignment_mode
    node.assignment_warnings = list(result.assignment_warnings)
    node.requires_attention = result.requires_attention
