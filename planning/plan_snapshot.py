# -*- coding: utf-8 -*-
"""
Snímek plánu pro uložení (plán nebo šablona) a jeho načtení zpět.

Formát je JSON: `{"meta": {...}, "nextNodeSeq": n, "nodes": [...]}`; hrany
jsou v každém uzlu jako `connections` (odchozí) a `predecessors` (příchozí).
Při načtení se data normalizují:
  - chybějící / duplicitní id uzlů dostanou nové `node-N`,
  - odkazy (connections, predecessors, derivedFrom) se přemapují,
  - hrany = sjednocení connections a predecessors; hrany na neznámé uzly
    nebo hrany, které by uzavřely cyklus, se zahodí s varováním,
  - zastaralé runtime položky přiřazení se ignorují,
  - čítač dalšího id = max(číselná přípona) + 1.
"""
from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import planning.paths as pp
from planning.data_utils import natural_key, numeric_suffix, safe_float, to_str_list
from planning.errors import CycleError, DuplicateEdgeError, PlanError, PlanValidationError
from planning.error_messages import MSG, show_error
from planning.graph_model import (
    ASSIGNMENT_MODES, MaterialEntry, Node, PlanMeta, _pick, as_material, as_station_ref,
)
from planning.graph_store import GraphStore, enforce_code_preconditions

logger = logging.getLogger(__name__)

KIND_PLAN     = "plan"
KIND_TEMPLATE = "template"


# ----------------------------- Uzel <-> dict -----------------------------
def material_to_dict(m: MaterialEntry) -> dict:
    return {
        "materialId": m.material_id,
        "name": m.name,
        "quantity": m.quantity,
        "unit": m.unit,
        "derivedFrom": m.derived_from,
    }


def node_to_dict(node: Node, store: GraphStore) -> dict:
    return {
        "id": node.id,
        "operationId": node.operation_id,
        "name": node.name,
        "type": node.operation_type,
        "time": node.duration,
        "skills": list(node.skills),
        "materialInputs": [material_to_dict(m) for m in node.materials],
        "semiCode": node.semi_code,
        "semiCodePending": node.semi_code_pending,
        "outputQty": node.output_quantity,
        "outputUnit": node.output_unit,
        "efficiency": node.efficiency,
        "effectiveTime": node.effective_time,
        "assignedWorker": node.assigned_worker,
        "assignedStations": [{"stationId": s.station_id, "priority": s.priority}
                             for s in node.sorted_stations()],
        "assignmentMode": node.assignment_mode,
        "assignmentWarnings": list(node.assignment_warnings),
        "requiresAttention": node.requires_attention,
        "connections": store.connections(node.id),
        "predecessors": store.predecessors(node.id),
    }


def _stations_from_dict(d: dict) -> list:
    raw = _pick(d, "assignedStations", "assigned_stations")
    if raw is None:
        legacy = _pick(d, "stationId", "assignedStationId", "assignedStation")
        raw = [legacy] if legacy else []
    if not isinstance(raw, list):
        raw = [raw]
    refs = [as_station_ref(s, i) for i, s in enumerate(raw, start=1)]
    return [r for r in refs if r.station_id]


def node_from_dict(d: dict, node_id: str) -> Node:
    mode = _pick(d, "assignmentMode", "assignment_mode")
    return Node(
        id=node_id,
        operation_id=str(_pick(d, "operationId", "operation_id", default="")),
        name=str(_pick(d, "name", "operationName", default="")),
        operation_type=str(_pick(d, "type", "operation_type", default="")),
        duration=safe_float(_pick(d, "time", "duration")) or 60.0,
        skills=to_str_list(_pick(d, "skills", "requiredSkills", default=[])),
        materials=[as_material(m) for m in _pick(d, "materialInputs", "materials", default=[]) or []],
        semi_code=_pick(d, "semiCode", "semi_code") or None,
        semi_code_pending=bool(_pick(d, "semiCodePending", "semi_code_pending", default=False)),
        output_quantity=safe_float(_pick(d, "outputQty", "output_quantity")),
        output_unit=str(_pick(d, "outputUnit", "output_unit", default="") or ""),
        efficiency=safe_float(_pick(d, "efficiency")),
        effective_time=safe_float(_pick(d, "effectiveTime", "effective_time")),
        assigned_worker=_pick(d, "assignedWorker", "assigned_worker") or None,
        assigned_stations=_stations_from_dict(d),
        assignment_mode=mode if mode in ASSIGNMENT_MODES else None,
        assignment_warnings=list(_pick(d, "assignmentWarnings", "assignment_warnings", default=[]) or []),
        requires_attention=bool(_pick(d, "requiresAttention", "requires_attention", default=False)),
    )


def strip_runtime(node: Node) -> None:
    """Šablona nenese výsledky přiřazení ani kódy polotovarů."""
    node.assigned_worker = None
    node.assignment_mode = None
    node.assignment_warnings = []
    node.requires_attention = False
    node.semi_code = None
    node.semi_code_pending = False


# ----------------------------- Snímek -----------------------------
def meta_to_dict(meta: PlanMeta) -> dict:
    return {
        "planId": meta.plan_id,
        "name": meta.name,
        "kind": meta.kind,
        "orderCode": meta.order_code,
        "quantity": meta.quantity,
        "description": meta.description,
    }


def meta_from_dict(d: Optional[dict]) -> PlanMeta:
    d = d or {}
    kind = str(_pick(d, "kind", default=KIND_PLAN))
    return PlanMeta(
        plan_id=str(_pick(d, "planId", "plan_id", "id", default="")),
        name=str(_pick(d, "name", default="")),
        kind=kind if kind in (KIND_PLAN, KIND_TEMPLATE) else KIND_PLAN,
        order_code=_pick(d, "orderCode", "order_code"),
        quantity=safe_float(_pick(d, "quantity")) or 1.0,
        description=str(_pick(d, "description", default="")),
    )


def _template_copy(store: GraphStore) -> GraphStore:
    tmp = GraphStore()
    for n in store.nodes():
        c = copy.deepcopy(n)
        strip_runtime(c)
        tmp.insert_node(c)
    for e in store.edges():
        tmp.connect(e.from_id, e.to_id)
    for nid in tmp.node_ids():
        tmp.refresh_outputs(nid)
    tmp.set_next_seq(store.next_seq)
    return tmp


def to_snapshot(store: GraphStore, meta: PlanMeta) -> dict:
    src = _template_copy(store) if meta.kind == KIND_TEMPLATE else store
    return {
        "meta": meta_to_dict(meta),
        "nextNodeSeq": src.next_seq,
        "nodes": [node_to_dict(n, src) for n in src.nodes()],
    }


def _normalize_ids(raw_nodes: List[dict]) -> Tuple[List[str], Dict[str, str]]:
    used = set()
    remap: Dict[str, str] = {}
    ids: List[str] = []
    seq = 1
    reassigned = []

    for d in raw_nodes:
        preferred = ""
        for key in ("id", "nodeId", "localId"):
            v = d.get(key)
            if v is not None and str(v).strip():
                preferred = str(v).strip()
                break
        if preferred and preferred not in used:
            nid = preferred
        else:
            while f"node-{seq}" in used or any(str(x.get("id", "")).strip() == f"node-{seq}" for x in raw_nodes):
                seq += 1
            nid = f"node-{seq}"
            seq += 1
            if preferred:
                reassigned.append((preferred, nid))
        used.add(nid)
        if preferred and preferred not in remap:
            remap[preferred] = nid
        ids.append(nid)

    if reassigned:
        logger.warning("Duplicitní / chybějící id uzlů přečíslována: %s", reassigned)
    return ids, remap


def from_snapshot(data: dict) -> Tuple[GraphStore, PlanMeta]:
    meta = meta_from_dict(data.get("meta"))
    raw_nodes = [d for d in (data.get("nodes") or []) if isinstance(d, dict)]
    ids, remap = _normalize_ids(raw_nodes)

    store = GraphStore()
    for d, nid in zip(raw_nodes, ids):
        node = node_from_dict(d, nid)
        for m in node.materials:
            if m.derived_from is not None:
                m.derived_from = remap.get(m.derived_from, m.derived_from)
        store.insert_node(node)

    pairs = []
    for d, nid in zip(raw_nodes, ids):
        for to in to_str_list(d.get("connections")):
            pairs.append((nid, remap.get(to, to)))
        for frm in to_str_list(d.get("predecessors")):
            pairs.append((remap.get(frm, frm), nid))

    for frm, to in sorted(dict.fromkeys(pairs), key=lambda p: (natural_key(p[0]), natural_key(p[1]))):
        if frm not in store or to not in store:
            logger.warning("Hrana %s -> %s vede na neexistující uzel, vynechána", frm, to)
            continue
        if store.has_edge(frm, to):
            continue
        try:
            store.connect(frm, to)
        except (CycleError, PlanValidationError, DuplicateEdgeError) as e:
            logger.warning("Hrana %s -> %s vynechána: %s", frm, to, e)

    # odvozené řádky bez živé hrany pryč (chybějící doplnil už connect)
    for node in store.nodes():
        for src in {m.derived_from for m in node.derived_rows()}:
            if src not in store or not store.has_edge(src, node.id):
                node.materials = [m for m in node.materials if m.derived_from != src]
        enforce_code_preconditions(node)

    if meta.kind == KIND_TEMPLATE:
        for node in store.nodes():
            strip_runtime(node)
        for nid in store.node_ids():
            store.refresh_outputs(nid)

    max_suffix = max((numeric_suffix(n) for n in store.node_ids()), default=0)
    store.set_next_seq(max(int(safe_float(data.get("nextNodeSeq")) or 1), max_suffix + 1))
    return store, meta


# ----------------------------- Soubory -----------------------------
def _plan_path(meta: PlanMeta, path: Optional[Path]) -> Path:
    if path is not None:
        return Path(path)
    folder = Path(pp.PLANS_DIR) / ("sablony" if meta.kind == KIND_TEMPLATE else "plany")
    return folder / f"{meta.plan_id or 'plan'}.json"


def save_plan(store: GraphStore, meta: PlanMeta, path: Optional[Path] = None) -> Path:
    out = _plan_path(meta, path)
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(to_snapshot(store, meta), ensure_ascii=False, indent=2), encoding="utf-8")
    except OSError as e:
        show_error(MSG["plan_save"], e)
        raise PlanError(f"{MSG['plan_save']} ({out})") from e
    logger.info("Plán %s uložen do %s", meta.plan_id or "-", out)
    return out


def load_plan(path: Path) -> Tuple[GraphStore, PlanMeta]:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        show_error(MSG["plan_load"], e)
        raise PlanError(f"{MSG['plan_load']} ({path})") from e
    return from_snapshot(data)
