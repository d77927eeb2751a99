# planning/projections/plan_projection.py
from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd

import planning.paths as pp
from planning.data_utils import natural_key
from planning.dependency_resolver import get_execution_order
from planning.graph_model import DEFAULT_OUTPUT_UNIT, Node, PlanMeta, Station

logger = logging.getLogger(__name__)

DAILY_SHIFT_MINUTES = 480

NODE_COLUMNS = [
    "poradi", "uzel", "operace", "nazev", "stanice", "stanice_vse", "pracovnik", "rezim",
    "kod", "kod_ceka", "vystup_mnozstvi", "vystup_jednotka", "cas_min", "efektivni_cas_min",
    "predchudci", "naslednici", "varovani", "pozornost",
]
MATERIAL_COLUMNS = ["material_id", "nazev", "jednotka", "potreba", "odvozeny"]
TIMING_COLUMNS = ["stanice", "nazev", "zatizeni_min"]


def to_nodes_df(store, order: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Jeden řádek na uzel v pořadí provádění (sloupec `poradi` = 1..n).
    `order` lze předat hotové; jinak se spočítá (cyklus → CycleError).
    """
    order = order if order is not None else get_execution_order(store)
    rows = []
    for i, nid in enumerate(order, start=1):
        n = store.get(nid)
        rows.append({
            "poradi": i,
            "uzel": n.id,
            "operace": n.operation_id,
            "nazev": n.name,
            "stanice": n.primary_station_id() or "",
            "stanice_vse": ", ".join(s.station_id for s in n.sorted_stations()),
            "pracovnik": n.assigned_worker or "",
            "rezim": n.assignment_mode or "",
            "kod": n.semi_code or "",
            "kod_ceka": bool(n.semi_code_pending),
            "vystup_mnozstvi": n.output_quantity,
            "vystup_jednotka": n.output_unit,
            "cas_min": n.duration,
            "efektivni_cas_min": n.effective_time if n.effective_time is not None else n.duration,
            "predchudci": ", ".join(store.predecessors(nid)),
            "naslednici": ", ".join(store.connections(nid)),
            "varovani": " | ".join(n.assignment_warnings),
            "pozornost": bool(n.requires_attention),
        })
    return pd.DataFrame(rows, columns=NODE_COLUMNS)


def aggregate_materials(nodes: Iterable[Node], plan_quantity: float = 1.0) -> pd.DataFrame:
    """
    Celková potřeba každého materiálu přes všechny uzly (× množství plánu).
    Řádky bez známého / kladného množství se přeskočí. Pořadí = první výskyt.
    """
    acc: Dict[str, dict] = {}
    for node in nodes:
        for m in node.materials:
            if not m.material_id or m.quantity is None or m.quantity <= 0:
                continue
            need = float(m.quantity) * float(plan_quantity)
            row = acc.get(m.material_id)
            if row is None:
                acc[m.material_id] = {
                    "material_id": m.material_id,
                    "nazev": m.name or m.material_id,
                    "jednotka": m.unit or DEFAULT_OUTPUT_UNIT,
                    "potreba": need,
                    "odvozeny": m.is_derived,
                }
            else:
                row["potreba"] += need
    return pd.DataFrame(list(acc.values()), columns=MATERIAL_COLUMNS)


@dataclass
class PlanTiming:
    total_nominal_time: float = 0.0
    total_effective_time: float = 0.0
    station_loads: List[dict] = field(default_factory=list)   # seřazeno od nejvytíženější
    bottleneck: Optional[dict] = None
    daily_shift_minutes: float = DAILY_SHIFT_MINUTES
    estimated_days: int = 0


def summarize_timing(nodes: Iterable[Node], stations: Optional[Dict[str, Station]] = None,
                     plan_quantity: float = 1.0,
                     daily_shift_minutes: float = DAILY_SHIFT_MINUTES) -> PlanTiming:
    """
    Součet nominálních / efektivních časů, zatížení primárních stanic
    a odhad počtu dní: ceil(zatížení úzkého místa × množství / směna).
    """
    stations = stations or {}
    out = PlanTiming(daily_shift_minutes=daily_shift_minutes)
    loads: Dict[str, float] = {}
    for n in nodes:
        nominal = float(n.duration or 0)
        effective = float(n.effective_time) if n.effective_time is not None else nominal
        out.total_nominal_time += nominal
        out.total_effective_time += effective
        sid = n.primary_station_id()
        if sid:
            loads[sid] = loads.get(sid, 0.0) + effective

    ranked = sorted(loads.items(), key=lambda kv: (-kv[1], natural_key(kv[0])))
    out.station_loads = [
        {"station_id": sid, "station_name": stations[sid].name if sid in stations else sid, "load": load}
        for sid, load in ranked
    ]
    if out.station_loads and out.station_loads[0]["load"] > 0:
        out.bottleneck = dict(out.station_loads[0])
        if plan_quantity > 0 and daily_shift_minutes > 0:
            out.estimated_days = int(math.ceil(out.bottleneck["load"] * plan_quantity / daily_shift_minutes))
    return out


def timing_df(timing: PlanTiming) -> pd.DataFrame:
    rows = [{"stanice": s["station_id"], "nazev": s["station_name"], "zatizeni_min": s["load"]}
            for s in timing.station_loads]
    return pd.DataFrame(rows, columns=TIMING_COLUMNS)


def export_plan_excel(store, meta: PlanMeta, stations: Optional[Dict[str, Station]] = None,
                      path: Optional[Path] = None) -> Path:
    """Zapíše listy Uzly / Materialy / Casovani (pandas + openpyxl)."""
    out = Path(path) if path is not None else Path(pp.EXPORT_DIR) / f"{meta.plan_id or 'plan'}.xlsx"
    out.parent.mkdir(parents=True, exist_ok=True)

    nodes_df = to_nodes_df(store)
    mats_df = aggregate_materials(store.nodes(), meta.quantity)
    timing = summarize_timing(store.nodes(), stations, meta.quantity)
    tdf = timing_df(timing)
    summary = pd.DataFrame([
        {"stanice": "CELKEM nominální", "nazev": "", "zatizeni_min": timing.total_nominal_time},
        {"stanice": "CELKEM efektivní", "nazev": "", "zatizeni_min": timing.total_effective_time},
        {"stanice": "Odhad dní", "nazev": "", "zatizeni_min": timing.estimated_days},
    ], columns=TIMING_COLUMNS)

    with pd.ExcelWriter(out, engine="openpyxl") as writer:
        nodes_df.to_excel(writer, sheet_name="Uzly", index=False)
        mats_df.to_excel(writer, sheet_name="Materialy", index=False)
        pd.concat([tdf, summary], ignore_index=True).to_excel(writer, sheet_name="Casovani", index=False)
    logger.info("Export plánu %s: %s", meta.plan_id or "-", out)
    return out
