# planning/data_loader.py
from __future__ import annotations
import logging
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

import planning.paths as pp
from planning.catalog import Catalog
from planning.data_utils import (
    cell_text, clean_columns, find_col, is_blank, safe_float, to_bool_cell_excel, to_str_list,
)
from planning.errors import CatalogError
from planning.graph_model import DEFAULT_DURATION_MIN, Absence, Operation, Station, Worker

logger = logging.getLogger(__name__)

SHEET_OPERATIONS = "Operace"
SHEET_STATIONS   = "Stanice"
SHEET_WORKERS    = "Pracovnici"
SHEET_ABSENCES   = "Nepritomnosti"   # volitelný

# aliasy sloupců (porovnává se bez diakritiky, mezer a velikosti písmen)
COL_ID          = ["id", "kod", "code"]
COL_NAME        = ["nazev", "name", "jmeno"]
COL_TYPE        = ["typ", "type"]
COL_SKILLS      = ["dovednosti", "skills"]
COL_OUTPUT_CODE = ["kod_vystupu", "output_code", "semi_output_code", "kod_polotovaru"]
COL_EFFICIENCY  = ["efektivita", "efficiency", "default_efficiency"]
COL_DURATION    = ["cas_min", "cas", "duration", "default_duration"]
COL_OPERATIONS  = ["operace", "operation_ids", "operations"]
COL_SUB_SKILLS  = ["dovednosti_stanice", "sub_skills", "extra_dovednosti"]
COL_EFF_SKILLS  = ["efektivni_dovednosti", "effective_skills"]
COL_ACTIVE      = ["aktivni", "active", "stav", "status"]
COL_WORKER      = ["pracovnik", "worker", "worker_id"]
COL_FROM        = ["od", "from", "start"]
COL_TO          = ["do", "to", "end"]
COL_REASON      = ["duvod", "reason"]


def _required(df: pd.DataFrame, aliases: List[str], sheet: str) -> str:
    col = find_col(df, aliases)
    if col is None:
        raise CatalogError(f"List '{sheet}': chybí sloupec {aliases[0]!r}")
    return col


def _efficiency(v) -> float:
    # v Excelu bývá 0.85 i 85 (%)
    f = safe_float(v)
    if f is None or f <= 0:
        return 1.0
    return f / 100.0 if f > 1 else f


def _date(v):
    if is_blank(v):
        return None
    dt = pd.to_datetime(v, errors="coerce", dayfirst=True)
    return None if pd.isna(dt) else dt.date()


def operations_from_df(df: pd.DataFrame) -> List[Operation]:
    clean_columns(df)
    c_id = _required(df, COL_ID, SHEET_OPERATIONS)
    c_name = find_col(df, COL_NAME)
    c_type = find_col(df, COL_TYPE)
    c_sk = find_col(df, COL_SKILLS)
    c_out = find_col(df, COL_OUTPUT_CODE)
    c_eff = find_col(df, COL_EFFICIENCY)
    c_dur = find_col(df, COL_DURATION)

    out = []
    for _, r in df.iterrows():
        oid = cell_text(r[c_id])
        if not oid:
            continue
        dur = safe_float(r[c_dur]) if c_dur else None
        out.append(Operation(
            id=oid,
            name=cell_text(r[c_name]) if c_name else oid,
            type=cell_text(r[c_type]) if c_type else "",
            skills=to_str_list(r[c_sk]) if c_sk else [],
            output_code=cell_text(r[c_out]) if c_out else "",
            default_efficiency=_efficiency(r[c_eff]) if c_eff else 1.0,
            default_duration=dur if dur and dur > 0 else DEFAULT_DURATION_MIN,
        ))
    return out


def stations_from_df(df: pd.DataFrame) -> List[Station]:
    clean_columns(df)
    c_id = _required(df, COL_ID, SHEET_STATIONS)
    c_name = find_col(df, COL_NAME)
    c_ops = find_col(df, COL_OPERATIONS)
    c_sub = find_col(df, COL_SUB_SKILLS)
    c_eff = find_col(df, COL_EFF_SKILLS)

    out = []
    for _, r in df.iterrows():
        sid = cell_text(r[c_id])
        if not sid:
            continue
        out.append(Station(
            id=sid,
            name=cell_text(r[c_name]) if c_name else sid,
            operation_ids=to_str_list(r[c_ops]) if c_ops else [],
            sub_skills=to_str_list(r[c_sub]) if c_sub else [],
            effective_skills=to_str_list(r[c_eff]) if c_eff else [],
        ))
    return out


def absences_from_df(df: Optional[pd.DataFrame]) -> Dict[str, List[Absence]]:
    if df is None or df.empty:
        return {}
    clean_columns(df)
    c_w = _required(df, COL_WORKER, SHEET_ABSENCES)
    c_from = _required(df, COL_FROM, SHEET_ABSENCES)
    c_to = find_col(df, COL_TO)
    c_reason = find_col(df, COL_REASON)

    out: Dict[str, List[Absence]] = {}
    for _, r in df.iterrows():
        wid = cell_text(r[c_w])
        start = _date(r[c_from])
        if not wid or start is None:
            continue
        end = (_date(r[c_to]) if c_to else None) or start
        out.setdefault(wid, []).append(Absence(start, end, cell_text(r[c_reason]) if c_reason else ""))
    return out


def workers_from_df(df: pd.DataFrame, absences: Optional[Dict[str, List[Absence]]] = None) -> List[Worker]:
    clean_columns(df)
    c_id = _required(df, COL_ID, SHEET_WORKERS)
    c_name = find_col(df, COL_NAME)
    c_sk = find_col(df, COL_SKILLS)
    c_act = find_col(df, COL_ACTIVE)
    absences = absences or {}

    out = []
    for _, r in df.iterrows():
        wid = cell_text(r[c_id])
        if not wid:
            continue
        # prázdný stav = aktivní
        active = True if (not c_act or is_blank(r[c_act])) else to_bool_cell_excel(r[c_act])
        out.append(Worker(
            id=wid,
            name=cell_text(r[c_name]) if c_name else wid,
            skills=to_str_list(r[c_sk]) if c_sk else [],
            active=active,
            absences=list(absences.get(wid, [])),
        ))
    return out


def load_catalog(path: Optional[Path] = None) -> Catalog:
    """
    Načte katalog z Excelu (listy Operace / Stanice / Pracovnici,
    volitelně Nepritomnosti). Default cesta = paths.CATALOG_FILE (runtime).
    """
    src = Path(path) if path is not None else Path(pp.CATALOG_FILE)
    try:
        sheets = pd.read_excel(src, sheet_name=None, dtype=object)
    except (OSError, ValueError) as e:
        raise CatalogError(f"Katalog {src} nelze načíst: {e}") from e

    missing = [s for s in (SHEET_OPERATIONS, SHEET_STATIONS, SHEET_WORKERS) if s not in sheets]
    if missing:
        raise CatalogError(f"Katalog {src}: chybí list(y) {', '.join(missing)}")

    catalog = Catalog(
        operations=operations_from_df(sheets[SHEET_OPERATIONS]),
        stations=stations_from_df(sheets[SHEET_STATIONS]),
        workers=workers_from_df(sheets[SHEET_WORKERS], absences_from_df(sheets.get(SHEET_ABSENCES))),
    )
    logger.info("Katalog načten: %d operací, %d stanic, %d pracovníků",
                len(catalog.operations), len(catalog.stations), len(catalog.workers))
    return catalog
