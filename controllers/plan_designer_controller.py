# -*- coding: utf-8 -*-
"""
PlanDesignerController – řídicí vrstva mezi front-endem návrháře plánu a jádrem.

Nezávislé na UI; pracuje jen s id uzlů, slovníky z formulářů a pandas DataFrame.
UI se přihlásí přes `subscribe()` a po každé události si znovu načte pohledy
(`nodes_df`, `materials_df`, ...). Stav grafu nikdy nemění přímo.

Chyby:
- `PlanValidationError` (a potomci) → hláška pro uživatele je v `exc.args[0]`,
  pole formuláře v `exc.field`,
- `CycleError` → `exc.node_ids`,
- ostatní `PlanError` → zalogované přes `show_error`, letí dál.

Po `deploy()` je návrhář jen pro čtení; úpravy grafu končí `PlanError`.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

import pandas as pd

from planning.catalog import Catalog
from planning.errors import PlanError
from planning.error_messages import MSG
from planning.graph_model import ASSIGN_AUTO, PlanMeta
from planning.graph_store import GraphEvent
from planning.node_editor import NodeEdit
from planning.plan_session import PlanSession
from planning.plan_snapshot import KIND_PLAN, KIND_TEMPLATE, load_plan
from planning.projections import plan_projection as proj
from planning.semi_code import SemiCodeRegistry


@dataclass
class DesignerState:
    selected_node: Optional[str] = None
    read_only: bool = False


class PlanDesignerController:
    def __init__(self, catalog: Catalog, registry: Optional[SemiCodeRegistry] = None,
                 session: Optional[PlanSession] = None, **session_kwargs) -> None:
        self._catalog = catalog
        self._session = session or PlanSession(catalog, registry=registry, **session_kwargs)
        self._state = DesignerState()
        self._listeners: List[Callable[[GraphEvent], None]] = []
        self._unsub = self._session.store.subscribe(self._forward)

    # ======================== UDÁLOSTI ========================
    def _forward(self, ev: GraphEvent) -> None:
        for fn in list(self._listeners):
            fn(ev)

    def subscribe(self, listener: Callable[[GraphEvent], None]) -> None:
        self._listeners.append(listener)

    def _writable(self) -> None:
        if self._state.read_only:
            raise PlanError(MSG["plan_deployed"])

    @property
    def session(self) -> PlanSession:
        return self._session

    # ======================== ÚPRAVY GRAFU ========================
    def add_operation(self, operation_id: str) -> str:
        self._writable()
        node = self._session.place_operation(operation_id)
        self._state.selected_node = node.id
        return node.id

    def connect(self, from_id: str, to_id: str) -> None:
        self._writable()
        self._session.connect(from_id, to_id)

    def disconnect(self, from_id: str, to_id: str) -> bool:
        self._writable()
        return self._session.disconnect(from_id, to_id)

    def delete_node(self, node_id: str) -> None:
        self._writable()
        self._session.remove_node(node_id)
        if self._state.selected_node == node_id:
            self._state.selected_node = None

    def select(self, node_id: Optional[str]) -> None:
        if node_id is not None:
            self._session.store.get(node_id)
        self._state.selected_node = node_id

    def selected(self) -> Optional[str]:
        return self._state.selected_node

    def save_node_form(self, node_id: str, form: dict) -> dict:
        """
        Uloží formulář editoru uzlu. Klíče formuláře: name, time, stations
        (pořadí = priorita), mode, worker, materials, output_qty, output_unit,
        efficiency (%), skills. Vrací výsledek přiřazení (camelCase dict).
        """
        self._writable()
        edit = NodeEdit(
            name=form.get("name", ""),
            time=form.get("time"),
            station_ids=list(form.get("stations") or []),
            assignment_mode=form.get("mode") or ASSIGN_AUTO,
            worker_id=form.get("worker") or None,
            materials=form.get("materials"),
            output_quantity=form.get("output_qty"),
            output_unit=form.get("output_unit", "") or "",
            efficiency_percent=form.get("efficiency"),
            skills=form.get("skills"),
            window_start=form.get("start"),
        )
        return self._session.save_node(node_id, edit).to_dict()

    def preview_code(self, node_id: str) -> Optional[str]:
        return self._session.preview_code(node_id)

    # ======================== POHLEDY ========================
    def nodes_df(self) -> pd.DataFrame:
        return proj.to_nodes_df(self._session.store)

    def materials_df(self) -> pd.DataFrame:
        return proj.aggregate_materials(self._session.store.nodes(), self._session.meta.quantity)

    def timing(self) -> proj.PlanTiming:
        return proj.summarize_timing(self._session.store.nodes(), self._catalog.stations,
                                     self._session.meta.quantity)

    def execution_order(self) -> List[str]:
        return self._session.execution_order()

    # ======================== ULOŽENÍ / NASAZENÍ ========================
    def set_meta(self, plan_id: str, name: str = "", quantity: float = 1.0,
                 order_code: Optional[str] = None, template: bool = False) -> None:
        self._writable()
        self._session.meta = PlanMeta(
            plan_id=plan_id, name=name, quantity=quantity, order_code=order_code,
            kind=KIND_TEMPLATE if template else KIND_PLAN,
        )

    def save(self, path: Optional[Path] = None) -> Path:
        return self._session.save_plan(path)

    def export_excel(self, path: Optional[Path] = None) -> Path:
        return proj.export_plan_excel(self._session.store, self._session.meta, self._catalog.stations, path)

    def deploy(self) -> dict:
        was = self._state.read_only
        self._state.read_only = True
        try:
            return self._session.deploy()
        except Exception:
            self._state.read_only = was
            raise

    def read_only(self) -> bool:
        return self._state.read_only

    def open(self, path: Path) -> None:
        store, meta = load_plan(path)
        self._unsub()
        for nid in self._session.store.node_ids():
            self._session.release_booking(nid)
        self._session.store, self._session.meta = store, meta
        self._unsub = store.subscribe(self._forward)
        self._state = DesignerState()

    def reset(self) -> None:
        self._session.reset()
        self._state = DesignerState()
