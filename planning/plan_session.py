# -*- coding: utf-8 -*-
"""
Jedna editační relace plánu: graf + katalog + registr kódů + rozvrh (+ sklad).

Mutace grafu jsou synchronní a jednovláknové – každá veřejná metoda doběhne
celá, než přijde další. Sdílené zdroje (registr kódů, rozvrhy pracovníků)
jsou mimo relaci; registr si atomicitu řeší sám v `transaction()`.
"""
from __future__ import annotations

import copy
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from planning import plan_snapshot
from planning.assignment import ScheduleBook, ScheduleLookup
from planning.catalog import Catalog
from planning.dependency_resolver import get_execution_order
from planning.errors import CycleError, PlanError, PlanValidationError, RegistryPersistenceError
from planning.error_messages import MSG, show_error
from planning.graph_model import AssignmentResult, Edge, Node, PlanMeta, TimeWindow
from planning.graph_store import GraphStore
from planning.node_editor import NodeEdit, save_node
from planning.semi_code import SemiCodeRegistry

logger = logging.getLogger(__name__)


class MaterialLedger(Protocol):
    def upsert(self, code: str, entry: dict) -> None: ...


class InMemoryMaterialLedger:
    """Skladová evidence polotovarů v paměti (klíč = kód polotovaru)."""

    def __init__(self):
        self.entries: Dict[str, dict] = {}

    def upsert(self, code: str, entry: dict) -> None:
        self.entries[code] = {**self.entries.get(code, {}), **entry}


def ledger_entry(node: Node, meta: PlanMeta) -> dict:
    return {
        "code": node.semi_code,
        "name": node.name,
        "unit": node.output_unit,
        "quantity": node.output_quantity,
        "operation_id": node.operation_id,
        "station_id": node.primary_station_id(),
        "plan_id": meta.plan_id,
        "node_id": node.id,
    }


class PlanSession:
    def __init__(self, catalog: Catalog, registry: Optional[SemiCodeRegistry] = None,
                 schedule: Optional[ScheduleLookup] = None, ledger: Optional[MaterialLedger] = None,
                 meta: Optional[PlanMeta] = None, store: Optional[GraphStore] = None,
                 window_start: Optional[datetime] = None):
        self.catalog = catalog
        self.registry = registry if registry is not None else SemiCodeRegistry(catalog)
        self.schedule = schedule if schedule is not None else ScheduleBook()
        self.ledger = ledger
        self.meta = meta or PlanMeta()
        self.store = store if store is not None else GraphStore()
        self.window_start = window_start

    # ----------------------------- Rozvrh -----------------------------
    def schedule_ref(self, node_id: str) -> str:
        return f"{self.meta.plan_id or 'plan'}/{node_id}"

    def book_worker(self, node_id: str, worker_id: Optional[str], window: TimeWindow) -> None:
        """Přepíše závazek uzlu v rozvrhu (jen pokud rozvrh umí zapisovat)."""
        ref = self.schedule_ref(node_id)
        release = getattr(self.schedule, "release", None)
        book = getattr(self.schedule, "book", None)
        if release is None or book is None:
            return
        release(ref)
        if worker_id:
            book(worker_id, window, ref)

    def release_booking(self, node_id: str) -> None:
        release = getattr(self.schedule, "release", None)
        if release is not None:
            release(self.schedule_ref(node_id))

    # ----------------------------- Graf -----------------------------
    def place_operation(self, operation_id: str) -> Node:
        op = self.catalog.find_operation(operation_id)
        if op is None:
            raise PlanValidationError("unknown_operation", f"{MSG['unknown_operation']} ({operation_id})",
                                      field="operation_id")
        return self.store.add_node(op)

    def connect(self, from_id: str, to_id: str) -> Edge:
        return self.store.connect(from_id, to_id)

    def disconnect(self, from_id: str, to_id: str) -> bool:
        return self.store.disconnect(from_id, to_id)

    def remove_node(self, node_id: str) -> List[str]:
        touched = self.store.remove_node(node_id)
        self.release_booking(node_id)
        return touched

    def save_node(self, node_id: str, edit: NodeEdit):
        return save_node(self, node_id, edit)

    def preview_code(self, node_id: str) -> Optional[str]:
        return self.registry.get_preview(self.store.get(node_id))

    def execution_order(self) -> List[str]:
        return get_execution_order(self.store)

    def reset(self) -> None:
        for nid in self.store.node_ids():
            self.release_booking(nid)
        self.store.reset()

    # ----------------------------- Uložení / nasazení -----------------------------
    def commit_pending_codes(self) -> List[str]:
        """
        Potvrdí všechny náhledy kódů v pořadí provádění (předchůdci dřív,
        jejich kód je součástí podpisu následníků). Vrací id potvrzených uzlů.
        Selhání registru uložení zastaví (RegistryPersistenceError).
        """
        committed: List[str] = []
        for nid in self.execution_order():
            node = self.store.get(nid)
            if not node.semi_code_pending:
                continue
            draft = copy.deepcopy(node)
            try:
                code = self.registry.compute_and_assign(draft)
            except RegistryPersistenceError as e:
                show_error(MSG["registry_save"], e)
                raise
            self.store.update_node(nid, {"semi_code": draft.semi_code,
                                         "semi_code_pending": draft.semi_code_pending})
            if code is None:
                continue
            committed.append(nid)
            self._upsert_ledger(self.store.get(nid))
        return committed

    def _upsert_ledger(self, node: Node) -> None:
        if self.ledger is None or not node.semi_code:
            return
        try:
            self.ledger.upsert(node.semi_code, ledger_entry(node, self.meta))
        except Exception as e:
            show_error(MSG["ledger_upsert"], e)
            raise PlanError(f"{MSG['ledger_upsert']} ({node.semi_code})") from e

    def save_plan(self, path: Optional[Path] = None) -> Path:
        """Potvrdí čekající kódy a uloží snímek plánu / šablony."""
        try:
            self.execution_order()
        except CycleError as e:
            show_error(MSG["cycle_in_plan"], e)
            raise
        if self.meta.kind != plan_snapshot.KIND_TEMPLATE:
            self.commit_pending_codes()
        return plan_snapshot.save_plan(self.store, self.meta, path)

    def deploy(self) -> dict:
        """
        Podklad pro plánovač výroby: pořadí provádění a přiřazení uzlů.
        Cyklus nebo uzel bez stanice nasazení zastaví.
        """
        try:
            order = self.execution_order()
        except CycleError as e:
            show_error(MSG["cycle_in_plan"], e)
            raise
        missing = [nid for nid in order if not self.store.get(nid).assigned_stations]
        if missing:
            raise PlanValidationError("deploy_missing_station",
                                      f"{MSG['deploy_missing_station']} ({', '.join(missing)})",
                                      field="assigned_stations")
        self.commit_pending_codes()

        assignments = {}
        for nid in order:
            n = self.store.get(nid)
            assignments[nid] = AssignmentResult(
                n.assigned_worker, n.sorted_stations(), n.assignment_mode,
                list(n.assignment_warnings), n.requires_attention,
            ).to_dict()
        attention = [nid for nid in order if self.store.get(nid).requires_attention]
        if attention:
            logger.warning("Plán %s nasazen, pozornost vyžadují: %s", self.meta.plan_id or "-", attention)
        return {
            "planId": self.meta.plan_id,
            "order": order,
            "assignments": assignments,
            "requiresAttention": attention,
        }

    # ----------------------------- Načtení -----------------------------
    def snapshot(self) -> dict:
        return plan_snapshot.to_snapshot(self.store, self.meta)

    def load_snapshot(self, data: dict) -> None:
        """Nahradí obsah relace načteným plánem (store se vymění celý)."""
        store, meta = plan_snapshot.from_snapshot(data)
        for nid in self.store.node_ids():
            self.release_booking(nid)
        self.store, self.meta = store, meta

    @classmethod
    def from_file(cls, path: Path, catalog: Catalog, **kwargs) -> "PlanSession":
        store, meta = plan_snapshot.load_plan(path)
        return cls(catalog, meta=meta, store=store, **kwargs)
