# planning/graph_store.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field, fields
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from planning.dependency_resolver import would_create_cycle
from planning.errors import CycleError, DuplicateEdgeError, NodeNotFoundError, PlanValidationError
from planning.error_messages import MSG
from planning.graph_model import (
    DEFAULT_OUTPUT_UNIT, Edge, MaterialEntry, Node, NodeId, Operation,
    as_material, as_station_ref,
)
from planning import material_propagation as mp

logger = logging.getLogger(__name__)


# ============== JEDINÝ ZDROJ PRAVDY: UZLY + SEZNAM HRAN ==============
# connections / predecessors se nikde neukládají, jsou to jen pohledy na _edges.

NODE_ADDED        = "node_added"
NODE_REMOVED      = "node_removed"
NODE_UPDATED      = "node_updated"
CONNECTED         = "connected"
DISCONNECTED      = "disconnected"
MATERIALS_CHANGED = "materials_changed"
RESET             = "reset"


@dataclass
class GraphEvent:
    kind: str
    node_id: Optional[NodeId] = None
    payload: dict = field(default_factory=dict)


Listener = Callable[[GraphEvent], None]

_READONLY_FIELDS = {"id"}
_NODE_FIELDS = {f.name for f in fields(Node)}


def _row_key(m: MaterialEntry):
    return (m.material_id, m.name, m.quantity, m.unit)


class GraphStore:
    """
    Uzly a hrany jednoho plánu.

    Každá veřejná mutace proběhne celá, nebo vůbec (validace před zápisem),
    a teprve potom se rozešle událost posluchačům. Posluchač (UI, projekce)
    stav nikdy přímo nemění, jen čte.
    """

    def __init__(self) -> None:
        self._nodes: Dict[NodeId, Node] = {}
        self._edges: List[Edge] = []
        self._listeners: List[Listener] = []
        self._next_seq = 1

    # ----------------------------- Události -----------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Přihlásí posluchače; vrací funkci pro odhlášení."""
        self._listeners.append(listener)

        def _unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return _unsubscribe

    def _emit(self, kind: str, node_id: Optional[NodeId] = None, **payload) -> None:
        ev = GraphEvent(kind, node_id, payload)
        for fn in list(self._listeners):
            try:
                fn(ev)
            except Exception:
                # chyba posluchače nesmí rozbít už provedenou mutaci
                logger.exception("Posluchač grafu selhal na události %s", kind)

    def _emit_materials(self, changes: Iterable[Tuple[NodeId, NodeId]]) -> None:
        for nid, src in changes:
            self._emit(MATERIALS_CHANGED, nid, from_id=src)

    def _recheck_codes(self, node_ids: Iterable[NodeId], from_id: NodeId) -> List[Tuple[NodeId, NodeId]]:
        """
        Po změně materiálů znovu ověří nárok uzlů na kód polotovaru. Uzel,
        který kód ztratí, změní i svůj výstup, a ten se propíše dál.
        Vrací dvojice (uzel, zdroj změny) pro události MATERIALS_CHANGED.
        """
        changes = [(nid, from_id) for nid in node_ids]
        queue = [nid for nid, _ in changes]
        while queue:
            nid = queue.pop(0)
            node = self._nodes.get(nid)
            if node is None:
                continue
            before = mp.output_identity(node)
            enforce_code_preconditions(node)
            if mp.output_identity(node) != before:
                succs = mp.propagate_update(self, nid)
                changes.extend((s, nid) for s in succs)
                queue.extend(succs)
        return changes

    # ----------------------------- Čtení -----------------------------
    def __contains__(self, node_id) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def node_ids(self) -> List[NodeId]:
        return list(self._nodes)

    def nodes(self) -> List[Node]:
        return list(self._nodes.values())

    def get(self, node_id: NodeId) -> Node:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise NodeNotFoundError(node_id) from None

    def edges(self) -> List[Edge]:
        return list(self._edges)

    def has_edge(self, from_id: NodeId, to_id: NodeId) -> bool:
        return Edge(from_id, to_id) in self._edges

    def connections(self, node_id: NodeId) -> List[NodeId]:
        """Přímí následníci (odchozí hrany) v pořadí, v jakém vznikly."""
        return [e.to_id for e in self._edges if e.from_id == node_id]

    def predecessors(self, node_id: NodeId) -> List[NodeId]:
        return [e.from_id for e in self._edges if e.to_id == node_id]

    def is_start(self, node_id: NodeId) -> bool:
        return not self.predecessors(node_id)

    @property
    def next_seq(self) -> int:
        return self._next_seq

    # ----------------------------- Uzly -----------------------------
    def new_node_id(self) -> NodeId:
        while f"node-{self._next_seq}" in self._nodes:
            self._next_seq += 1
        nid = f"node-{self._next_seq}"
        self._next_seq += 1
        return nid

    def set_next_seq(self, value: int) -> None:
        self._next_seq = max(1, int(value))

    def add_node(self, operation: Operation, *, node_id: Optional[NodeId] = None) -> Node:
        """Vloží operaci z katalogu jako nový uzel (bez hran, bez přiřazení)."""
        if node_id is not None and node_id in self._nodes:
            raise PlanValidationError("duplicate_node", field="id")
        nid = node_id or self.new_node_id()
        node = Node(
            id=nid,
            operation_id=operation.id,
            name=operation.name,
            operation_type=operation.type,
            duration=float(operation.default_duration),
            skills=list(operation.skills),
            output_unit=DEFAULT_OUTPUT_UNIT,
        )
        self._nodes[nid] = node
        logger.debug("Přidán uzel %s (%s)", nid, operation.id)
        self._emit(NODE_ADDED, nid)
        return node

    def insert_node(self, node: Node) -> Node:
        """Vloží hotový uzel (načtení plánu). Hrany se přidávají zvlášť přes connect()."""
        if node.id in self._nodes:
            raise PlanValidationError("duplicate_node", field="id")
        self._nodes[node.id] = node
        self._emit(NODE_ADDED, node.id)
        return node

    def remove_node(self, node_id: NodeId) -> List[NodeId]:
        """
        Smaže uzel i se všemi hranami, které se ho týkají, a v ostatních
        uzlech odstraní materiálové řádky odvozené z něj. Vrací id uzlů,
        kterým se změnily materiály.
        """
        self.get(node_id)
        dropped = [e for e in self._edges if node_id in (e.from_id, e.to_id)]
        self._edges = [e for e in self._edges if node_id not in (e.from_id, e.to_id)]
        del self._nodes[node_id]
        touched = mp.purge_stale_derived(self, node_id)
        changes = self._recheck_codes(touched, node_id)
        logger.debug("Smazán uzel %s (%d hran)", node_id, len(dropped))
        self._emit(NODE_REMOVED, node_id, edges=dropped, touched=touched)
        self._emit_materials(changes)
        return touched

    # ----------------------------- Hrany -----------------------------
    def connect(self, from_id: NodeId, to_id: NodeId) -> Edge:
        self.get(from_id)
        self.get(to_id)
        if from_id == to_id:
            raise PlanValidationError("self_loop")
        edge = Edge(from_id, to_id)
        if edge in self._edges:
            raise DuplicateEdgeError(from_id, to_id)
        if would_create_cycle(self._edges, from_id, to_id):
            logger.warning("Odmítnuta hrana %s -> %s (cyklus)", from_id, to_id)
            raise CycleError([from_id, to_id], MSG["cycle"])

        self._edges.append(edge)
        touched = [to_id] if mp.on_connect(self, from_id, to_id) else []
        changes = self._recheck_codes(touched, from_id)
        self._emit(CONNECTED, to_id, from_id=from_id, to_id=to_id)
        self._emit_materials(changes)
        return edge

    def disconnect(self, from_id: NodeId, to_id: NodeId) -> bool:
        """Zruší hranu a řádky v `to`, které z ní vznikly. Neexistující hrana = False."""
        edge = Edge(from_id, to_id)
        if edge not in self._edges:
            return False
        self._edges.remove(edge)
        touched = mp.purge_stale_derived(self, from_id)
        changes = self._recheck_codes(touched, from_id)
        self._emit(DISCONNECTED, to_id, from_id=from_id, to_id=to_id, touched=touched)
        self._emit_materials(changes)
        return True

    # ----------------------------- Úpravy uzlu -----------------------------
    def update_node(self, node_id: NodeId, patch: dict) -> Node:
        """
        Aplikuje `patch` (názvy polí Node) atomicky: změny se provedou na kopii
        a do plánu se dostanou až po úspěšné kontrole. Odvozené řádky materiálu
        lze vynechat (zrušit), ne upravit. Když se změní výstup uzlu, propíše
        se rovnou do následníků.
        """
        current = self.get(node_id)
        unknown = set(patch) - _NODE_FIELDS
        bad = unknown | (set(patch) & _READONLY_FIELDS)
        if bad:
            raise PlanValidationError("unknown_field", f"{MSG['unknown_field']} ({', '.join(sorted(bad))})",
                                      field=sorted(bad)[0])

        draft = copy.deepcopy(current)
        for key, value in patch.items():
            if key == "materials":
                value = [as_material(m) for m in value or []]
                self._check_derived_rows(current, value)
            elif key == "assigned_stations":
                value = [as_station_ref(s, i) for i, s in enumerate(value or [], start=1)]
            elif key in ("skills", "assignment_warnings"):
                value = list(value or [])
            setattr(draft, key, value)

        enforce_code_preconditions(draft)

        before = mp.output_identity(current)
        self._nodes[node_id] = draft
        changed: List[NodeId] = []
        changes: List[Tuple[NodeId, NodeId]] = []
        if mp.output_identity(draft) != before:
            changed = mp.propagate_update(self, node_id)
            changes = self._recheck_codes(changed, node_id)
        self._emit(NODE_UPDATED, node_id, fields=sorted(patch), propagated=changed)
        self._emit_materials(changes)
        return draft

    @staticmethod
    def _check_derived_rows(current: Node, new_rows: Iterable[MaterialEntry]) -> None:
        existing = {m.derived_from: _row_key(m) for m in current.derived_rows()}
        for m in new_rows:
            if not m.is_derived:
                continue
            if m.derived_from not in existing or existing[m.derived_from] != _row_key(m):
                raise PlanValidationError("derived_row_locked", field="materials")

    def refresh_outputs(self, node_id: NodeId, *, restore_missing: bool = False) -> List[NodeId]:
        """Explicitní „propagate update“ – idempotentní, volatelné kdykoli."""
        changed = mp.propagate_update(self, node_id, restore_missing=restore_missing)
        self._emit_materials(self._recheck_codes(changed, node_id))
        return changed

    def reset(self) -> None:
        self._nodes.clear()
        self._edges.clear()
        self._next_seq = 1
        self._emit(RESET)


def enforce_code_preconditions(node: Node) -> None:
    # kód polotovaru jen se stanicí a se známými množstvími všech materiálů
    if node.semi_code and not (node.assigned_stations and node.all_quantities_known()):
        node.semi_code = None
        node.semi_code_pending = False
