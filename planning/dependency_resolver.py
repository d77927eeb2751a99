# -*- coding: utf-8 -*-
"""
Pořadí provádění operací v plánu (Kahnův algoritmus).

Pravidlo pro shodu: ze všech právě „připravených“ uzlů (bez nevyřešených
předchůdců) bereme vždy ten s nejmenším id v přirozeném řazení
(`node-2` před `node-10`). Výsledek tak nezávisí na pořadí, v jakém
byly uzly nebo hrany do plánu přidány.

Pokud po vyprázdnění fronty zbydou uzly, graf obsahuje cyklus → `CycleError`
se seznamem neseřazených uzlů. Částečné pořadí se nikdy nevrací.
"""
from __future__ import annotations

import heapq
import logging
from collections import deque
from typing import Dict, Iterable, List, Protocol, Tuple

from planning.data_utils import natural_key
from planning.errors import CycleError
from planning.graph_model import Edge, NodeId

logger = logging.getLogger(__name__)


class HasEdges(Protocol):
    def node_ids(self) -> List[NodeId]: ...
    def edges(self) -> List[Edge]: ...


def _adjacency(node_ids: Iterable[NodeId], edges: Iterable[Edge]) -> Tuple[Dict[NodeId, List[NodeId]], Dict[NodeId, int]]:
    succ: Dict[NodeId, List[NodeId]] = {nid: [] for nid in node_ids}
    indeg: Dict[NodeId, int] = {nid: 0 for nid in succ}
    for e in edges:
        if e.from_id not in succ or e.to_id not in succ:
            continue  # hrana na neexistující uzel se nepočítá
        succ[e.from_id].append(e.to_id)
        indeg[e.to_id] += 1
    return succ, indeg


def would_create_cycle(edges: Iterable[Edge], from_id: NodeId, to_id: NodeId) -> bool:
    """True, pokud by nová hrana from→to uzavřela cyklus (tj. z `to` už vede cesta do `from`)."""
    if from_id == to_id:
        return True
    succ: Dict[NodeId, List[NodeId]] = {}
    for e in edges:
        succ.setdefault(e.from_id, []).append(e.to_id)

    seen = {to_id}
    queue = deque([to_id])
    while queue:
        nid = queue.popleft()
        for nxt in succ.get(nid, ()):
            if nxt == from_id:
                return True
            if nxt not in seen:
                seen.add(nxt)
                queue.append(nxt)
    return False


def execution_order(node_ids: Iterable[NodeId], edges: Iterable[Edge]) -> List[NodeId]:
    succ, indeg = _adjacency(node_ids, edges)

    ready = [(natural_key(nid), nid) for nid, d in indeg.items() if d == 0]
    heapq.heapify(ready)

    order: List[NodeId] = []
    while ready:
        _, nid = heapq.heappop(ready)
        order.append(nid)
        for nxt in succ[nid]:
            indeg[nxt] -= 1
            if indeg[nxt] == 0:
                heapq.heappush(ready, (natural_key(nxt), nxt))

    if len(order) != len(succ):
        placed = set(order)
        remaining = sorted((nid for nid in succ if nid not in placed), key=natural_key)
        logger.warning("Cyklus v plánu, neseřazené uzly: %s", remaining)
        raise CycleError(remaining)
    return order


def get_execution_order(graph: HasEdges) -> List[NodeId]:
    """Pořadí provádění pro celý plán (store nebo cokoli s `node_ids()` a `edges()`)."""
    return execution_order(graph.node_ids(), graph.edges())


def sequence_numbers(graph: HasEdges) -> Dict[NodeId, int]:
    """Pořadová čísla 1..n podle pořadí provádění (pro zobrazení a export)."""
    return {nid: i for i, nid in enumerate(get_execution_order(graph), start=1)}
