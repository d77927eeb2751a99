# -*- coding: utf-8 -*-
"""
Propagace materiálů po hranách plánu.

Hrana A → B znamená i materiálový tok: výstup A (kód polotovaru, množství,
jednotka) se objeví jako vstupní řádek v B s `derived_from = A`.
Takové řádky planner ručně neupravuje – mění se jen tady:

- `on_connect`          – při propojení vytvoří (nebo obnoví) řádek v cíli,
- `purge_stale_derived` – po odpojení/smazání odstraní řádky, za kterými už
                          nestojí žádná hrana,
- `propagate_update`    – po změně výstupu A obnoví řádky u všech přímých
                          následníků; je idempotentní a dá se volat kdykoli.

Řádky zadané plánovačem (bez `derived_from`) se nikdy nemění.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional, Set, Tuple

from planning.graph_model import MaterialEntry, Node, NodeId

if TYPE_CHECKING:
    from planning.graph_store import GraphStore

logger = logging.getLogger(__name__)


def placeholder_material_id(node_id: NodeId) -> str:
    """Id výstupu uzlu, který ještě nemá kód polotovaru."""
    return f"{node_id}-output"


def output_row_of(src: Node) -> MaterialEntry:
    """Řádek, kterým se výstup `src` propisuje do následníků."""
    if src.semi_code:
        mid, name = src.semi_code, src.semi_code
    else:
        mid, name = placeholder_material_id(src.id), f"{src.name} (polotovar)"
    return MaterialEntry(
        material_id=mid,
        name=name,
        quantity=src.output_quantity,
        unit=src.output_unit or "",
        derived_from=src.id,
    )


def _refresh_row(row: MaterialEntry, fresh: MaterialEntry) -> bool:
    changed = False
    for attr in ("material_id", "name", "quantity", "unit"):
        new = getattr(fresh, attr)
        if getattr(row, attr) != new:
            setattr(row, attr, new)
            changed = True
    return changed


def on_connect(store: "GraphStore", from_id: NodeId, to_id: NodeId) -> bool:
    """
    Po vzniku hrany from→to: když cíl ještě nemá řádek odvozený z `from`,
    přidá ho na konec; jinak existující řádek jen obnoví. Vrací True při změně.
    """
    src = store.get(from_id)
    dst = store.get(to_id)
    fresh = output_row_of(src)

    existing = dst.derived_rows(from_id)
    if not existing:
        dst.materials.append(fresh)
        return True

    changed = False
    for row in existing:
        changed = _refresh_row(row, fresh) or changed
    if len(existing) > 1:
        # duplicitní odvozené řádky (stará data) – necháme jen první
        keep = existing[0]
        dst.materials = [m for m in dst.materials if m.derived_from != from_id or m is keep]
        changed = True
    return changed


def purge_stale_derived(store: "GraphStore", from_id: NodeId) -> List[NodeId]:
    """
    Odstraní řádky `derived_from == from_id` ve všech uzlech, do kterých
    z `from_id` už nevede hrana (u smazaného uzlu tedy ve všech).
    Vrací id uzlů, kterým se změnily materiály.
    """
    live: Set[NodeId] = set(store.connections(from_id)) if from_id in store else set()
    touched: List[NodeId] = []
    for node in store.nodes():
        if node.id in live:
            continue
        before = len(node.materials)
        node.materials = [m for m in node.materials if m.derived_from != from_id]
        if len(node.materials) != before:
            touched.append(node.id)
    return touched


def propagate_update(store: "GraphStore", from_id: NodeId, *, restore_missing: bool = False) -> List[NodeId]:
    """
    Obnoví odvozené řádky u přímých následníků `from_id` podle jeho aktuálního
    výstupu. Nic neduplikuje a opakované volání bez změny výstupu nic nemění.
    `restore_missing=True` doplní řádek i tam, kde chybí (ručně smazaný,
    starý plán); běžná propagace po uložení ho nevrací.
    """
    src = store.get(from_id)
    fresh = output_row_of(src)
    changed: List[NodeId] = []
    for succ_id in store.connections(from_id):
        dst = store.get(succ_id)
        rows = dst.derived_rows(from_id)
        if not rows:
            if restore_missing:
                dst.materials.append(output_row_of(src))
                changed.append(succ_id)
            continue
        touched = False
        for r in rows:
            touched = _refresh_row(r, fresh) or touched
        if touched:
            changed.append(succ_id)
    if changed:
        logger.debug("Výstup %s propsán do %s", from_id, changed)
    return changed


def output_identity(node: Node) -> Tuple[str, str, Optional[float], str]:
    """To, co se z uzlu propisuje dál – změna znamená nutnost propagace."""
    row = output_row_of(node)
    return (row.material_id, row.name, row.quantity, row.unit)
