# -*- coding: utf-8 -*-
"""
Kódy polotovarů (výstupů operací).

Prefix:
    1) seřazené unikátní kódy výstupů všech operací primární stanice ("K", "KS", ...),
    2) jinak kód výstupu vlastní operace uzlu,
    3) jinak první písmeno názvu / typu uzlu, nakonec "S".

Podpis (co dělá polotovar jedinečným):
    op:<operace>|code:<kód operace>|st:<primární stanice>|mats:<id:množství:jednotka,...>
    Materiály se řadí, takže na pořadí řádků v uzlu nezáleží.

Stejný podpis → vždy stejný kód. Nový podpis → `PREFIX-NNN` s dalším číslem
z čítače prefixu. Náhled (`get_preview`) nic nemění; `compute_and_assign`
kód opravdu vydá a je idempotentní.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from planning.catalog import Catalog
from planning.code_repository import CodeRepository, InMemoryCodeRepository
from planning.graph_model import Node

logger = logging.getLogger(__name__)

CODE_PAD = 3
FALLBACK_PREFIX = "S"


def format_code(prefix: str, n: int) -> str:
    return f"{prefix}-{int(n):0{CODE_PAD}d}"


def _fmt_qty(q: Optional[float]) -> str:
    if q is None:
        return ""
    q = float(q)
    if q.is_integer():
        return str(int(q))
    return f"{q:.6f}".rstrip("0").rstrip(".")


def prefix_for_node(node: Node, catalog: Catalog) -> str:
    codes = catalog.station_output_codes(node.primary_station_id())
    if codes:
        return "".join(codes)

    op = catalog.find_operation(node.operation_id)
    if op is not None and op.output_code.strip():
        return op.output_code.strip()

    for text in (node.name, node.operation_type):
        text = (text or "").strip()
        if text:
            return text[0].upper()
    return FALLBACK_PREFIX


def build_signature(node: Node, catalog: Catalog) -> str:
    op = catalog.find_operation(node.operation_id)
    op_code = op.output_code.strip() if op is not None else ""
    station_id = node.primary_station_id() or ""
    mats = sorted(
        f"{m.material_id}:{_fmt_qty(m.quantity)}:{m.unit or ''}"
        for m in node.materials
        if m.material_id
    )
    return f"op:{node.operation_id}|code:{op_code}|st:{station_id}|mats:{','.join(mats)}"


def can_issue_code(node: Node) -> bool:
    """Kód jde vydat jen se stanicí a se známým množstvím u každého materiálu."""
    return bool(node.primary_station_id()) and node.all_quantities_known()


@dataclass
class PendingCode:
    node_id: str
    prefix: str
    signature: str
    code: str


class SemiCodeRegistry:
    def __init__(self, catalog: Catalog, repository: Optional[CodeRepository] = None):
        self.catalog = catalog
        self.repository = repository if repository is not None else InMemoryCodeRepository()

    def prefix_for(self, node: Node) -> str:
        return prefix_for_node(node, self.catalog)

    def signature_for(self, node: Node) -> str:
        return build_signature(node, self.catalog)

    def get_preview(self, node: Node) -> Optional[str]:
        """Kód, který by uzel dostal – bez zásahu do čítače ani mapování."""
        if not can_issue_code(node):
            return None
        sig = self.signature_for(node)
        known = self.repository.lookup(sig)
        if known:
            return known
        prefix = self.prefix_for(node)
        return format_code(prefix, self.repository.peek_counter(prefix))

    def compute_and_assign(self, node: Node) -> Optional[str]:
        """
        Vydá (nebo znovu najde) kód pro podpis uzlu a zapíše ho do uzlu.
        Bez stanice / se neznámým množstvím vrací None a registr nechá být.
        Chyba zápisu registru (RegistryPersistenceError) letí ven.
        """
        if not can_issue_code(node):
            node.semi_code = None
            node.semi_code_pending = False
            return None

        sig = self.signature_for(node)
        prefix = self.prefix_for(node)
        with self.repository.transaction():
            code = self.repository.lookup(sig)
            if not code:
                fresh = format_code(prefix, self.repository.atomic_increment(prefix))
                code = self.repository.bind(sig, fresh)
                logger.info("Vydán kód polotovaru %s pro %s (%s)", code, node.id, sig)
            else:
                logger.debug("Podpis %s už má kód %s", sig, code)

        node.semi_code = code
        node.semi_code_pending = False
        return code

    def apply_preview(self, node: Node) -> Optional[str]:
        """Zapíše do uzlu náhled kódu a označí ho jako čekající na potvrzení."""
        code = self.get_preview(node)
        node.semi_code = code
        node.semi_code_pending = code is not None
        return code

    def collect_pending(self, nodes: Iterable[Node]) -> List[PendingCode]:
        return collect_pending_codes(nodes, self.catalog)


def collect_pending_codes(nodes: Iterable[Node], catalog: Catalog) -> List[PendingCode]:
    """Uzly s náhledem kódu, které čekají na potvrzení při uložení plánu."""
    out: List[PendingCode] = []
    for node in nodes:
        if node.semi_code_pending and node.semi_code:
            out.append(PendingCode(
                node_id=node.id,
                prefix=prefix_for_node(node, catalog),
                signature=build_signature(node, catalog),
                code=node.semi_code,
            ))
    return out
