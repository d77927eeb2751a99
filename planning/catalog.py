# planning/catalog.py
from __future__ import annotations
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from planning.errors import CatalogError
from planning.graph_model import Operation, Station, Worker


def merge_skills(*groups: Iterable[str]) -> List[str]:
    """Sjednocení dovedností se zachováním pořadí (první výskyt vyhrává)."""
    out: List[str] = []
    for g in groups:
        for s in g or []:
            s = str(s).strip()
            if s and s not in out:
                out.append(s)
    return out


class Catalog:
    """
    Katalog operací, stanic a pracovníků (externí data, jen pro čtení).
    Stanici bez vyplněných `effective_skills` se dopočítají:
    dovednosti všech jejích operací ∪ její vlastní `sub_skills`.
    """

    def __init__(self, operations: Iterable[Operation] = (), stations: Iterable[Station] = (),
                 workers: Iterable[Worker] = ()):
        self.operations: Dict[str, Operation] = {}
        self.stations: Dict[str, Station] = {}
        self.workers: Dict[str, Worker] = {}
        for op in operations:
            self.operations[op.id] = op
        for st in stations:
            self.stations[st.id] = st
        for w in workers:
            self.workers[w.id] = w
        # vstupní objekty stanic se nemění, dopočet jde do kopie
        for sid, st in list(self.stations.items()):
            if not st.effective_skills:
                self.stations[sid] = replace(st, effective_skills=self.compute_effective_skills(st))

    # --- operace ---
    def operation(self, op_id: str) -> Operation:
        try:
            return self.operations[op_id]
        except KeyError:
            raise CatalogError(f"Operace {op_id!r} není v katalogu") from None

    def find_operation(self, op_id: Optional[str]) -> Optional[Operation]:
        return self.operations.get(op_id) if op_id else None

    # --- stanice ---
    def station(self, station_id: str) -> Station:
        try:
            return self.stations[station_id]
        except KeyError:
            raise CatalogError(f"Stanice {station_id!r} není v katalogu") from None

    def find_station(self, station_id: Optional[str]) -> Optional[Station]:
        return self.stations.get(station_id) if station_id else None

    def compute_effective_skills(self, station: Station) -> List[str]:
        inherited = [self.operations[oid].skills for oid in station.operation_ids if oid in self.operations]
        return merge_skills(*inherited, station.sub_skills)

    def station_output_codes(self, station_id: Optional[str]) -> List[str]:
        """Seřazené unikátní kódy výstupů operací, které stanice umí."""
        st = self.find_station(station_id)
        if st is None:
            return []
        codes = {self.operations[oid].output_code.strip()
                 for oid in st.operation_ids
                 if oid in self.operations and self.operations[oid].output_code.strip()}
        return sorted(codes)

    def stations_for_operation(self, op_id: str) -> List[Station]:
        return [st for st in self.stations.values() if op_id in st.operation_ids]

    # --- pracovníci ---
    def worker(self, worker_id: str) -> Worker:
        try:
            return self.workers[worker_id]
        except KeyError:
            raise CatalogError(f"Pracovník {worker_id!r} není v katalogu") from None

    def find_worker(self, worker_id: Optional[str]) -> Optional[Worker]:
        return self.workers.get(worker_id) if worker_id else None

    def active_workers(self) -> List[Worker]:
        return [w for w in self.workers.values() if w.active]
