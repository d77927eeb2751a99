# -*- coding: utf-8 -*-
"""
Výjimky jádra plánovače výroby.

Všechny dědí z `PlanError`, aby je volající (controller, API) mohl chytat
jedním `except`. Validační chyby nesou `code` = klíč do `error_messages.MSG`,
takže se dá uživateli ukázat srozumitelná hláška.
"""
from __future__ import annotations

from typing import Iterable, List, Optional


class PlanError(Exception):
    """Základ pro všechny chyby plánu."""


class PlanValidationError(PlanError, ValueError):
    def __init__(self, code: str, message: str = "", *, field: Optional[str] = None):
        from planning.error_messages import MSG
        self.code = code
        self.field = field
        super().__init__(message or MSG.get(code, code))


class SkillMismatchError(PlanValidationError):
    """Ručně vybraný pracovník nemá všechny požadované dovednosti."""

    def __init__(self, worker_id: str, missing: Iterable[str]):
        self.worker_id = worker_id
        self.missing: List[str] = sorted(set(missing))
        super().__init__(
            "manual_worker_skills",
            f"Pracovník {worker_id} nemá požadované dovednosti: {', '.join(self.missing)}",
            field="assigned_worker",
        )


class NodeNotFoundError(PlanError, KeyError):
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Uzel {node_id!r} v plánu neexistuje")

    def __str__(self) -> str:
        # KeyError by jinak vracel repr
        return str(self.args[0])


class DuplicateEdgeError(PlanError):
    def __init__(self, from_id: str, to_id: str):
        self.from_id = from_id
        self.to_id = to_id
        super().__init__(f"Uzly {from_id} → {to_id} už jsou propojené")


class CycleError(PlanError):
    """Graf obsahuje cyklus – `node_ids` jsou uzly, které nešlo seřadit."""

    def __init__(self, node_ids: Iterable[str], message: str = ""):
        self.node_ids: List[str] = list(node_ids)
        super().__init__(message or f"V plánu je cyklus, neseřazené uzly: {', '.join(self.node_ids)}")


class RegistryPersistenceError(PlanError):
    """Zápis do registru kódů selhal – uložení plánu se musí zastavit."""


class CatalogError(PlanError):
    """Katalog operací/stanic/pracovníků je neúplný nebo poškozený."""
