# planning/code_repository.py
# -*- coding: utf-8 -*-
"""
Úložiště registru kódů polotovarů: podpis → kód a čítač pro každý prefix.

Registr přežívá jednotlivé plány a sdílí ho víc editačních relací najednou.
Proto se vydání nového kódu (přečti čítač → zapiš mapování → zvyš čítač)
vždy děje uvnitř `transaction()`:

- `InMemoryCodeRepository` – jeden proces, chráněno zámkem (RLock),
- `ExcelCodeRepository`    – sešit na disku (listy `Kody` a `Citace`),
  exkluzivní zámek v sidecar souboru `.lock` + atomická výměna souboru
  přes `os.replace`. Selhání zápisu → `RegistryPersistenceError`.

Čítač drží číslo, které se vydá jako příští (začíná na 1).
"""
from __future__ import annotations

import fcntl
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional, Protocol

import pandas as pd

import planning.paths as pp
from planning.data_utils import cell_text, clean_columns, find_col, safe_float
from planning.errors import RegistryPersistenceError
from planning.error_messages import MSG

logger = logging.getLogger(__name__)

SHEET_CODES    = "Kody"
SHEET_COUNTERS = "Citace"
_LOCK_SUFFIX   = ".lock"


class CodeRepository(Protocol):
    def lookup(self, signature: str) -> Optional[str]: ...
    def peek_counter(self, prefix: str) -> int: ...
    def atomic_increment(self, prefix: str) -> int: ...
    def bind(self, signature: str, code: str) -> str: ...
    def transaction(self): ...


# ----------------------------- V paměti -----------------------------
class InMemoryCodeRepository:
    def __init__(self, codes: Optional[Dict[str, str]] = None, counters: Optional[Dict[str, int]] = None):
        self._codes: Dict[str, str] = dict(codes or {})
        self._counters: Dict[str, int] = dict(counters or {})
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator["InMemoryCodeRepository"]:
        with self._lock:
            yield self

    def lookup(self, signature: str) -> Optional[str]:
        with self._lock:
            return self._codes.get(signature)

    def peek_counter(self, prefix: str) -> int:
        with self._lock:
            return self._counters.get(prefix, 1)

    def atomic_increment(self, prefix: str) -> int:
        """Vrátí číslo k vydání a čítač posune o jedna."""
        with self._lock:
            n = self._counters.get(prefix, 1)
            self._counters[prefix] = n + 1
            return n

    def bind(self, signature: str, code: str) -> str:
        """Uloží mapování; už existující mapování vyhrává (vrací se platný kód)."""
        with self._lock:
            return self._codes.setdefault(signature, code)

    def codes(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._codes)

    def counters(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)


# ----------------------------- Excel na disku -----------------------------
@contextmanager
def _locked_file(path: Path) -> Iterator[None]:
    """Exkluzivní zámek přes sidecar `<soubor>.lock`, data se pak dají atomicky vyměnit."""
    lock_path = path.with_suffix(path.suffix + _LOCK_SUFFIX)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with lock_path.open("a+", encoding="utf-8") as lock_handle:
        fcntl.flock(lock_handle.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_handle.fileno(), fcntl.LOCK_UN)


def _read_registry(path: Path):
    codes: Dict[str, str] = {}
    counters: Dict[str, int] = {}
    if not path.exists():
        return codes, counters

    sheets = pd.read_excel(path, sheet_name=None, dtype=object)

    df = sheets.get(SHEET_CODES)
    if df is not None and not df.empty:
        clean_columns(df)
        c_sig = find_col(df, ["podpis", "signature"])
        c_code = find_col(df, ["kod", "code", "semi_code"])
        if c_sig and c_code:
            for sig, code in zip(df[c_sig], df[c_code]):
                s, c = cell_text(sig), cell_text(code)
                if s and c:
                    codes[s] = c

    df = sheets.get(SHEET_COUNTERS)
    if df is not None and not df.empty:
        clean_columns(df)
        c_pre = find_col(df, ["prefix"])
        c_next = find_col(df, ["dalsi", "next", "citac", "counter"])
        if c_pre and c_next:
            for pre, nxt in zip(df[c_pre], df[c_next]):
                p, n = cell_text(pre), safe_float(nxt)
                if p and n is not None:
                    counters[p] = max(1, int(n))
    return codes, counters


def _write_registry(path: Path, codes: Dict[str, str], counters: Dict[str, int]) -> None:
    """Zapíše celý registr do dočasného souboru a ten pak atomicky přesune na místo."""
    path.parent.mkdir(parents=True, exist_ok=True)
    df_codes = pd.DataFrame(sorted(codes.items()), columns=["podpis", "kod"])
    df_counters = pd.DataFrame(sorted(counters.items()), columns=["prefix", "dalsi"])

    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".xlsx")
    os.close(fd)
    try:
        with pd.ExcelWriter(tmp_path, engine="openpyxl") as writer:
            df_codes.to_excel(writer, sheet_name=SHEET_CODES, index=False)
            df_counters.to_excel(writer, sheet_name=SHEET_COUNTERS, index=False)
        os.replace(tmp_path, path)
    except BaseException:
        Path(tmp_path).unlink(missing_ok=True)
        raise


class ExcelCodeRepository:
    """
    Registr v Excelu. Každá operace mimo `transaction()` běží ve vlastní
    krátké transakci (zámek → načtení → operace → případný zápis).
    Transakce jsou v rámci jednoho vlákna reentrantní.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path is not None else None
        self._lock = threading.RLock()
        self._depth = 0
        self._dirty = False
        self._codes: Dict[str, str] = {}
        self._counters: Dict[str, int] = {}

    @property
    def path(self) -> Path:
        # runtime hodnota – testy ji monkeypatchují
        return self._path if self._path is not None else Path(pp.CODE_REGISTRY_FILE)

    @contextmanager
    def transaction(self) -> Iterator["ExcelCodeRepository"]:
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            path = self.path
            with _locked_file(path):
                self._codes, self._counters = _read_registry(path)
                self._dirty = False
                self._depth = 1
                try:
                    yield self
                    if self._dirty:
                        self._flush(path)
                finally:
                    self._depth = 0
                    self._dirty = False

    def _flush(self, path: Path) -> None:
        try:
            _write_registry(path, self._codes, self._counters)
        except (OSError, ValueError) as e:
            logger.error("Zápis registru kódů %s selhal: %s", path, e)
            raise RegistryPersistenceError(f"{MSG['registry_save']} ({e})") from e
        logger.debug("Registr kódů zapsán: %s", path)

    def lookup(self, signature: str) -> Optional[str]:
        with self.transaction():
            return self._codes.get(signature)

    def peek_counter(self, prefix: str) -> int:
        with self.transaction():
            return self._counters.get(prefix, 1)

    def atomic_increment(self, prefix: str) -> int:
        with self.transaction():
            n = self._counters.get(prefix, 1)
            self._counters[prefix] = n + 1
            self._dirty = True
            return n

    def bind(self, signature: str, code: str) -> str:
        with self.transaction():
            if signature in self._codes:
                return self._codes[signature]
            self._codes[signature] = code
            self._dirty = True
            return code

    def codes(self) -> Dict[str, str]:
        with self.transaction():
            return dict(self._codes)

    def counters(self) -> Dict[str, int]:
        with self.transaction():
            return dict(self._counters)
