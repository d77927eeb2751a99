# planning/data_utils.py
import math
import re
import unicodedata

import pandas as pd


def _norm_str(x: str) -> str:
    # odstraň diakritiku a sjednoť case/trim
    s = unicodedata.normalize("NFKD", str(x)).encode("ascii", "ignore").decode("ascii")
    return s.strip().lower()


def _normalize_col_key(s) -> str:
    x = _norm_str(s)
    for ch in (" ", ".", "_", "-", " "):
        x = x.replace(ch, "")
    return x


def find_col(df: pd.DataFrame, candidates):
    """
    Tolerantní hledání sloupce: ignoruje velikost písmen, diakritiku,
    mezery, tečky, podtržítka a pomlčky. Vrací původní název sloupce nebo None.
    """
    norm_map = {}
    for c in df.columns:
        norm_map.setdefault(_normalize_col_key(c), c)
    for cand in candidates or []:
        k = _normalize_col_key(cand)
        if k in norm_map:
            return norm_map[k]
    return None


def clean_columns(df: pd.DataFrame):
    """Ujisti se, že názvy sloupců jsou stringy bez mezer kolem."""
    df.columns = [str(c).strip() for c in df.columns]


def is_blank(v) -> bool:
    if v is None:
        return True
    try:
        if pd.isna(v):
            return True
    except (TypeError, ValueError):
        pass
    return str(v).strip() == ""


def safe_float(v):
    """
    Převod na float, který snese i českou čárku a prázdné buňky.
    None / NaN / "" / nesmysl -> None
    """
    if v is None or isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        s = str(v).strip().replace(",", ".")
        if s == "":
            return None
        try:
            f = float(s)
        except ValueError:
            return None
    if math.isnan(f) or math.isinf(f):
        return None
    return f


def cell_text(v) -> str:
    """Buňka -> ořezaný text; NaN/None -> "". Celá čísla bez '.0'."""
    if is_blank(v):
        return ""
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v).strip()


_LIST_SPLIT_RE = re.compile(r"[,;|\n]")


def to_str_list(v) -> list:
    """
    Buňka se seznamem ("Svařování, Bezpečnost" / list / NaN) -> list stringů.
    Pořadí zachová, duplicity vyhodí.
    """
    if isinstance(v, (list, tuple, set, frozenset)):
        raw = [cell_text(x) for x in v]
    elif is_blank(v):
        raw = []
    else:
        raw = [p.strip() for p in _LIST_SPLIT_RE.split(str(v))]
    out = []
    for x in raw:
        if x and x not in out:
            out.append(x)
    return out


def to_bool_cell_excel(v) -> bool:
    """
    Normalizace různých vstupů na bool pro Excel zápis/čtení.
    Akceptuje True/False, 1/0, "1"/"0", "true"/"false", "yes"/"no",
    české "ano"/"ne", i zaškrtnutí typu "x".
    Prázdné / NaN -> False.
    """
    if isinstance(v, bool):
        return v
    if is_blank(v):
        return False
    if isinstance(v, (int, float)):
        return v != 0

    s = _norm_str(v)
    if s in {"true", "t", "yes", "y", "ano", "a", "1", "x", "aktivni", "active"}:
        return True
    if s in {"false", "f", "no", "n", "ne", "0", "-", "neaktivni", "inactive"}:
        return False

    f = safe_float(s)
    return bool(f) if f is not None else False


_NUM_SUFFIX_RE = re.compile(r"(\d+)(?!.*\d)")


def numeric_suffix(v) -> int:
    """'node-12' -> 12, 'abc' -> 0."""
    m = _NUM_SUFFIX_RE.search(str(v or ""))
    return int(m.group(1)) if m else 0


def natural_key(v):
    """
    Klíč pro „přirozené“ řazení id: node-2 < node-10.
    Text se porovná po kouscích, čísla číselně.
    """
    parts = re.split(r"(\d+)", str(v))
    return tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in parts if p != "")
