# tests/test_data_utils.py
import math

import pandas as pd
from planning.data_utils import (
    cell_text, find_col, is_blank, natural_key, numeric_suffix, safe_float, to_bool_cell_excel, to_str_list,
)

def test_find_col_ignores_case_diacritics_and_separators():
    df = pd.DataFrame({" Název ": [1], "KÓD_výstupu": ["K"], "Čas min": [30]})
    assert find_col(df, ["nazev"]) == " Název "
    assert find_col(df, ["kod vystupu"]) == "KÓD_výstupu"
    assert find_col(df, ["neexistuje", "cas_min"]) == "Čas min"
    assert find_col(df, ["neexistuje"]) is None

def test_safe_float_czech_comma_and_blanks():
    assert safe_float("2,5") == 2.5
    assert safe_float(" 3 ") == 3.0
    assert safe_float(4) == 4.0
    assert safe_float("") is None
    assert safe_float(None) is None
    assert safe_float(float("nan")) is None
    assert safe_float("abc") is None
    assert safe_float(True) is None

def test_cell_text_and_blank():
    assert cell_text(12.0) == "12"
    assert cell_text("  ST-1 ") == "ST-1"
    assert cell_text(math.nan) == ""
    assert is_blank("  ") and is_blank(None) and is_blank(pd.NA)
    assert not is_blank(0)

def test_to_str_list_splits_and_dedups():
    assert to_str_list("Welding, Safety;Welding") == ["Welding", "Safety"]
    assert to_str_list(["A", " ", "B", "A"]) == ["A", "B"]
    assert to_str_list(float("nan")) == []
    assert to_str_list(None) == []

def test_to_bool_cell_excel_conversions():
    # základní typy
    assert to_bool_cell_excel(True) is True
    assert to_bool_cell_excel(False) is False
    # čísla
    assert to_bool_cell_excel(1) is True
    assert to_bool_cell_excel(0) is False
    assert to_bool_cell_excel(3.14) is True
    # string čísla
    assert to_bool_cell_excel("  1  ") is True
    assert to_bool_cell_excel("0,0") is False  # evropská čárka
    # české i anglické texty
    assert to_bool_cell_excel("ano") is True
    assert to_bool_cell_excel("Ne") is False
    assert to_bool_cell_excel("neaktivní") is False
    assert to_bool_cell_excel("YES") is True
    # prázdno a nesmysl -> False
    assert to_bool_cell_excel("") is False
    assert to_bool_cell_excel("PRAVDA") is False
    assert to_bool_cell_excel(None) is False

def test_natural_key_and_suffix():
    ids = ["node-10", "node-2", "node-1", "a", "node-2b"]
    assert sorted(ids, key=natural_key) == ["a", "node-1", "node-2", "node-2b", "node-10"]
    assert numeric_suffix("node-12") == 12
    assert numeric_suffix("abc") == 0
    assert numeric_suffix(None) == 0
