# tests/test_data_loader.py
from datetime import date

import pandas as pd
import pytest

from planning.data_loader import load_catalog, workers_from_df
from planning.errors import CatalogError


def _write_catalog(path, *, with_absences=True, drop_sheet=None):
    sheets = {
        "Operace": pd.DataFrame([
            {"ID": "OP-CUT", "Název": "Řezání", "Typ": "cutting", "Dovednosti": "Cutting",
             "Kód výstupu": "K", "Efektivita": 85, "Čas min": 30},
            {"ID": "OP-WELD", "Název": "Svařování", "Typ": "welding", "Dovednosti": "Welding",
             "Kód výstupu": "S", "Efektivita": 0.9, "Čas min": None},
            {"ID": None, "Název": "prázdný řádek"},
        ]),
        "Stanice": pd.DataFrame([
            {"ID": "ST-WELD", "Název": "Svařovna", "Operace": "OP-WELD", "Dovednosti stanice": "Safety"},
            {"ID": "ST-MULTI", "Název": "Víceúčelová", "Operace": "OP-WELD; OP-CUT", "Dovednosti stanice": None},
        ]),
        "Pracovnici": pd.DataFrame([
            {"ID": "W1", "Jméno": "Adam", "Dovednosti": "Welding, Safety", "Aktivní": "ano"},
            {"ID": "W2", "Jméno": "Bára", "Dovednosti": "Cutting", "Aktivní": "ne"},
            {"ID": "W3", "Jméno": "Cyril", "Dovednosti": "Cutting", "Aktivní": None},
        ]),
    }
    if with_absences:
        sheets["Nepritomnosti"] = pd.DataFrame([
            {"Pracovník": "W1", "Od": date(2026, 3, 2), "Do": date(2026, 3, 4), "Důvod": "dovolená"},
            {"Pracovník": "W3", "Od": date(2026, 3, 9), "Do": None, "Důvod": "lékař"},
        ])
    if drop_sheet:
        sheets.pop(drop_sheet)
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as w:
        for name, df in sheets.items():
            df.to_excel(w, sheet_name=name, index=False)
    return path


def test_load_catalog_from_default_path(tmp_paths):
    _write_catalog(tmp_paths / "data" / "katalog.xlsx")
    cat = load_catalog()

    assert sorted(cat.operations) == ["OP-CUT", "OP-WELD"]
    cut = cat.operation("OP-CUT")
    assert (cut.name, cut.output_code, cut.skills) == ("Řezání", "K", ["Cutting"])
    assert cut.default_efficiency == pytest.approx(0.85)
    assert cut.default_duration == 30
    weld = cat.operation("OP-WELD")
    assert weld.default_efficiency == pytest.approx(0.9)
    assert weld.default_duration == 60

    multi = cat.station("ST-MULTI")
    assert multi.operation_ids == ["OP-WELD", "OP-CUT"]
    assert multi.effective_skills == ["Welding", "Cutting"]
    assert cat.station("ST-WELD").effective_skills == ["Welding", "Safety"]
    assert cat.station_output_codes("ST-MULTI") == ["K", "S"]


def test_workers_status_and_absences(tmp_path):
    cat = load_catalog(_write_catalog(tmp_path / "katalog.xlsx"))
    w1, w2, w3 = cat.worker("W1"), cat.worker("W2"), cat.worker("W3")
    assert w1.skills == ["Welding", "Safety"]
    assert (w1.active, w2.active, w3.active) == (True, False, True)
    assert w1.is_absent(date(2026, 3, 3)) and not w1.is_absent(date(2026, 3, 5))
    # bez data „do“ = jednodenní nepřítomnost
    assert w3.is_absent(date(2026, 3, 9)) and not w3.is_absent(date(2026, 3, 10))
    assert [w.id for w in cat.active_workers()] == ["W1", "W3"]


def test_absence_sheet_is_optional(tmp_path):
    cat = load_catalog(_write_catalog(tmp_path / "katalog.xlsx", with_absences=False))
    assert cat.worker("W1").absences == []


def test_missing_sheet_or_file(tmp_path):
    with pytest.raises(CatalogError):
        load_catalog(tmp_path / "neni.xlsx")
    path = _write_catalog(tmp_path / "katalog.xlsx", drop_sheet="Stanice")
    with pytest.raises(CatalogError) as ei:
        load_catalog(path)
    assert "Stanice" in str(ei.value)


def test_missing_id_column():
    df = pd.DataFrame([{"Jméno": "Adam"}])
    with pytest.raises(CatalogError):
        workers_from_df(df)
