# planning/paths.py
from pathlib import Path
import os
import sys

if os.environ.get("PLAN_BASE_DIR"):
    # vynucená složka (server, CI)
    BASE_DIR = Path(os.environ["PLAN_BASE_DIR"]).resolve()
elif getattr(sys, "frozen", False):
    # cesta vedle EXE
    BASE_DIR = Path(sys.executable).resolve().parent
else:
    # běh z repa
    BASE_DIR = Path(__file__).resolve().parent.parent

DATA_DIR = BASE_DIR / "data"

CATALOG_FILE       = DATA_DIR / "katalog.xlsx"          # operace / stanice / pracovníci
CODE_REGISTRY_FILE = DATA_DIR / "registr_kodu.xlsx"     # podpis -> kód polotovaru + čítače

PLANS_DIR  = BASE_DIR / "plany"     # uložené plány a šablony (JSON)
EXPORT_DIR = BASE_DIR / "exporty"   # Excel exporty plánů
