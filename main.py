# main.py
from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional

import planning.paths as pp
from planning.catalog import Catalog
from planning.code_repository import ExcelCodeRepository
from planning.data_loader import load_catalog
from planning.graph_model import PlanMeta
from planning.plan_session import PlanSession
from planning.plan_snapshot import load_plan
from planning.projections.plan_projection import export_plan_excel
from planning.semi_code import SemiCodeRegistry

# veřejné API pro skripty a integrace


def setup_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def open_session(catalog: Optional[Catalog] = None, meta: Optional[PlanMeta] = None) -> PlanSession:
    """
    Nová relace nad katalogem z CATALOG_FILE a sdíleným registrem kódů
    v CODE_REGISTRY_FILE (cesty se čtou za běhu).
    """
    catalog = catalog or load_catalog()
    registry = SemiCodeRegistry(catalog, ExcelCodeRepository(Path(pp.CODE_REGISTRY_FILE)))
    return PlanSession(catalog, registry=registry, meta=meta)


def open_plan(path: Path, catalog: Optional[Catalog] = None) -> PlanSession:
    catalog = catalog or load_catalog()
    store, meta = load_plan(path)
    registry = SemiCodeRegistry(catalog, ExcelCodeRepository(Path(pp.CODE_REGISTRY_FILE)))
    return PlanSession(catalog, registry=registry, meta=meta, store=store)


def export_plan(path: Path, catalog: Optional[Catalog] = None, out: Optional[Path] = None) -> Path:
    """Convenience – načíst uložený plán a vyexportovat ho do Excelu (EXPORT_DIR)."""
    session = open_plan(path, catalog)
    return export_plan_excel(session.store, session.meta, session.catalog.stations, out)
