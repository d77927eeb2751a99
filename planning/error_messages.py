# planning/error_messages.py
import logging
import os

logger = logging.getLogger("planning")

MSG = {
    # --- Graf plánu ---
    "self_loop":            "Operaci nelze propojit samu se sebou.",
    "cycle":                "Toto propojení by vytvořilo cyklus.\nV pracovním postupu nesmí být smyčka.",
    "cycle_in_plan":        "V plánu je cyklus – pořadí provádění nelze určit.\nOdstraňte některé z propojení mezi uvedenými operacemi.",
    "unknown_node":         "Operace v plánu neexistuje (mohla být mezitím smazána).",
    "unknown_operation":    "Operace není v katalogu operací.",
    "unknown_field":        "Operace takovou vlastnost nemá.",
    "duplicate_node":       "Operace s tímto id už v plánu je.",
    "derived_row_locked":   "Materiál převzatý z předchozí operace nelze ručně měnit.\nUpravte výstup předchozí operace nebo zrušte propojení.",

    # --- Uložení uzlu ---
    "name_time_required":   "Vyplňte název operace a odhadovaný čas (alespoň 1 minuta).",
    "manual_worker_missing": "Ruční přiřazení vyžaduje výběr pracovníka.",
    "no_station":           "Vyberte alespoň jednu pracovní stanici.",
    "unknown_station":      "Vybraná stanice není v katalogu stanic.",
    "start_needs_material": "Počáteční operace musí mít alespoň jeden vstupní materiál.",
    "material_qty_invalid": "Zadejte platné množství u každého vybraného materiálu.",
    "output_qty_invalid":   "Výstupní množství musí být číslo větší než 0.",
    "output_unit_missing":  "Vyberte jednotku výstupu.",
    "efficiency_invalid":   "Efektivita musí být mezi 0,1 % a 100 %.",
    "manual_worker_skills": "Vybraný pracovník nemá všechny požadované dovednosti.",
    "unknown_worker":       "Vybraný pracovník není v katalogu pracovníků.",

    # --- Přiřazení ---
    "no_eligible_worker":   "Žádný pracovník nemá všechny požadované dovednosti.",
    "no_free_worker":       "Žádný vhodný pracovník není v daném čase volný.",
    "worker_overlap":       "Pracovník je v daném čase už vytížen jinou operací.",
    "worker_inactive":      "Vybraný pracovník není aktivní.",
    "worker_absent":        "Vybraný pracovník je v daný den nepřítomen.",
    "invalid_mode":         "Neznámý režim přiřazení (povoleno: auto, manual).",

    # --- Registr kódů / uložení plánu ---
    "registry_save":        "Nepodařilo se zapsat registr kódů polotovarů.\nPlán nebyl uložen – zkuste akci znovu.",
    "ledger_upsert":        "Nepodařilo se zapsat polotovar do skladové evidence.",
    "plan_save":            "Nepodařilo se uložit plán.",
    "plan_load":            "Nepodařilo se načíst plán.",
    "deploy_missing_station": "Plán nelze uvolnit do výroby – některé operace nemají stanici.",
    "plan_deployed":        "Plán je uvolněný do výroby – úpravy už nejsou možné.",

    # --- Katalog ---
    "catalog_load":         "Chyba při načítání katalogu operací, stanic a pracovníků.",
}


def should_log_traceback() -> bool:
    """
    True = k hlášce přidáme i traceback.
    Lze vypnout env proměnnou PLAN_QUIET_ERRORS=1 (např. v testech).
    """
    return os.environ.get("PLAN_QUIET_ERRORS") != "1"


def show_error(user_msg: str, exc: Exception | None = None):
    """
    Zaloguje chybu pro vývojáře. Zobrazení uživateli je věc front-endu,
    tady končíme u logu (front-end si hlášku vezme z výjimky / MSG).
    """
    with_tb = exc is not None and should_log_traceback()
    if exc is not None:
        logger.error("%s: %s", user_msg, exc, exc_info=(exc if with_tb else None))
    else:
        logger.error("%s", user_msg)
