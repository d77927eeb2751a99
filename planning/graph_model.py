# planning/graph_model.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional

from planning.data_utils import safe_float

NodeId = str

ASSIGN_AUTO   = "auto"
ASSIGN_MANUAL = "manual"
ASSIGNMENT_MODES = (ASSIGN_AUTO, ASSIGN_MANUAL)

DEFAULT_DURATION_MIN = 60.0
DEFAULT_OUTPUT_UNIT  = "pcs"


# ----------------------------- Plán: uzly a hrany -----------------------------
@dataclass
class MaterialEntry:
    material_id: str
    name: str = ""
    quantity: Optional[float] = None      # None = množství zatím neznámé
    unit: str = ""
    derived_from: Optional[NodeId] = None  # vyplněno = řádek vznikl hranou (jen pro čtení)

    @property
    def is_derived(self) -> bool:
        return self.derived_from is not None


@dataclass
class StationRef:
    station_id: str
    priority: int = 1                      # 1 = primární stanice


@dataclass(frozen=True)
class Edge:
    from_id: NodeId
    to_id: NodeId


@dataclass
class Node:
    id: NodeId
    operation_id: str
    name: str
    operation_type: str = ""
    duration: float = DEFAULT_DURATION_MIN          # odhad na jednotku (min)
    skills: List[str] = field(default_factory=list)
    materials: List[MaterialEntry] = field(default_factory=list)
    # Výstup:
    semi_code: Optional[str] = None
    output_quantity: Optional[float] = None
    output_unit: str = ""
    # Přiřazení:
    assigned_worker: Optional[str] = None
    assigned_stations: List[StationRef] = field(default_factory=list)
    assignment_mode: Optional[str] = None
    assignment_warnings: List[str] = field(default_factory=list)
    requires_attention: bool = False
    # Čas a stav kódu:
    efficiency: Optional[float] = None              # 0..1, None = default operace
    effective_time: Optional[float] = None
    semi_code_pending: bool = False                 # náhled kódu, ještě necommitnuto

    def sorted_stations(self) -> List[StationRef]:
        return sorted(self.assigned_stations, key=lambda s: (s.priority, s.station_id))

    def primary_station_id(self) -> Optional[str]:
        st = self.sorted_stations()
        return st[0].station_id if st else None

    def planner_rows(self) -> List[MaterialEntry]:
        return [m for m in self.materials if not m.is_derived]

    def derived_rows(self, from_id: Optional[NodeId] = None) -> List[MaterialEntry]:
        if from_id is None:
            return [m for m in self.materials if m.is_derived]
        return [m for m in self.materials if m.derived_from == from_id]

    def all_quantities_known(self) -> bool:
        return bool(self.materials) and all(m.quantity is not None for m in self.materials)


@dataclass
class PlanMeta:
    plan_id: str = ""
    name: str = ""
    kind: str = "plan"                  # "plan" | "template"
    order_code: Optional[str] = None    # zakázka, ze které plán vznikl
    quantity: float = 1.0
    description: str = ""


# ----------------------------- Katalogy (externí) -----------------------------
@dataclass
class Operation:
    id: str
    name: str
    type: str = ""
    skills: List[str] = field(default_factory=list)
    output_code: str = ""               # písmenný kód polotovaru (např. "K")
    default_efficiency: float = 1.0
    default_duration: float = DEFAULT_DURATION_MIN


@dataclass
class Station:
    id: str
    name: str
    operation_ids: List[str] = field(default_factory=list)
    sub_skills: List[str] = field(default_factory=list)       # dovednosti navíc pro stanici
    effective_skills: List[str] = field(default_factory=list) # zděděné z operací ∪ sub_skills


@dataclass
class Absence:
    start: date
    end: date
    reason: str = ""

    def covers(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass
class Worker:
    id: str
    name: str
    skills: List[str] = field(default_factory=list)
    active: bool = True
    absences: List[Absence] = field(default_factory=list)

    def is_absent(self, day: date) -> bool:
        return any(a.covers(day) for a in self.absences)


# ----------------------------- Čas a rozvrhy -----------------------------
@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime

    @classmethod
    def from_duration(cls, start: datetime, minutes: float) -> "TimeWindow":
        return cls(start, start + timedelta(minutes=float(minutes)))

    @property
    def minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60.0

    def overlaps(self, other: "TimeWindow") -> bool:
        # polouzavřené intervaly [start, end)
        return self.start < other.end and other.start < self.end


@dataclass
class Commitment:
    worker_id: str
    window: TimeWindow
    ref: str = ""                       # např. "<plan_id>/<node_id>"


@dataclass
class AssignmentResult:
    assigned_worker: Optional[str]
    assigned_stations: List[StationRef]
    assignment_mode: Optional[str]
    assignment_warnings: List[str] = field(default_factory=list)
    requires_attention: bool = False

    def to_dict(self) -> dict:
        return {
            "assignedWorker": self.assigned_worker,
            "assignedStations": [{"stationId": s.station_id, "priority": s.priority}
                                 for s in self.assigned_stations],
            "assignmentMode": self.assignment_mode,
            "assignmentWarnings": list(self.assignment_warnings),
            "requiresAttention": self.requires_attention,
        }


# ----------------------------- Převody ze slovníků -----------------------------
def _pick(d: dict, *keys, default=None):
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return default


def as_material(v) -> MaterialEntry:
    """MaterialEntry nebo dict (camelCase i snake_case) -> MaterialEntry."""
    if isinstance(v, MaterialEntry):
        return MaterialEntry(v.material_id, v.name, v.quantity, v.unit, v.derived_from)
    mid = str(_pick(v, "material_id", "materialId", "materialCode", "id", default="")).strip()
    derived = _pick(v, "derived_from", "derivedFrom")
    return MaterialEntry(
        material_id=mid,
        name=str(_pick(v, "name", default=mid) or mid),
        quantity=safe_float(_pick(v, "quantity", "requiredQuantity", "qty")),
        unit=str(_pick(v, "unit", default="") or ""),
        derived_from=(str(derived) if derived not in (None, "") else None),
    )


def as_station_ref(v, priority: int = 1) -> StationRef:
    """StationRef / dict / holé id stanice -> StationRef."""
    if isinstance(v, StationRef):
        return StationRef(v.station_id, v.priority)
    if isinstance(v, dict):
        sid = str(_pick(v, "station_id", "stationId", "id", default="")).strip()
        return StationRef(sid, int(_pick(v, "priority", default=priority)))
    return StationRef(str(v).strip(), priority)
