"""
Applicant board schema and row mapping.

Pipeline columns (default):
  Application → Screen call → Coding test → Interview 1 → Interview 2 → Negotiation → Hired

Applicants and stages are immutable records; the stores swap whole records
on every mutation. Rows use the snake_case column names of the persistence
layer, the dataclasses use domain names.
"""
from enum import Enum
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, List, Dict, Any, Mapping, NewType


# Opaque stage key. Valid values are whatever the stage registry currently holds.
StageId = NewType("StageId", str)

FIXED_STAGE_ID = StageId("hired")


class RegistrationType(Enum):
    """How the applicant entered the pipeline."""
    DIRECT = "direct"        # Added by a recruiter
    POSTED = "posted"        # Applied through a job posting

    @classmethod
    def from_str(cls, value: str) -> "RegistrationType":
        try:
            return cls(value)
        except ValueError:
            pass
        try:
            return cls[value.upper()]
        except (KeyError, AttributeError):
            return cls.DIRECT


@dataclass(frozen=True)
class EvaluationProgress:
    """Completed evaluations out of the evaluations required."""
    current: int = 0
    total: int = 1

    def __post_init__(self):
        if self.total < 1:
            raise ValueError(f"evaluation total must be >= 1, got {self.total}")
        if not 0 <= self.current <= self.total:
            raise ValueError(
                f"evaluation current must be within 0..{self.total}, got {self.current}"
            )

    @property
    def ratio(self) -> float:
        return self.current / self.total

    @property
    def is_completed(self) -> bool:
        return self.current == self.total

    @property
    def is_in_progress(self) -> bool:
        return 0 < self.current < self.total

    @property
    def is_not_started(self) -> bool:
        return self.current == 0

    def to_dict(self) -> Dict[str, int]:
        return {"current": self.current, "total": self.total}


def format_applied_date(when: Optional[datetime] = None) -> str:
    """Display date used for new applicants, e.g. '2025. 09. 02'."""
    when = when or datetime.now()
    return f"{when.year}. {when.month:02d}. {when.day:02d}"


@dataclass(frozen=True)
class ApplicantDraft:
    """Form input for a new applicant, before an id is assigned."""
    name: str
    stage: StageId
    registration_type: RegistrationType = RegistrationType.DIRECT


@dataclass(frozen=True)
class Applicant:
    """One candidate card on the board."""

    id: str
    name: str
    stage: StageId
    registration_type: RegistrationType = RegistrationType.DIRECT
    applied_date: str = ""
    evaluation_progress: EvaluationProgress = field(default_factory=EvaluationProgress)

    def with_stage(self, stage: StageId) -> "Applicant":
        return replace(self, stage=stage)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the JSON API."""
        return {
            "id": self.id,
            "name": self.name,
            "stage": self.stage,
            "registration_type": self.registration_type.value,
            "applied_date": self.applied_date,
            "evaluation_progress": self.evaluation_progress.to_dict(),
        }

    def to_row(self, position: Optional[int] = None) -> Dict[str, Any]:
        """Map to a persistence row. `position` is only included when given."""
        row = {
            "id": self.id,
            "name": self.name,
            "stage": self.stage,
            "registration_type": self.registration_type.value,
            "applied_date": self.applied_date,
            "evaluation_current": self.evaluation_progress.current,
            "evaluation_total": self.evaluation_progress.total,
        }
        if position is not None:
            row["position"] = position
        return row

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Applicant":
        """Deserialize a persistence row."""
        return cls(
            id=str(row["id"]),
            name=row.get("name", ""),
            stage=StageId(row.get("stage", "")),
            registration_type=RegistrationType.from_str(row.get("registration_type") or ""),
            applied_date=row.get("applied_date") or "",
            evaluation_progress=EvaluationProgress(
                current=int(row.get("evaluation_current") or 0),
                total=int(row.get("evaluation_total") or 1),
            ),
        )


# Fields an applicant update may touch, with their row columns.
APPLICANT_UPDATE_FIELDS = ("name", "registration_type", "applied_date", "evaluation_progress")


def applicant_changes_to_row(changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Map a partial applicant update to row columns."""
    row: Dict[str, Any] = {}
    for key, value in changes.items():
        if key == "evaluation_progress":
            row["evaluation_current"] = value.current
            row["evaluation_total"] = value.total
        elif key == "registration_type":
            row["registration_type"] = value.value
        elif key == "stage":
            row["stage"] = value
        else:
            row[key] = value
    return row


@dataclass(frozen=True)
class StageInfo:
    """A pipeline column."""
    id: StageId
    title: str
    color: str
    is_fixed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "color": self.color,
            "is_fixed": self.is_fixed,
        }

    def to_row(self, position: Optional[int] = None) -> Dict[str, Any]:
        row = self.to_dict()
        if position is not None:
            row["position"] = position
        return row

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "StageInfo":
        return cls(
            id=StageId(str(row["id"])),
            title=row.get("title", ""),
            color=row.get("color", ""),
            is_fixed=bool(row.get("is_fixed", False)),
        )


DEFAULT_STAGES: List[StageInfo] = [
    StageInfo(StageId("application"), "Application (document review)", "#F59E0B"),
    StageInfo(StageId("screen_call"), "TA screen call", "#10B981"),
    StageInfo(StageId("coding_test"), "Coding test", "#3B82F6"),
    StageInfo(StageId("interview_1"), "1st interview (technical)", "#8B5CF6"),
    StageInfo(StageId("interview_2"), "2nd interview (executive)", "#EC4899"),
    StageInfo(StageId("final_negotiation"), "Offer negotiation", "#14B8A6"),
    StageInfo(FIXED_STAGE_ID, "Hired", "#06B6D4", is_fixed=True),
]

STAGE_COLORS: List[str] = [
    "#F59E0B", "#10B981", "#3B82F6", "#8B5CF6",
    "#EC4899", "#14B8A6", "#06B6D4", "#EF4444",
    "#6366F1", "#84CC16", "#F97316", "#0EA5E9",
]
