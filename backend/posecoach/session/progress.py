"""Workout session contents and completion bookkeeping."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional


@dataclass(frozen=True)
class Exercise:
    """One exercise of a workout session, as produced by the plan generator."""
    name: str
    sets: int = 1
    reps: Optional[int] = None
    duration_seconds: Optional[int] = None  # Holds and timed exercises
    rest_seconds: int = 60

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Exercise":
        return cls(
            name=data["name"],
            sets=int(data.get("sets", 1)),
            reps=data.get("reps"),
            duration_seconds=data.get("duration_seconds"),
            rest_seconds=int(data.get("rest_seconds", 60)),
        )


@dataclass(frozen=True)
class WorkoutSession:
    """The exercises of one session in week `week` of a plan."""
    week: int
    session_index: int
    exercises: List[Exercise]
    name: str = "Workout"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class WorkoutProgress:
    """
    Completion status of plan exercises, keyed by exercise_key().

    Immutable: updates return a new instance.
    """
    completions: Dict[str, bool] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=_now)

    @staticmethod
    def exercise_key(week: int, session_index: int, exercise_index: int) -> str:
        return f"w{week}_s{session_index}_e{exercise_index}"

    def is_exercise_completed(self, key: str) -> bool:
        return self.completions.get(key, False)

    def with_exercise_completed(self, key: str, completed: bool = True) -> "WorkoutProgress":
        completions = dict(self.completions)
        completions[key] = completed
        return WorkoutProgress(completions=completions, last_updated=_now())

    def with_exercise_toggled(self, key: str) -> "WorkoutProgress":
        return self.with_exercise_completed(key, not self.is_exercise_completed(key))

    def to_dict(self) -> Dict[str, Any]:
        return {"completions": dict(self.completions), "last_updated": self.last_updated.isoformat()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WorkoutProgress":
        last_updated = data.get("last_updated")
        return cls(
            completions={str(k): bool(v) for k, v in (data.get("completions") or {}).items()},
            last_updated=datetime.fromisoformat(last_updated) if last_updated else _now(),
        )
