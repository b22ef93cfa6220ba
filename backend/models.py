from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

MAX_PRIORITIES_PER_DAY = 3
RANKS = (1, 2, 3)


def lowest_free_rank(taken: set[int] | list[int]) -> Optional[int]:
    """Smallest rank in 1..3 not already used, or None when the day is full."""
    for rank in RANKS:
        if rank not in taken:
            return rank
    return None


class RecurringTemplate(BaseModel):
    id: int
    name: str
    cron_expression: str  # Standard 5-field cron, e.g. "0 0 * * 1-5" for weekdays
    is_active: bool = True
    rank: int  # 1 = most important; suggested rank for generated priorities
    created_at: str  # ISO format datetime string (UTC)


class RecurringTemplateCreate(BaseModel):
    name: str = Field(min_length=1)
    cron_expression: str
    is_active: bool = True
    rank: int = Field(default=1, ge=1, le=3)


class RecurringTemplateUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    cron_expression: Optional[str] = None
    is_active: Optional[bool] = None
    rank: Optional[int] = Field(default=None, ge=1, le=3)


class PriorityEntry(BaseModel):
    id: Optional[int] = None  # None until persisted
    name: str
    done: bool = False
    rank: int = Field(ge=1, le=3)
    template_id: Optional[int] = None  # Set only on entries produced by generation


class DayRecord(BaseModel):
    id: Optional[int] = None
    date: date
    brain_dump: Optional[str] = None
    worries: Optional[str] = None
    worry_time: Optional[str] = None  # HH:MM, local time
    gratitude: Optional[str] = None
    priorities: list[PriorityEntry] = Field(default_factory=list)
    dismissed_template_ids: list[int] = Field(default_factory=list)

    def taken_ranks(self) -> set[int]:
        return {p.rank for p in self.priorities}

    def template_ids(self) -> set[int]:
        """Templates already materialized on this day."""
        return {p.template_id for p in self.priorities if p.template_id is not None}

    def is_full(self) -> bool:
        return len(self.priorities) >= MAX_PRIORITIES_PER_DAY


class PriorityInput(BaseModel):
    name: str = ""
    done: bool = False
    rank: int = Field(ge=1, le=3)


class DayRecordSave(BaseModel):
    date: date
    brain_dump: Optional[str] = None
    worries: Optional[str] = None
    worry_time: Optional[str] = None
    gratitude: Optional[str] = None
    priorities: list[PriorityInput] = Field(default_factory=list)

    @field_validator("priorities")
    @classmethod
    def check_priorities(cls, priorities: list[PriorityInput]) -> list[PriorityInput]:
        if len(priorities) > MAX_PRIORITIES_PER_DAY:
            raise ValueError(f"At most {MAX_PRIORITIES_PER_DAY} priorities per day")
        ranks = [p.rank for p in priorities]
        if len(ranks) != len(set(ranks)):
            raise ValueError("Priority ranks must be unique within a day")
        return priorities

    @field_validator("worry_time")
    @classmethod
    def check_worry_time(cls, value: Optional[str]) -> Optional[str]:
        if value in (None, ""):
            return None
        try:
            parsed = datetime.strptime(value[:5], "%H:%M")
        except ValueError:
            raise ValueError("worry_time must be HH:MM")
        return parsed.strftime("%H:%M")


class GenerationReport(BaseModel):
    """Outcome of one generation run for a date."""
    date: date
    generated: list[PriorityEntry] = Field(default_factory=list)
    skipped_template_ids: list[int] = Field(default_factory=list)  # already present or dismissed
    dropped_template_ids: list[int] = Field(default_factory=list)  # day was full
    failed_template_ids: list[int] = Field(default_factory=list)  # bad cron or insert conflict


class RelocationResult(BaseModel):
    success: bool = True
    moved_to_date: date
    priority: PriorityEntry


class RecommendedPriority(BaseModel):
    name: str
    reason: str = ""
    suggested_rank: int = Field(default=1, ge=1, le=3)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


GoalType = Literal["short", "medium", "long"]


class Step(BaseModel):
    id: int
    goal_id: int
    text: str
    done: bool = False


class StepInput(BaseModel):
    text: str = Field(min_length=1)
    done: bool = False


class Goal(BaseModel):
    id: int
    title: str
    type: GoalType  # Horizon of the goal
    created_at: str  # ISO format datetime string (UTC)
    steps: list[Step] = Field(default_factory=list)


class GoalSave(BaseModel):
    """Body for creating or replacing a goal; steps replace the existing ones in order."""
    title: str = Field(min_length=1)
    type: GoalType
    steps: list[StepInput] = Field(default_factory=list)
