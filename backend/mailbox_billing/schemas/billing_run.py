from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class UserOutcomeStatus(str, Enum):
    GENERATED = "generated"
    SKIPPED = "skipped"
    ERRORED = "errored"


class UserOutcome(BaseModel):
    user_id: UUID
    status: UserOutcomeStatus
    reason: str | None = None
    invoice_id: UUID | None = None
    invoice_number: str | None = None
    amount_pence: int | None = None
    attached_count: int | None = None
    period_start: date | None = None
    period_end: date | None = None


class FinalizationSummary(BaseModel):
    ok: bool = True
    run_at: datetime
    eligible: int = 0
    generated_count: int = 0
    skipped_count: int = 0
    errored_count: int = 0
    results: list[UserOutcome] = Field(default_factory=list)

    def add(self, outcome: UserOutcome) -> None:
        self.results.append(outcome)
        if outcome.status == UserOutcomeStatus.GENERATED:
            self.generated_count += 1
        elif outcome.status == UserOutcomeStatus.SKIPPED:
            self.skipped_count += 1
        else:
            self.errored_count += 1


class RepairSummary(BaseModel):
    ok: bool = True
    repaired_count: int
