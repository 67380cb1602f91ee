from datetime import date as DateType, datetime
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class TransactionKind(str, Enum):
    EARNED = "earned"
    REDEMPTION = "redemption"
    REFUND = "refund"


class CreditTransaction(BaseModel):
    id: UUID
    user_id: UUID
    amount: int
    kind: TransactionKind
    source: str
    created_at: datetime
    redemption_id: Optional[UUID] = None
    metadata: dict = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True, frozen=True)


class CreditBalance(BaseModel):
    user_id: UUID
    available: int
    earned: int
    spent: int
    total_entries: int = 0
    last_transaction_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LedgerHistoryResponse(BaseModel):
    user_id: UUID
    entries: list[CreditTransaction]
    total_count: int
    available_balance: int


class CreditCalculation(BaseModel):
    steps: int
    base_credits: int
    bonus_credits: int
    total_credits: int
    sustainable_goal_progress: float
    message: str


class StepRecord(BaseModel):
    user_id: UUID
    date: DateType
    steps: int
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
