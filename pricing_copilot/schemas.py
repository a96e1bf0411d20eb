"""Pydantic schemas for proposal contracts and API request/response bodies."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

ApprovalOutcomeType = Literal[
    "APPROVAL",
    "REJECTION",
    "NEEDS_CONFIRMATION",
    "NO_PENDING_ACTION",
    "NEW_REQUEST",
]


class ActionProposal(BaseModel):
    """A structured, not-yet-executed pricing action shown to the operator."""

    action_name: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    description: str = ""
    requires_approval: bool = True
    confidence: float | None = None
    reasoning: str | None = None


class ClassifiedIntent(BaseModel):
    """Output of the (external) intent classifier."""

    action_name: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    description: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: str = ""


class ConversationMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str = ""
    action_proposal: ActionProposal | None = None


class ApprovalOutcome(BaseModel):
    type: ApprovalOutcomeType
    message: str = ""
    action_proposal: ActionProposal | None = None


class StepLog(BaseModel):
    """Execution trace step emitted by graph entry points."""

    module: str
    prompt: dict[str, Any]
    response: dict[str, Any]


class ExecutionResponse(BaseModel):
    """Result of running one action through the executor (with its audit entry)."""

    success: bool
    message: str
    data: dict[str, Any] | None = None
    audit: dict[str, Any] | None = None


class ProposalRequest(BaseModel):
    """Input schema for `POST /api/copilot/proposals`."""

    session_id: str = Field(min_length=1)
    intent: ClassifiedIntent


class ProposalResponse(BaseModel):
    status: Literal["ok", "error"]
    error: str | None
    action_proposal: ActionProposal | None


class ApprovalRequest(BaseModel):
    """Input schema for `POST /api/copilot/approval`."""

    session_id: str = Field(min_length=1)
    message: str
    conversation_history: list[ConversationMessage] = Field(default_factory=list)
    operator: str | None = Field(default=None, description="Operator id recorded in the audit log")
    execute_on_approval: bool = Field(
        default=True,
        description="Run the approved proposal immediately and return its execution result",
    )


class ApprovalResponse(BaseModel):
    status: Literal["ok", "error"]
    error: str | None
    outcome: ApprovalOutcome | None
    execution: ExecutionResponse | None = None


class ExecuteRequest(BaseModel):
    """Input schema for `POST /api/actions/execute` (an already-approved proposal)."""

    action_name: str = Field(min_length=1)
    parameters: dict[str, Any] = Field(default_factory=dict)
    description: str = ""
    prompt: str = ""
    operator: str | None = None


class UndoRequest(BaseModel):
    prompt: str = "undo"
    operator: str | None = None


class ActionConfigResponse(BaseModel):
    """Snapshot of the persisted action document for `GET /api/actions/config`."""

    overrides: list[dict[str, Any]]
    clamps: list[dict[str, Any]]
    weights: list[dict[str, Any]]
    differentials: list[dict[str, Any]]
    adjustments: list[dict[str, Any]]
    temporary_offers: list[dict[str, Any]]
    scheduled_reverts: list[dict[str, Any]]


class RevertRunResponse(BaseModel):
    status: Literal["ok", "error"]
    error: str | None
    processed: int
    completed: list[str]
    skipped: list[str]


class AuditLogResponse(BaseModel):
    entries: list[dict[str, Any]]


class RoomResponse(BaseModel):
    room_type: str
    display_name: str
    base_price: float
    total_rooms: int
    rate_floor: float
    rate_ceiling: float


class RoomsResponse(BaseModel):
    rooms: list[RoomResponse]
