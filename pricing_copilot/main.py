"""FastAPI entrypoint hosting the pricing action orchestration engine."""

from __future__ import annotations

import logging

from dotenv import load_dotenv
from fastapi import Body, FastAPI, HTTPException, Query

from pricing_copilot.agents.approval_flow import ApprovalFlow
from pricing_copilot.agents.proposal_builder import ProposalBuilder, build_undo_proposal
from pricing_copilot.config import load_settings
from pricing_copilot.schemas import (
    ActionConfigResponse,
    ActionProposal,
    ApprovalRequest,
    ApprovalResponse,
    AuditLogResponse,
    ExecuteRequest,
    ExecutionResponse,
    ProposalRequest,
    ProposalResponse,
    RevertRunResponse,
    RoomResponse,
    RoomsResponse,
    UndoRequest,
)
from pricing_copilot.services.action_executor import ActionExecutor, ActionResult
from pricing_copilot.services.action_store import JsonActionStore
from pricing_copilot.services.audit_log import AuditLog
from pricing_copilot.services.competitor_directory import CompetitorDirectory
from pricing_copilot.services.pending_proposals import PendingProposalCache
from pricing_copilot.services.price_mutator import PriceMutator
from pricing_copilot.services.revert_scheduler import RevertScheduler
from pricing_copilot.services.room_aliases import RoomAliasTable
from pricing_copilot.services.room_catalog import RoomCatalog


load_dotenv()
settings = load_settings()
app = FastAPI(title="Pricing Copilot", version="0.1.0")
logger = logging.getLogger(__name__)

room_aliases = RoomAliasTable()
room_catalog = RoomCatalog(path=settings.room_catalog_path, aliases=room_aliases)
price_mutator = PriceMutator(catalog=room_catalog, csv_mirror_path=settings.room_price_csv_path)
action_store = JsonActionStore(path=settings.actions_store_path)
audit_log = AuditLog(path=settings.audit_log_path, max_entries=settings.audit_log_max_entries)
action_executor = ActionExecutor(
    store=action_store,
    catalog=room_catalog,
    mutator=price_mutator,
    competitors=CompetitorDirectory(settings.competitor_names),
    audit_log=audit_log,
    local_timezone=settings.local_timezone,
)
proposal_builder = ProposalBuilder(catalog=room_catalog)
approval_flow = ApprovalFlow(
    cache=PendingProposalCache(
        max_sessions=settings.pending_proposal_max_sessions,
        ttl_seconds=settings.pending_proposal_ttl_seconds,
    ),
    aliases=room_aliases,
)


def _run_revert_pass() -> ActionResult:
    """Background scheduler callback that completes every due temporary-pricing revert."""

    result = action_executor.process_scheduled_reverts()
    logger.info("revert pass finished: %s", result.message)
    return result


revert_scheduler = RevertScheduler(
    enabled=settings.revert_scheduler_enabled,
    interval_seconds=settings.revert_scheduler_interval_seconds,
    run_job=_run_revert_pass,
    logger=logger,
)


@app.on_event("startup")
def startup() -> None:
    """Start the revert scheduler; its first pass runs immediately."""

    revert_scheduler.start()


@app.on_event("shutdown")
def shutdown() -> None:
    """Stop the background scheduler cleanly on process shutdown."""

    revert_scheduler.stop()


def _operator(value: str | None) -> str:
    return value.strip() if value and value.strip() else settings.default_operator


@app.post("/api/copilot/proposals", response_model=ProposalResponse)
def create_proposal(payload: ProposalRequest) -> ProposalResponse:
    """Build a proposal from a classified intent and hold it for the session."""

    try:
        proposal = proposal_builder.build(payload.intent)
    except ValueError as exc:
        return ProposalResponse(status="error", error=str(exc), action_proposal=None)
    approval_flow.hold(payload.session_id, proposal)
    return ProposalResponse(status="ok", error=None, action_proposal=proposal)


@app.post("/api/copilot/approval", response_model=ApprovalResponse)
def approval(payload: ApprovalRequest) -> ApprovalResponse:
    """Classify an operator reply; approved proposals are executed and audited."""

    try:
        outcome = approval_flow.process(
            payload.session_id,
            payload.message,
            payload.conversation_history,
        )
        execution = None
        if outcome.type == "APPROVAL" and outcome.action_proposal and payload.execute_on_approval:
            execution = ExecutionResponse(
                **action_executor.execute_proposal(
                    outcome.action_proposal,
                    operator=_operator(payload.operator),
                    prompt=payload.message,
                )
            )
        return ApprovalResponse(status="ok", error=None, outcome=outcome, execution=execution)
    except Exception as exc:
        logger.warning("approval flow failed: %s: %s", type(exc).__name__, exc)
        return ApprovalResponse(status="error", error=f"{type(exc).__name__}: {exc}", outcome=None)


@app.post("/api/actions/execute", response_model=ExecutionResponse)
def execute_action(payload: ExecuteRequest) -> ExecutionResponse:
    """Execute an already-approved proposal."""

    if not action_executor.supports(payload.action_name):
        raise HTTPException(status_code=400, detail=f"Unknown action: {payload.action_name}")
    proposal = ActionProposal(
        action_name=payload.action_name,
        parameters=payload.parameters,
        description=payload.description,
        requires_approval=False,
    )
    result = action_executor.execute_proposal(
        proposal,
        operator=_operator(payload.operator),
        prompt=payload.prompt,
    )
    return ExecutionResponse(**result)


@app.post("/api/actions/undo", response_model=ExecutionResponse)
def undo_action(payload: UndoRequest | None = Body(default=None)) -> ExecutionResponse:
    payload = payload or UndoRequest()
    result = action_executor.execute_proposal(
        build_undo_proposal(),
        operator=_operator(payload.operator),
        prompt=payload.prompt,
    )
    return ExecutionResponse(**result)


@app.get("/api/actions/config", response_model=ActionConfigResponse)
def action_config() -> ActionConfigResponse:
    """Return the persisted action document (empty collections when unreadable)."""

    return ActionConfigResponse(**action_store.get())


@app.post("/api/actions/reverts/run", response_model=RevertRunResponse)
def run_reverts() -> RevertRunResponse:
    """Trigger one reconciliation pass outside the scheduler's timer."""

    result = action_executor.process_scheduled_reverts()
    data = result.data or {}
    return RevertRunResponse(
        status="ok" if result.success else "error",
        error=None if result.success else result.message,
        processed=int(data.get("processed", 0)),
        completed=list(data.get("completed", [])),
        skipped=list(data.get("skipped", [])),
    )


@app.get("/api/audit", response_model=AuditLogResponse)
def audit_entries(limit: int = Query(default=50, ge=1, le=1000)) -> AuditLogResponse:
    return AuditLogResponse(entries=audit_log.recent(limit))


@app.get("/api/rooms", response_model=RoomsResponse)
def rooms() -> RoomsResponse:
    return RoomsResponse(
        rooms=[
            RoomResponse(
                room_type=room.room_type,
                display_name=room_aliases.display_name(room.room_type),
                base_price=room.base_price,
                total_rooms=room.total_rooms,
                rate_floor=room.rate_floor,
                rate_ceiling=room.rate_ceiling,
            )
            for room in room_catalog.list_rooms()
        ]
    )
