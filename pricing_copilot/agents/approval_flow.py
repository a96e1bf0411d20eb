"""Per-session approval state machine between a shown proposal and its execution."""

from __future__ import annotations

import operator
import re
from datetime import UTC, datetime, timedelta
from typing import Annotated, Any, Callable, TypedDict

from langgraph.graph import END, StateGraph

from pricing_copilot.schemas import (
    ActionProposal,
    ApprovalOutcome,
    ConversationMessage,
    StepLog,
)
from pricing_copilot.services.pending_proposals import PendingProposalCache
from pricing_copilot.services.price_mutator import format_price
from pricing_copilot.services.room_aliases import RoomAliasTable

CONFIRMATION_PHRASES = {"yes", "ok", "okay", "confirm", "proceed", "go ahead", "do it", "yes please"}

APPROVAL_PHRASES = [
    "yes", "ok", "okay", "approve", "approved", "apply",
    "proceed", "go ahead", "do it", "execute", "confirm",
    "yes please", "yes apply", "apply it", "yes do it",
]

REJECTION_PATTERN = re.compile(
    r"^(no|cancel|reject|stop|don't|dont|nevermind|never mind|abort|nope|nah)\b"
)


class ApprovalState(TypedDict, total=False):
    session_id: str
    message: str
    history: list[ConversationMessage]
    outcome: ApprovalOutcome
    steps: Annotated[list[StepLog], operator.add]


def is_simple_confirmation(message: str) -> bool:
    lowered = message.strip().lower()
    return lowered.rstrip("!") in CONFIRMATION_PHRASES and lowered.count("!") <= 1


def is_approval_message(message: str) -> bool:
    lowered = message.strip().lower()
    return any(
        lowered == phrase or lowered.startswith((phrase + " ", phrase + ",", phrase + "."))
        for phrase in APPROVAL_PHRASES
    )


def is_rejection_message(message: str) -> bool:
    return bool(REJECTION_PATTERN.match(message.strip().lower()))


def is_apply_request(message: str) -> bool:
    lowered = message.strip().lower()
    return lowered.startswith("apply") or "apply the" in lowered or "apply this" in lowered


def last_history_proposal(history: list[ConversationMessage] | None) -> ActionProposal | None:
    """Most recent proposal attached to an assistant turn (stateless recovery path)."""

    for message in reversed(history or []):
        if message.role == "assistant" and message.action_proposal and message.action_proposal.action_name:
            return message.action_proposal
    return None


class ApprovalFlow:
    """Classifies operator replies against the session's pending proposal.

    Exposed both as plain method calls and as a single-node LangGraph
    StateGraph, the same way the request router is.
    """

    name = "approval_flow"

    def __init__(
        self,
        *,
        cache: PendingProposalCache,
        aliases: RoomAliasTable | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.cache = cache
        self.aliases = aliases or RoomAliasTable()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._graph = self._build_graph()

    def hold(self, session_id: str, proposal: ActionProposal) -> None:
        """Remember a proposal that was just shown to the operator."""

        self.cache.set(session_id, proposal.model_copy(update={"requires_approval": True}))

    def pending_for(
        self,
        session_id: str,
        history: list[ConversationMessage] | None = None,
    ) -> ActionProposal | None:
        entry = self.cache.get(session_id)
        if entry is not None:
            # A resolved entry means the last shown proposal was already approved or rejected;
            # history is only consulted for sessions this process has no record of.
            return entry.proposal if entry.status == "pending" else None
        return last_history_proposal(history)

    def _resolve(self, session_id: str, proposal: ActionProposal | None, status: str) -> None:
        self.cache.set(session_id, proposal, status=status)

    def process(
        self,
        session_id: str,
        message: str,
        history: list[ConversationMessage] | None = None,
    ) -> ApprovalOutcome:
        rooms = self.aliases.extract_rooms(message)

        if rooms and is_apply_request(message):
            pending = self.pending_for(session_id, history)
            if pending is None:
                return ApprovalOutcome(
                    type="NO_PENDING_ACTION",
                    message="No pending offers found. Would you like me to show available promotions?",
                )
            narrowed = self.narrow(pending, rooms)
            self.hold(session_id, narrowed)
            room_label = rooms[0] if len(rooms) == 1 else f"{len(rooms)} rooms ({', '.join(rooms)})"
            return ApprovalOutcome(
                type="NEEDS_CONFIRMATION",
                message=(
                    f"Ready to apply offer for {room_label}:\n\n{narrowed.description}\n\n"
                    "Should I proceed? (yes/no)"
                ),
                action_proposal=narrowed.model_copy(update={"requires_approval": True}),
            )

        if is_simple_confirmation(message) or (not rooms and is_approval_message(message)):
            pending = self.pending_for(session_id, history)
            if pending is None:
                return ApprovalOutcome(
                    type="NO_PENDING_ACTION",
                    message="Nothing to approve. What would you like me to do?",
                )
            self._resolve(session_id, pending, "approved")
            return ApprovalOutcome(
                type="APPROVAL",
                message=f"Approval received. Executing: {pending.description}",
                action_proposal=pending.model_copy(update={"requires_approval": False}),
            )

        if is_rejection_message(message):
            self._resolve(session_id, self.pending_for(session_id, history), "rejected")
            return ApprovalOutcome(
                type="REJECTION",
                message="Action cancelled. What else can I help you with?",
            )

        return ApprovalOutcome(type="NEW_REQUEST", message="")

    def narrow(self, proposal: ActionProposal, rooms: list[str]) -> ActionProposal:
        """Restrict a multi-room proposal to `rooms`; unchanged when nothing matches."""

        params = proposal.parameters

        def wanted(entry: dict[str, Any]) -> bool:
            return any(self.aliases.rooms_match(entry.get("room_type"), room) for room in rooms)

        if proposal.action_name == "apply_multiple_promotions":
            matches = [p for p in params.get("promotions") or [] if isinstance(p, dict) and wanted(p)]
            if matches:
                now = self._clock()
                room_pricing = [
                    {
                        "room_type": p.get("room_type"),
                        "current_price": p.get("current_price"),
                        "new_price": p.get("new_price"),
                    }
                    for p in matches
                ]
                reason = matches[0].get("reason") or "10% promotion"
                return ActionProposal(
                    action_name="apply_temporary_pricing",
                    parameters={
                        "room_pricing": room_pricing,
                        "start_date": matches[0].get("start_date") or now.isoformat(),
                        "end_date": matches[0].get("end_date") or (now + timedelta(hours=24)).isoformat(),
                        "reason": reason,
                    },
                    description=(
                        f"Apply {reason} to {len(room_pricing)} room(s): {_describe_pricing(room_pricing)}"
                    ),
                    confidence=0.9,
                    reasoning=f"Selected {', '.join(rooms)} from available promotions",
                )

        if proposal.action_name == "apply_temporary_pricing":
            matches = [p for p in params.get("room_pricing") or [] if isinstance(p, dict) and wanted(p)]
            if matches:
                return proposal.model_copy(
                    update={
                        "parameters": {**params, "room_pricing": matches},
                        "description": (
                            f"Apply promotion to {len(matches)} room(s): {_describe_pricing(matches)}"
                        ),
                    }
                )

        return proposal

    def _build_graph(self) -> Any:
        """Build a single-node LangGraph wrapper around reply classification."""

        flow_self = self

        def classify_node(state: ApprovalState) -> dict[str, Any]:
            outcome = flow_self.process(state["session_id"], state["message"], state.get("history"))
            step = StepLog(
                module=flow_self.name,
                prompt={"session_id": state["session_id"], "message": state["message"]},
                response={
                    "type": outcome.type,
                    "action_name": outcome.action_proposal.action_name if outcome.action_proposal else None,
                },
            )
            return {"outcome": outcome, "steps": [step]}

        builder = StateGraph(ApprovalState)
        builder.add_node("classify_reply", classify_node)
        builder.set_entry_point("classify_reply")
        builder.add_edge("classify_reply", END)
        return builder.compile()

    def process_via_graph(
        self,
        session_id: str,
        message: str,
        history: list[ConversationMessage] | None = None,
    ) -> tuple[ApprovalOutcome, StepLog | None]:
        """Alternative entry point that classifies through the compiled graph."""

        result = self._graph.invoke(
            {"session_id": session_id, "message": message, "history": history or [], "steps": []}
        )
        steps = result.get("steps", [])
        return result["outcome"], (steps[0] if steps else None)


def _describe_pricing(room_pricing: list[dict[str, Any]]) -> str:
    parts = []
    for entry in room_pricing:
        current = entry.get("current_price")
        new = entry.get("new_price")
        current_text = f"${format_price(current)}" if isinstance(current, (int, float)) else "current"
        new_text = f"${format_price(new)}" if isinstance(new, (int, float)) else str(new)
        parts.append(f"{entry.get('room_type')}: {current_text} -> {new_text}")
    return ", ".join(parts)
