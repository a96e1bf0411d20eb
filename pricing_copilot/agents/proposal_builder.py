"""Turns a classified operator intent into a structured action proposal."""

from __future__ import annotations

from typing import Any

from pricing_copilot.schemas import ActionProposal, ClassifiedIntent
from pricing_copilot.services.price_mutator import format_price
from pricing_copilot.services.room_catalog import RoomCatalog

ACTION_NAMES = {
    "apply_price_override",
    "adjust_rate_clamp",
    "update_competitor_weight",
    "update_competitor_differential",
    "apply_price_increase",
    "apply_weekend_rate_increase",
    "apply_temporary_pricing",
    "apply_multiple_promotions",
    "undo_last_action",
}


def build_undo_proposal() -> ActionProposal:
    return ActionProposal(
        action_name="undo_last_action",
        parameters={},
        description="Undo the last pricing action and revert to previous price.",
        reasoning="This will remove the most recent pricing change and restore the original price.",
    )


class ProposalBuilder:
    """Pure mapping from intent to proposal; never touches prices or the action store."""

    def __init__(self, *, catalog: RoomCatalog) -> None:
        self.catalog = catalog

    def build(self, intent: ClassifiedIntent) -> ActionProposal:
        """Raise ValueError for actions the executor does not know."""

        if intent.action_name not in ACTION_NAMES:
            raise ValueError(f"Unsupported action: {intent.action_name}")
        if intent.action_name == "undo_last_action":
            proposal = build_undo_proposal()
            return proposal.model_copy(update={"confidence": intent.confidence})

        parameters = self._complete_parameters(intent.action_name, dict(intent.parameters))
        return ActionProposal(
            action_name=intent.action_name,
            parameters=parameters,
            description=intent.description or self.describe(intent.action_name, parameters),
            requires_approval=True,
            confidence=intent.confidence,
            reasoning=intent.reasoning or None,
        )

    def _with_current_price(self, entries: Any) -> Any:
        if not isinstance(entries, list):
            return entries
        completed = []
        for entry in entries:
            if isinstance(entry, dict) and entry.get("current_price") is None:
                price = self.catalog.price_of(str(entry.get("room_type") or ""))
                entry = {**entry, "current_price": price} if price is not None else dict(entry)
            completed.append(entry)
        return completed

    def _complete_parameters(self, action_name: str, parameters: dict[str, Any]) -> dict[str, Any]:
        if action_name == "apply_temporary_pricing":
            parameters["room_pricing"] = self._with_current_price(parameters.get("room_pricing"))
            parameters.setdefault("reason", "Temporary offer")
        elif action_name == "apply_multiple_promotions":
            parameters["promotions"] = self._with_current_price(parameters.get("promotions"))
        elif action_name == "apply_price_increase":
            parameters.setdefault("scope", "all days")
        elif action_name == "apply_weekend_rate_increase":
            parameters.setdefault("scope", "weekend")
        elif action_name == "apply_price_override" and parameters.get("current_price") is None:
            price = self.catalog.price_of(str(parameters.get("room_id") or ""))
            if price is not None:
                parameters["current_price"] = price
        return parameters

    @staticmethod
    def describe(action_name: str, parameters: dict[str, Any]) -> str:
        """Default human-readable description when the classifier supplied none."""

        p = parameters
        if action_name == "apply_price_override":
            return f"Set {p.get('room_id')} to ${_price(p.get('new_price'))} on {p.get('date')}"
        if action_name == "adjust_rate_clamp":
            label = "minimum" if p.get("clamp_type") == "floor" else "maximum"
            return f"Set {label} price of ${_price(p.get('new_value'))} for {p.get('room_type')}"
        if action_name == "update_competitor_weight":
            return f"Set competitor weight for {p.get('competitor_name')} to {p.get('new_weight')}"
        if action_name == "update_competitor_differential":
            amount = p.get("new_differential")
            below = isinstance(amount, (int, float)) and amount < 0
            shown = abs(amount) if isinstance(amount, (int, float)) else amount
            return f"Position pricing ${_price(shown)} {'below' if below else 'above'} {p.get('competitor_name')}"
        if action_name in {"apply_price_increase", "apply_weekend_rate_increase"}:
            pct = p.get("percentage")
            verb = "Decrease" if isinstance(pct, (int, float)) and pct < 0 else "Increase"
            rooms = ", ".join(str(r) for r in p.get("room_types") or [])
            shown = abs(pct) if isinstance(pct, (int, float)) else pct
            return f"{verb} {rooms} by {_price(shown)}% ({p.get('scope')})"
        if action_name == "apply_temporary_pricing":
            parts = [
                f"{e.get('room_type')} ${_price(e.get('current_price'))} -> ${_price(e.get('new_price'))}"
                for e in p.get("room_pricing") or []
                if isinstance(e, dict)
            ]
            return f"Apply {p.get('reason')}: {', '.join(parts)}"
        if action_name == "apply_multiple_promotions":
            count = len(p.get("promotions") or [])
            return f"Apply {count} promotional price change(s)"
        return action_name


def _price(value: Any) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return format_price(value)
    return str(value)
