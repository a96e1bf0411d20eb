"""Dispatch table of pricing actions: validate, mutate prices, record, and reverse."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Any, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pricing_copilot.schemas import ActionProposal
from pricing_copilot.services.action_store import (
    ActionDocument,
    ActionStoreError,
    AdjustmentRecord,
    ClampRecord,
    DifferentialRecord,
    JsonActionStore,
    OriginalPrice,
    OverrideRecord,
    ScheduledRevertRecord,
    TemporaryOfferRecord,
    WeightRecord,
    utc_now_iso,
)
from pricing_copilot.services.audit_log import AuditLog, create_audit_entry
from pricing_copilot.services.competitor_directory import CompetitorDirectory
from pricing_copilot.services.price_mutator import PriceMutator, format_price
from pricing_copilot.services.room_aliases import normalize_room_name
from pricing_copilot.services.room_catalog import RoomCatalog

logger = logging.getLogger(__name__)

MIN_PRICE = 50
MIN_CEILING = 100
MAX_DIFFERENTIAL = 100
DEFAULT_COMPETITOR_WEIGHT = 0.5
PROMOTION_OCCUPANCY_ESTIMATE = 0.5
PROJECTION_DAYS = 30

HOURS_PATTERN = re.compile(r"(\d+)[\s-]?hours?")
TIME_COMPONENT_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}[T ]\d{1,2}:\d{2}")

UNDO_LABELS = {
    "overrides": "override",
    "temporary_offers": "temporary offer",
    "adjustments": "adjustment",
}


@dataclass
class ActionResult:
    """Structured handler outcome; handlers never raise."""

    success: bool
    message: str
    data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "message": self.message, "data": self.data}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def resolve_timezone(name: str | None) -> tzinfo:
    if not name or name.strip().upper() == "UTC":
        return UTC
    try:
        return ZoneInfo(name.strip())
    except ZoneInfoNotFoundError:
        logger.warning("Unknown LOCAL_TIMEZONE %s, falling back to UTC", name)
        return UTC


def _to_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def _parse_datetime(value: Any, tz: tzinfo) -> datetime | None:
    """Parse a date (`YYYY-MM-DD`) or ISO datetime; naive values are read in `tz`."""

    text = str(value or "").strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def _parse_timestamp(value: Any) -> datetime:
    parsed = _parse_datetime(value, UTC)
    return parsed or datetime.min.replace(tzinfo=UTC)


class ActionExecutor:
    """Runs approved pricing actions against the catalog and the action store."""

    def __init__(
        self,
        *,
        store: JsonActionStore,
        catalog: RoomCatalog,
        mutator: PriceMutator,
        competitors: CompetitorDirectory | None = None,
        audit_log: AuditLog | None = None,
        local_timezone: str = "UTC",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.mutator = mutator
        self.competitors = competitors or CompetitorDirectory()
        self.audit_log = audit_log
        self.tz = resolve_timezone(local_timezone)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._handlers: dict[str, Callable[[dict[str, Any]], ActionResult]] = {
            "apply_price_override": lambda p: self.apply_price_override(
                p.get("room_id"), p.get("date"), p.get("new_price")
            ),
            "adjust_rate_clamp": lambda p: self.adjust_rate_clamp(
                p.get("room_type"),
                p.get("clamp_type"),
                p.get("new_value"),
                p.get("start_date"),
                p.get("end_date"),
            ),
            "update_competitor_weight": lambda p: self.update_competitor_weight(
                p.get("competitor_name"), p.get("new_weight")
            ),
            "update_competitor_differential": lambda p: self.update_competitor_differential(
                p.get("competitor_name"), p.get("new_differential")
            ),
            "apply_price_increase": lambda p: self.apply_price_increase(
                p.get("room_types"), p.get("percentage"), p.get("scope") or "all days"
            ),
            "apply_weekend_rate_increase": lambda p: self.apply_weekend_rate_increase(
                p.get("room_types"), p.get("percentage"), p.get("scope") or "weekend"
            ),
            "apply_temporary_pricing": lambda p: self.apply_temporary_pricing(
                p.get("room_pricing"),
                p.get("start_date"),
                p.get("end_date"),
                p.get("reason") or "Temporary offer",
            ),
            "apply_multiple_promotions": lambda p: self.apply_multiple_promotions(p.get("promotions")),
            "undo_last_action": lambda p: self.undo_last_action(),
        }

    @property
    def action_names(self) -> list[str]:
        return list(self._handlers)

    def supports(self, action_name: str) -> bool:
        return action_name in self._handlers

    def execute(self, action_name: str, parameters: dict[str, Any] | None = None) -> ActionResult:
        handler = self._handlers.get(action_name)
        if handler is None:
            return ActionResult(False, f"Unknown action: {action_name}")
        try:
            return handler(dict(parameters or {}))
        except Exception as exc:
            logger.warning("Action %s failed: %s: %s", action_name, type(exc).__name__, exc)
            return ActionResult(False, f"{type(exc).__name__}: {exc}")

    def execute_proposal(
        self,
        proposal: ActionProposal,
        *,
        operator: str,
        prompt: str = "",
    ) -> dict[str, Any]:
        """Execute an approved proposal and append its audit entry."""

        result = self.execute(proposal.action_name, proposal.parameters)
        entry = create_audit_entry(
            operator=operator,
            prompt=prompt,
            intent=proposal.action_name,
            action_name=proposal.action_name,
            parameters=proposal.parameters,
            result=result.to_dict(),
        )
        if self.audit_log is not None and not self.audit_log.append(entry):
            logger.warning("Audit entry for %s was not persisted", proposal.action_name)
        return {**result.to_dict(), "audit": entry}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        now = self._clock()
        return now if now.tzinfo else now.replace(tzinfo=UTC)

    def _rooms_hint(self) -> str:
        return ", ".join(self.catalog.room_types())

    def _rollback(self, changed: list[tuple[str, float]]) -> None:
        for room_type, previous in reversed(changed):
            if not self.mutator.set_price(room_type, previous):
                logger.warning("Rollback failed for %s (previous price %s)", room_type, previous)

    def _set_price(self, changed: list[tuple[str, float]], room_type: str, new_price: float) -> None:
        room = self.catalog.get(room_type)
        if room is None:
            return
        previous = room.base_price
        if not self.mutator.set_price(room.room_type, new_price):
            raise ActionStoreError(f"Could not write price for {room.room_type}")
        changed.append((room.room_type, previous))

    def _persist(
        self,
        mutate: Callable[[ActionDocument, list[tuple[str, float]]], ActionResult],
    ) -> ActionResult:
        """Run price changes and record writes inside one store transaction; roll back on failure."""

        changed: list[tuple[str, float]] = []
        try:
            with self.store.transaction() as document:
                result = mutate(document, changed)
        except ActionStoreError as e:
            logger.warning("Action store write failed: %s", e)
            self._rollback(changed)
            return ActionResult(False, f"Could not save the action, no changes were kept: {e}")
        except Exception as e:
            logger.warning("Action failed mid-write: %s: %s", type(e).__name__, e)
            self._rollback(changed)
            return ActionResult(False, f"{type(e).__name__}: {e}")
        return result

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def apply_price_override(self, room_id: Any, date: Any, new_price: Any) -> ActionResult:
        price = _to_number(new_price)
        if not room_id or not date or price is None:
            return ActionResult(False, "Missing required parameters")
        if price < MIN_PRICE:
            return ActionResult(False, f"Price cannot be below ${MIN_PRICE} minimum floor")
        if _parse_datetime(date, self.tz) is None:
            return ActionResult(False, "Invalid date format")
        room = self.catalog.get(str(room_id))
        if room is None:
            return ActionResult(False, f'Room "{room_id}" not found. Available: {self._rooms_hint()}')

        room_type = room.room_type
        original_price = room.base_price
        record = OverrideRecord(
            room_id=normalize_room_name(str(room_id)),
            mapped_room_type=room_type,
            date=str(date),
            new_price=price,
            original_price=original_price,
        )

        def mutate(document: ActionDocument, changed: list[tuple[str, float]]) -> ActionResult:
            self._set_price(changed, room_type, price)
            document["overrides"].append(record.to_dict())
            return ActionResult(
                True,
                f"Price override of ${format_price(price)} applied for {room_id} on {date}",
                {"override": record.to_dict(), "room_type": room_type},
            )

        return self._persist(mutate)

    def adjust_rate_clamp(
        self,
        room_type: Any,
        clamp_type: Any,
        new_value: Any,
        start_date: Any,
        end_date: Any,
    ) -> ActionResult:
        value = _to_number(new_value)
        if not room_type or not clamp_type or value is None or not start_date or not end_date:
            return ActionResult(False, "Missing required parameters")
        if clamp_type not in {"floor", "ceiling"}:
            return ActionResult(False, 'clamp_type must be "floor" or "ceiling"')
        if clamp_type == "floor" and value < MIN_PRICE:
            return ActionResult(False, f"Floor cannot be below ${MIN_PRICE} minimum")
        if clamp_type == "ceiling" and value < MIN_CEILING:
            return ActionResult(False, "Ceiling too low, may harm revenue")
        start = _parse_datetime(start_date, self.tz)
        end = _parse_datetime(end_date, self.tz)
        if start is None or end is None:
            return ActionResult(False, "Invalid date format")
        if end < start:
            return ActionResult(False, "End date must be after start date")

        record = ClampRecord(
            room_type=self.catalog.aliases.to_room_type(str(room_type)),
            clamp_type=clamp_type,
            new_value=value,
            start_date=str(start_date),
            end_date=str(end_date),
        )

        def mutate(document: ActionDocument, changed: list[tuple[str, float]]) -> ActionResult:
            document["clamps"].append(record.to_dict())
            label = "Minimum" if clamp_type == "floor" else "Maximum"
            return ActionResult(
                True,
                f"{label} price of ${format_price(value)} set for {room_type} from {start_date} to {end_date}",
                record.to_dict(),
            )

        return self._persist(mutate)

    def update_competitor_weight(self, competitor_name: Any, new_weight: Any) -> ActionResult:
        weight = _to_number(new_weight)
        if not competitor_name or weight is None:
            return ActionResult(False, "Missing required parameters")
        if weight < 0 or weight > 1:
            return ActionResult(False, "Weight must be between 0.0 and 1.0")
        full_name = self.competitors.find(str(competitor_name))
        if full_name is None:
            return ActionResult(False, self.competitors.not_found_message(str(competitor_name)))

        def mutate(document: ActionDocument, changed: list[tuple[str, float]]) -> ActionResult:
            previous = [w for w in document["weights"] if w.get("competitor_name") == full_name]
            old_weight = previous[-1].get("new_weight") if previous else DEFAULT_COMPETITOR_WEIGHT
            record = WeightRecord(competitor_name=full_name, old_weight=old_weight, new_weight=weight)
            document["weights"] = [
                w for w in document["weights"] if w.get("competitor_name") != full_name
            ]
            document["weights"].append(record.to_dict())
            return ActionResult(
                True,
                f"Competitor weight for {full_name} updated to {weight * 100:.0f}%",
                record.to_dict(),
            )

        return self._persist(mutate)

    def update_competitor_differential(self, competitor_name: Any, new_differential: Any) -> ActionResult:
        differential = _to_number(new_differential)
        if not competitor_name or differential is None:
            return ActionResult(False, "Missing required parameters")
        if abs(differential) > MAX_DIFFERENTIAL:
            return ActionResult(
                False, f"Differential seems unreasonably large (max +/-${MAX_DIFFERENTIAL})"
            )
        full_name = self.competitors.find(str(competitor_name))
        if full_name is None:
            return ActionResult(False, self.competitors.not_found_message(str(competitor_name)))

        strategy = "undercut" if differential < 0 else "premium positioning"
        record = DifferentialRecord(
            competitor_name=full_name,
            new_differential=differential,
            strategy=strategy,
        )
        try:
            self.store.replace_where(
                "differentials",
                lambda item: item.get("competitor_name") == full_name,
                record,
            )
        except ActionStoreError as e:
            logger.warning("Action store write failed: %s", e)
            return ActionResult(False, f"Could not save the action, no changes were kept: {e}")
        direction = "below" if differential < 0 else "above"
        return ActionResult(
            True,
            f"Pricing set to ${format_price(abs(differential))} {direction} {full_name}",
            record.to_dict(),
        )

    def _apply_percentage(
        self,
        room_types: Any,
        percentage: float,
        scope: str,
    ) -> tuple[ActionResult | None, list[dict[str, Any]]]:
        """Shared body of the percentage handlers; returns (failure, updates)."""

        if not isinstance(room_types, list) or not room_types:
            return ActionResult(False, "No room types provided"), []
        targets = []
        for name in room_types:
            room = self.catalog.get(str(name))
            if room is not None and room.room_type not in {t.room_type for t in targets}:
                targets.append(room)
        if not targets:
            return (
                ActionResult(False, f"No matching room types found to update. Available: {self._rooms_hint()}"),
                [],
            )

        updates = [
            {
                "room_type": room.room_type,
                "scope": scope,
                "old_price": room.base_price,
                "new_price": round_half_up(room.base_price * (1 + percentage / 100)),
                "percentage": percentage,
            }
            for room in targets
        ]
        record = AdjustmentRecord(
            room_types=[u["room_type"] for u in updates],
            percentage=percentage,
            scope=scope,
        )

        def mutate(document: ActionDocument, changed: list[tuple[str, float]]) -> ActionResult:
            for update in updates:
                self._set_price(changed, update["room_type"], update["new_price"])
            document["adjustments"].append(record.to_dict())
            return ActionResult(True, "", {"updates": updates})

        result = self._persist(mutate)
        return (None, updates) if result.success else (result, [])

    def apply_price_increase(self, room_types: Any, percentage: Any, scope: str = "all days") -> ActionResult:
        pct = _to_number(percentage)
        if pct is None or pct == 0 or pct <= -50 or pct >= 50:
            return ActionResult(False, "Percentage must be between -50 and 50 (not 0)")
        failure, updates = self._apply_percentage(room_types, pct, scope)
        if failure is not None:
            return failure

        is_decrease = pct < 0
        action = "decrease" if is_decrease else "increase"
        lines = "\n".join(
            f"{u['room_type']}: ${format_price(u['old_price'])} -> ${format_price(u['new_price'])}"
            for u in updates
        )
        impact = (
            "Boost occupancy by lowering prices"
            if is_decrease
            else "Maintain current occupancy levels while increasing revenue"
        )
        message = (
            f"Price {action} applied successfully.\n\n"
            f"Changed rates by {'-' if is_decrease else '+'}{format_price(abs(pct))}% for "
            f"{' and '.join(u['room_type'] for u in updates)}.\n"
            f"{lines}\n\nScope: {scope}\n"
            f"Expected impact: {impact} by approximately {format_price(abs(pct))}%."
        )
        return ActionResult(True, message, {"updates": updates})

    def apply_weekend_rate_increase(self, room_types: Any, percentage: Any, scope: str = "weekend") -> ActionResult:
        pct = _to_number(percentage)
        if pct is None or pct <= 0 or pct > 50:
            return ActionResult(False, "Percentage must be between 1 and 50")
        failure, updates = self._apply_percentage(room_types, pct, scope)
        if failure is not None:
            return failure
        names = " & ".join(u["room_type"] for u in updates)
        return ActionResult(
            True,
            f"Raised {scope} rates by {format_price(pct)}% for {names}",
            {"updates": updates},
        )

    def apply_temporary_pricing(
        self,
        room_pricing: Any,
        start_date: Any,
        end_date: Any,
        reason: str = "Temporary offer",
    ) -> ActionResult:
        if not isinstance(room_pricing, list) or not room_pricing:
            return ActionResult(False, "No room pricing provided")
        if not start_date or not end_date:
            return ActionResult(False, "Missing start or end date")
        start = _parse_datetime(start_date, self.tz)
        end = _parse_datetime(end_date, self.tz)
        if start is None or end is None:
            return ActionResult(False, "Invalid date format")
        if end < start:
            return ActionResult(False, "End date must be after or equal to start date")

        entries: list[dict[str, Any]] = []
        for item in room_pricing:
            if not isinstance(item, dict):
                return ActionResult(False, "Each room pricing entry must be an object")
            label = item.get("room_type")
            price = _to_number(item.get("new_price"))
            if not label or price is None:
                return ActionResult(False, "Each room pricing entry needs room_type and new_price")
            if price < MIN_PRICE:
                return ActionResult(False, f"Price for {label} cannot be below ${MIN_PRICE} minimum floor")
            room = self.catalog.get(str(label))
            if room is None:
                return ActionResult(False, f'Room "{label}" not found. Available: {self._rooms_hint()}')
            if any(e["room"].room_type == room.room_type for e in entries):
                return ActionResult(False, f"{room.room_type} appears more than once in room_pricing")
            current = _to_number(item.get("current_price"))
            entries.append(
                {
                    "label": str(label),
                    "room": room,
                    "new_price": round_half_up(price),
                    "current_price": room.base_price if current is None else current,
                }
            )

        reason = str(reason or "Temporary offer")
        is_time_based = bool(TIME_COMPONENT_PATTERN.search(str(end_date))) or "hour" in reason.lower()
        if is_time_based:
            revert_at = end
        else:
            next_day = end.astimezone(self.tz).date() + timedelta(days=1)
            revert_at = datetime(next_day.year, next_day.month, next_day.day, tzinfo=self.tz)

        first_day = start.astimezone(self.tz).date()
        last_day = end.astimezone(self.tz).date()
        days = [first_day + timedelta(days=n) for n in range((last_day - first_day).days + 1)]
        now = self._now()

        def mutate(document: ActionDocument, changed: list[tuple[str, float]]) -> ActionResult:
            existing = {offer.get("temp_offer_id") for offer in document["temporary_offers"]}
            temp_offer_id = f"temp_{int(now.timestamp() * 1000)}"
            suffix = 1
            while temp_offer_id in existing:
                temp_offer_id = f"temp_{int(now.timestamp() * 1000)}_{suffix}"
                suffix += 1

            original_prices: list[dict[str, Any]] = []
            applied = 0
            for entry in entries:
                room = entry["room"]
                room_id = normalize_room_name(entry["label"])
                original_prices.append(
                    OriginalPrice(
                        room_id=room_id,
                        room_type=entry["label"],
                        mapped_room_type=room.room_type,
                        original_price=room.base_price,
                    ).to_dict()
                )
                for day in days:
                    document["overrides"].append(
                        OverrideRecord(
                            room_id=room_id,
                            mapped_room_type=room.room_type,
                            date=day.isoformat(),
                            new_price=entry["new_price"],
                            is_temporary=True,
                            temp_offer_id=temp_offer_id,
                            reason=reason,
                        ).to_dict()
                    )
                    applied += 1
                self._set_price(changed, room.room_type, entry["new_price"])

            pricing = [
                {
                    "room_type": e["label"],
                    "current_price": e["current_price"],
                    "new_price": e["new_price"],
                }
                for e in entries
            ]
            revert_date = revert_at.isoformat()
            document["temporary_offers"].append(
                TemporaryOfferRecord(
                    temp_offer_id=temp_offer_id,
                    reason=reason,
                    start_date=str(start_date),
                    end_date=str(end_date),
                    room_pricing=pricing,
                    original_prices=original_prices,
                    applied_at=now.isoformat(),
                ).to_dict()
            )
            document["scheduled_reverts"].append(
                ScheduledRevertRecord(
                    temp_offer_id=temp_offer_id,
                    revert_date=revert_date,
                    original_prices=original_prices,
                    is_time_based=is_time_based,
                ).to_dict()
            )
            message = self._temporary_pricing_message(entries, original_prices, start, end, reason, is_time_based)
            return ActionResult(
                True,
                message,
                {
                    "temp_offer_id": temp_offer_id,
                    "applied_overrides": applied,
                    "revert_date": revert_date,
                    "is_time_based": is_time_based,
                    "room_pricing": pricing,
                },
            )

        result = self._persist(mutate)
        if result.success:
            logger.info(
                "Temporary pricing applied: offer=%s rooms=%s revert_at=%s",
                result.data["temp_offer_id"],
                len(entries),
                result.data["revert_date"],
            )
        return result

    @staticmethod
    def _temporary_pricing_message(
        entries: list[dict[str, Any]],
        original_prices: list[dict[str, Any]],
        start: datetime,
        end: datetime,
        reason: str,
        is_time_based: bool,
    ) -> str:
        if is_time_based:
            match = HOURS_PATTERN.search(reason.lower())
            if match:
                hours = int(match.group(1))
            else:
                hours = max(1, math.ceil((end - start).total_seconds() / 3600))
            duration = f"for the next {hours} {'hour' if hours == 1 else 'hours'}"
        else:
            days = (end.date() - start.date()).days + 1
            duration = f"for {days} {'day' if days == 1 else 'days'}"

        if len(entries) == 1:
            entry = entries[0]
            old_price = original_prices[0]["original_price"]
            text = (
                f"Done. {entry['label']} is now ${format_price(entry['new_price'])} {duration}. "
                f"The system will automatically revert it to ${format_price(old_price)} after that."
            )
        else:
            details = ", ".join(
                f"{e['label']}: ${format_price(o['original_price'])} -> ${format_price(e['new_price'])}"
                for e, o in zip(entries, original_prices)
            )
            names = ", ".join(e["label"] for e in entries)
            text = (
                f"Done. Applied {duration} pricing to {len(entries)} rooms: {details}. "
                f"The system will automatically revert {names} after that."
            )
        return f"{text} You can see the updated prices on the dashboard right now."

    def apply_multiple_promotions(self, promotions: Any) -> ActionResult:
        if not isinstance(promotions, list) or not promotions:
            return ActionResult(False, "No promotions provided")

        planned: list[dict[str, Any]] = []
        errors: list[dict[str, str]] = []
        for promo in promotions:
            if not isinstance(promo, dict):
                errors.append({"room_type": "Unknown", "error": "Invalid promotion entry"})
                continue
            label = promo.get("room_type")
            price = _to_number(promo.get("new_price"))
            if not label or price is None:
                errors.append({"room_type": str(label or "Unknown"), "error": "Missing required fields"})
                continue
            if price < MIN_PRICE:
                errors.append({"room_type": str(label), "error": f"Price below ${MIN_PRICE} minimum floor"})
                continue
            room = self.catalog.get(str(label))
            if room is None:
                errors.append({"room_type": str(label), "error": "Room type not found"})
                continue
            old_price = room.base_price
            new_price = round_half_up(price)
            pct = _to_number(promo.get("percentage"))
            if pct is None:
                pct = round((new_price - old_price) / old_price * 100, 1) if old_price else 0.0
            monthly = room.total_rooms * PROMOTION_OCCUPANCY_ESTIMATE * PROJECTION_DAYS
            planned.append(
                {
                    "room_type": room.room_type,
                    "old_price": old_price,
                    "new_price": new_price,
                    "percentage": pct,
                    "promotion_type": promo.get("promotion_type"),
                    "revenue_impact": round_half_up((new_price - old_price) * monthly),
                    "status": "applied",
                }
            )

        if not planned:
            return ActionResult(False, "Failed to apply any promotions", {"errors": errors})

        def mutate(document: ActionDocument, changed: list[tuple[str, float]]) -> ActionResult:
            for item in planned:
                self._set_price(changed, item["room_type"], item["new_price"])
                document["adjustments"].append(
                    AdjustmentRecord(
                        room_types=[item["room_type"]],
                        percentage=item["percentage"],
                        scope="all",
                        promotion_type=item["promotion_type"],
                        old_price=item["old_price"],
                        new_price=item["new_price"],
                    ).to_dict()
                )
            total = sum(item["revenue_impact"] for item in planned)
            lines = [f"Applied {len(planned)} promotional strategies:", ""]
            for idx, item in enumerate(planned, start=1):
                sign = "+" if item["percentage"] >= 0 else ""
                impact_sign = "+" if item["revenue_impact"] >= 0 else "-"
                lines.append(
                    f"{idx}. {item['room_type']}: ${format_price(item['old_price'])} -> "
                    f"${format_price(item['new_price'])} ({sign}{format_price(item['percentage'])}%)"
                )
                if item["promotion_type"]:
                    lines.append(f"   Type: {str(item['promotion_type']).replace('_', ' ')}")
                lines.append(f"   30-Day Revenue Impact: {impact_sign}${abs(item['revenue_impact'])}")
            lines.append("")
            lines.append(f"Total 30-Day Revenue Change: {'+' if total >= 0 else '-'}${abs(total)}")
            if errors:
                lines.append(f"Note: {len(errors)} promotion(s) could not be applied.")
            return ActionResult(
                True,
                "\n".join(lines),
                {
                    "applied": planned,
                    "errors": errors,
                    "total_revenue_impact": total,
                    "applied_count": len(planned),
                    "error_count": len(errors),
                },
            )

        return self._persist(mutate)

    # ------------------------------------------------------------------
    # Reversal
    # ------------------------------------------------------------------

    def _last_operator_action(self, document: ActionDocument) -> tuple[str, int] | None:
        """(collection, index) of the newest undoable record; scheduler reverts are skipped."""

        best: tuple[str, int] | None = None
        best_ts: datetime | None = None
        for collection in ("overrides", "temporary_offers", "adjustments"):
            for index, item in enumerate(document[collection]):
                if collection == "overrides" and item.get("is_revert"):
                    continue
                ts = _parse_timestamp(item.get("timestamp"))
                if best_ts is None or ts >= best_ts:
                    best, best_ts = (collection, index), ts
        return best

    def undo_last_action(self) -> ActionResult:
        def mutate(document: ActionDocument, changed: list[tuple[str, float]]) -> ActionResult:
            found = self._last_operator_action(document)
            if found is None:
                return ActionResult(False, "No actions to undo")
            collection, index = found
            action = document[collection][index]
            temp_offer_id = action.get("temp_offer_id")

            if temp_offer_id:
                # Overrides that belong to an offer are undone together with it.
                offers = [o for o in document["temporary_offers"] if o.get("temp_offer_id") == temp_offer_id]
                if collection == "overrides" and offers:
                    action = offers[-1]
                collection = "temporary_offers"
                document["temporary_offers"] = [
                    o for o in document["temporary_offers"] if o.get("temp_offer_id") != temp_offer_id
                ]
                document["overrides"] = [
                    o
                    for o in document["overrides"]
                    if o.get("temp_offer_id") != temp_offer_id or o.get("is_revert")
                ]
                document["scheduled_reverts"] = [
                    r for r in document["scheduled_reverts"] if r.get("temp_offer_id") != temp_offer_id
                ]
                for original in action.get("original_prices") or []:
                    price = _to_number(original.get("original_price"))
                    room_type = original.get("mapped_room_type") or original.get("room_type")
                    if price is not None and room_type:
                        self._set_price(changed, room_type, price)
            elif collection == "overrides":
                del document["overrides"][index]
                price = _to_number(action.get("original_price"))
                room_type = action.get("mapped_room_type") or action.get("room_id")
                if price is not None and room_type:
                    self._set_price(changed, room_type, price)
            else:
                del document["adjustments"][index]
                room_types = action.get("room_types") or []
                old_price = _to_number(action.get("old_price"))
                pct = _to_number(action.get("percentage"))
                if old_price is not None and len(room_types) == 1:
                    self._set_price(changed, room_types[0], old_price)
                elif pct is not None and pct != -100:
                    multiplier = 1 / (1 + pct / 100)
                    for room_type in room_types:
                        room = self.catalog.get(room_type)
                        if room is not None:
                            self._set_price(changed, room.room_type, round_half_up(room.base_price * multiplier))

            room_name = (
                action.get("mapped_room_type")
                or action.get("room_id")
                or ", ".join(
                    [p.get("room_type", "") for p in action.get("room_pricing") or []]
                    or action.get("room_types")
                    or []
                )
                or "Room"
            )
            label = UNDO_LABELS[collection]
            return ActionResult(
                True,
                f"Undo successful! Removed the last {label} action for {room_name}. The price has been reverted.",
                {"undone_action": action, "action_type": collection},
            )

        return self._persist(mutate)

    def _is_due(self, revert: dict[str, Any], now: datetime) -> bool:
        revert_at = _parse_datetime(revert.get("revert_date"), self.tz)
        if revert_at is None:
            logger.warning("Scheduled revert %s has invalid revert_date", revert.get("temp_offer_id"))
            return False
        if revert.get("is_time_based"):
            return revert_at <= now
        return revert_at.astimezone(self.tz).date() <= now.astimezone(self.tz).date()

    def process_scheduled_reverts(self, now: datetime | None = None) -> ActionResult:
        """Restore prices for every due revert exactly once; completed reverts are ignored."""

        current = now or self._now()
        if current.tzinfo is None:
            current = current.replace(tzinfo=UTC)

        def mutate(document: ActionDocument, changed: list[tuple[str, float]]) -> ActionResult:
            due = [
                r
                for r in document["scheduled_reverts"]
                if r.get("status") == "scheduled" and self._is_due(r, current)
            ]
            completed: list[str] = []
            skipped: list[str] = []
            today = current.astimezone(self.tz).date().isoformat()
            offer_ids = {o.get("temp_offer_id") for o in document["temporary_offers"]}
            for revert in due:
                temp_offer_id = revert.get("temp_offer_id")
                if temp_offer_id in offer_ids:
                    document["overrides"] = [
                        o
                        for o in document["overrides"]
                        if o.get("temp_offer_id") != temp_offer_id or o.get("is_revert")
                    ]
                    for original in revert.get("original_prices") or []:
                        price = _to_number(original.get("original_price"))
                        room_type = original.get("mapped_room_type") or original.get("room_type")
                        if price is None or not room_type:
                            continue
                        document["overrides"].append(
                            OverrideRecord(
                                room_id=original.get("room_id") or normalize_room_name(room_type),
                                mapped_room_type=room_type,
                                date=today,
                                new_price=price,
                                is_revert=True,
                                reverted_from=temp_offer_id,
                            ).to_dict()
                        )
                        self._set_price(changed, room_type, price)
                    completed.append(temp_offer_id)
                else:
                    logger.warning("Scheduled revert %s has no temporary offer, completing as no-op", temp_offer_id)
                    skipped.append(temp_offer_id)
                revert["status"] = "completed"
                revert["completed_at"] = utc_now_iso()

            if not due:
                return ActionResult(True, "No reverts to process", {"processed": 0, "completed": [], "skipped": []})
            logger.info("Processed %s scheduled reverts (skipped=%s)", len(due), len(skipped))
            return ActionResult(
                True,
                f"Processed {len(due)} scheduled reverts",
                {"processed": len(due), "completed": completed, "skipped": skipped},
            )

        return self._persist(mutate)
