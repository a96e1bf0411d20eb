"""Temporary pricing and the revert reconciliation pass, including the flash-sale round trip."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

from pricing_copilot.agents.approval_flow import ApprovalFlow
from pricing_copilot.schemas import ActionProposal
from pricing_copilot.services.action_executor import ActionExecutor
from pricing_copilot.services.action_store import JsonActionStore
from pricing_copilot.services.pending_proposals import PendingProposalCache
from pricing_copilot.services.price_mutator import PriceMutator
from pricing_copilot.services.room_catalog import RoomCatalog

T = datetime(2026, 3, 10, 10, 0, tzinfo=UTC)


def _build(tmp_path):
    catalog = RoomCatalog(path=tmp_path / "rooms.json")
    store = JsonActionStore(path=tmp_path / "actions.json")
    executor = ActionExecutor(
        store=store,
        catalog=catalog,
        mutator=PriceMutator(catalog=catalog),
        local_timezone="UTC",
        clock=lambda: T,
    )
    return executor, catalog, store


def _flash_sale_proposal() -> ActionProposal:
    return ActionProposal(
        action_name="apply_temporary_pricing",
        parameters={
            "room_pricing": [{"room_type": "Santiago", "current_price": 215, "new_price": 190}],
            "start_date": T.isoformat(),
            "end_date": (T + timedelta(hours=4)).isoformat(),
            "reason": "4 hour flash sale",
        },
        description="Apply 4 hour flash sale: Santiago $215 -> $190",
    )


def test_flash_sale_end_to_end_reverts_after_four_hours(tmp_path) -> None:
    executor, catalog, store = _build(tmp_path)
    flow = ApprovalFlow(cache=PendingProposalCache(), clock=lambda: T)

    flow.hold("session-1", _flash_sale_proposal())
    outcome = flow.process("session-1", "yes")
    assert outcome.type == "APPROVAL"
    assert outcome.action_proposal.requires_approval is False

    response = executor.execute_proposal(outcome.action_proposal, operator="ops-1", prompt="yes")

    assert response["success"] is True
    assert response["message"].startswith(
        "Done. Santiago is now $190 for the next 4 hours. "
        "The system will automatically revert it to $215 after that."
    )
    document = store.get()
    assert len(document["overrides"]) == 1
    assert document["overrides"][0]["new_price"] == 190
    assert document["overrides"][0]["is_temporary"] is True
    assert len(document["temporary_offers"]) == 1
    assert len(document["scheduled_reverts"]) == 1
    revert = document["scheduled_reverts"][0]
    assert revert["temp_offer_id"] == document["temporary_offers"][0]["temp_offer_id"]
    assert revert["status"] == "scheduled"
    assert revert["is_time_based"] is True
    assert revert["revert_date"] == (T + timedelta(hours=4)).isoformat()
    assert catalog.price_of("Santiago") == 190.0

    early = executor.process_scheduled_reverts(now=T + timedelta(hours=3))
    assert early.data["processed"] == 0
    assert catalog.price_of("Santiago") == 190.0

    due = executor.process_scheduled_reverts(now=T + timedelta(hours=4, minutes=1))

    assert due.data["processed"] == 1
    assert catalog.price_of("Santiago") == 215.0
    document = store.get()
    assert document["scheduled_reverts"][0]["status"] == "completed"
    assert document["scheduled_reverts"][0]["completed_at"]
    assert [o for o in document["overrides"] if o.get("is_temporary")] == []
    restored = [o for o in document["overrides"] if o.get("is_revert")]
    assert len(restored) == 1
    assert restored[0]["new_price"] == 215.0
    assert restored[0]["reverted_from"] == revert["temp_offer_id"]


def test_revert_pass_is_idempotent(tmp_path) -> None:
    executor, catalog, store = _build(tmp_path)
    executor.execute("apply_temporary_pricing", _flash_sale_proposal().parameters)
    later = T + timedelta(hours=5)

    first = executor.process_scheduled_reverts(now=later)
    catalog_after_first = catalog.price_of("Santiago")
    overrides_after_first = store.get()["overrides"]
    second = executor.process_scheduled_reverts(now=later + timedelta(hours=1))

    assert first.data["processed"] == 1
    assert second.data["processed"] == 0
    assert second.message == "No reverts to process"
    assert catalog.price_of("Santiago") == catalog_after_first == 215.0
    assert store.get()["overrides"] == overrides_after_first


def test_day_based_offer_writes_override_per_day_and_reverts_next_midnight(tmp_path) -> None:
    executor, catalog, store = _build(tmp_path)

    result = executor.apply_temporary_pricing(
        [
            {"room_type": "Deluxe Room", "new_price": 170},
            {"room_type": "Bernard", "new_price": 150},
        ],
        "2026-03-10",
        "2026-03-12",
        "Spring promo",
    )

    assert result.success is True
    assert "for 3 days" in result.message
    document = store.get()
    assert len(document["overrides"]) == 6
    assert {o["date"] for o in document["overrides"]} == {"2026-03-10", "2026-03-11", "2026-03-12"}
    revert = document["scheduled_reverts"][0]
    assert revert["is_time_based"] is False
    assert revert["revert_date"] == "2026-03-13T00:00:00+00:00"
    assert [p["original_price"] for p in revert["original_prices"]] == [195.0, 165.0]
    assert catalog.price_of("LaRua") == 170.0

    not_yet = executor.process_scheduled_reverts(now=datetime(2026, 3, 12, 23, 0, tzinfo=UTC))
    assert not_yet.data["processed"] == 0

    executor.process_scheduled_reverts(now=datetime(2026, 3, 13, 0, 5, tzinfo=UTC))

    assert catalog.price_of("LaRua") == 195.0
    assert catalog.price_of("Bernard") == 165.0


def test_temporary_pricing_is_all_or_nothing(tmp_path) -> None:
    executor, catalog, _ = _build(tmp_path)

    below_floor = executor.apply_temporary_pricing(
        [{"room_type": "Santiago", "new_price": 190}, {"room_type": "Pilar", "new_price": 40}],
        "2026-03-10",
        "2026-03-11",
    )
    unknown_room = executor.apply_temporary_pricing(
        [{"room_type": "Ballroom", "new_price": 190}],
        "2026-03-10",
        "2026-03-11",
    )
    reversed_dates = executor.apply_temporary_pricing(
        [{"room_type": "Santiago", "new_price": 190}],
        "2026-03-12",
        "2026-03-10",
    )

    assert below_floor.success is False
    assert unknown_room.success is False
    assert reversed_dates.success is False
    assert catalog.price_of("Santiago") == 215.0
    assert not (tmp_path / "actions.json").exists()


def test_undo_removes_offer_with_linked_revert_and_overrides(tmp_path) -> None:
    executor, catalog, store = _build(tmp_path)
    executor.execute("apply_temporary_pricing", _flash_sale_proposal().parameters)

    undo = executor.undo_last_action()

    assert undo.success is True
    assert undo.data["action_type"] == "temporary_offers"
    document = store.get()
    assert document["overrides"] == []
    assert document["temporary_offers"] == []
    assert document["scheduled_reverts"] == []
    assert catalog.price_of("Santiago") == 215.0


def test_undo_skips_scheduler_revert_overrides(tmp_path) -> None:
    executor, catalog, store = _build(tmp_path)
    executor.apply_price_override("Mariana", "2026-03-09", 420)
    executor.execute("apply_temporary_pricing", _flash_sale_proposal().parameters)
    executor.process_scheduled_reverts(now=T + timedelta(hours=5))

    undo = executor.undo_last_action()

    assert undo.data["action_type"] == "temporary_offers"
    assert [o for o in store.get()["overrides"] if o.get("is_revert")] != []
    assert catalog.price_of("Mariana") == 420.0


def test_revert_without_offer_is_completed_as_noop(tmp_path) -> None:
    executor, catalog, store = _build(tmp_path)
    document = store.get()
    document["scheduled_reverts"].append(
        {
            "temp_offer_id": "temp_orphan",
            "revert_date": (T - timedelta(hours=1)).isoformat(),
            "original_prices": [
                {"room_id": "pilar", "room_type": "Pilar", "mapped_room_type": "Pilar", "original_price": 100}
            ],
            "is_time_based": True,
            "status": "scheduled",
        }
    )
    store.save(document)

    result = executor.process_scheduled_reverts(now=T)

    assert result.success is True
    assert result.data["skipped"] == ["temp_orphan"]
    assert result.data["completed"] == []
    assert store.get()["scheduled_reverts"][0]["status"] == "completed"
    assert catalog.price_of("Pilar") == 240.0


def test_room_listed_twice_under_an_alias_is_rejected(tmp_path) -> None:
    executor, catalog, _ = _build(tmp_path)

    result = executor.apply_temporary_pricing(
        [{"room_type": "Santiago", "new_price": 190}, {"room_type": "Executive Suite", "new_price": 180}],
        T.isoformat(),
        (T + timedelta(hours=4)).isoformat(),
        "4 hour flash sale",
    )

    assert result.success is False
    assert "more than once" in result.message
    assert catalog.price_of("Santiago") == 215.0
    assert not (tmp_path / "actions.json").exists()


def test_space_separated_end_time_schedules_exact_revert(tmp_path) -> None:
    executor, catalog, store = _build(tmp_path)

    result = executor.apply_temporary_pricing(
        [{"room_type": "Pilar", "new_price": 210}],
        "2026-03-10 10:00",
        "2026-03-10 14:00",
        "Evening special",
    )

    assert result.success is True
    revert = store.get()["scheduled_reverts"][0]
    assert revert["is_time_based"] is True
    assert revert["revert_date"] == "2026-03-10T14:00:00+00:00"

    executor.process_scheduled_reverts(now=T + timedelta(hours=4, minutes=1))

    assert catalog.price_of("Pilar") == 240.0


def test_unexpected_error_mid_pass_rolls_back_prices(tmp_path) -> None:
    executor, catalog, store = _build(tmp_path)
    executor.execute("apply_temporary_pricing", _flash_sale_proposal().parameters)
    document = store.get()
    document["temporary_offers"].append({"temp_offer_id": "temp_broken", "room_pricing": []})
    document["scheduled_reverts"].append(
        {
            "temp_offer_id": "temp_broken",
            "revert_date": T.isoformat(),
            "original_prices": ["not-a-record"],
            "is_time_based": True,
            "status": "scheduled",
        }
    )
    store.save(document)

    result = executor.process_scheduled_reverts(now=T + timedelta(hours=5))

    assert result.success is False
    assert result.message.startswith("AttributeError")
    assert catalog.price_of("Santiago") == 190.0
    assert {r["status"] for r in store.get()["scheduled_reverts"]} == {"scheduled"}


def test_concurrent_reverts_and_overrides_lose_no_records(tmp_path) -> None:
    executor, catalog, store = _build(tmp_path)
    executor.execute("apply_temporary_pricing", _flash_sale_proposal().parameters)
    start = threading.Barrier(2)
    override_results = []

    def write_overrides() -> None:
        start.wait()
        for day in range(1, 21):
            override_results.append(executor.apply_price_override("Bernard", f"2026-04-{day:02d}", 170 + day))

    def run_reverts() -> None:
        start.wait()
        for _ in range(10):
            executor.process_scheduled_reverts(now=T + timedelta(hours=5))

    threads = [threading.Thread(target=write_overrides), threading.Thread(target=run_reverts)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    document = store.get()
    assert all(result.success for result in override_results)
    assert len([o for o in document["overrides"] if o.get("room_id") == "bernard"]) == 20
    assert len([o for o in document["overrides"] if o.get("is_revert")]) == 1
    assert [o for o in document["overrides"] if o.get("is_temporary")] == []
    assert [r["status"] for r in document["scheduled_reverts"]] == ["completed"]
    assert catalog.price_of("Santiago") == 215.0
    assert catalog.price_of("Bernard") == 190.0
