from __future__ import annotations

import json

from pricing_copilot.services.audit_log import AuditLog, create_audit_entry


def test_audit_log_keeps_only_most_recent_entries(tmp_path) -> None:
    path = tmp_path / "audit.json"
    log = AuditLog(path=path, max_entries=3)

    for n in range(1, 6):
        assert log.append({"n": n}) is True

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert [entry["n"] for entry in stored] == [3, 4, 5]
    assert [entry["n"] for entry in log.recent(2)] == [5, 4]


def test_audit_log_recent_is_empty_for_unreadable_file(tmp_path) -> None:
    path = tmp_path / "audit.json"
    path.write_text("oops", encoding="utf-8")

    assert AuditLog(path=path).recent() == []


def test_create_audit_entry_records_approval_and_outcome() -> None:
    entry = create_audit_entry(
        operator="ops-1",
        prompt="yes",
        intent="apply_temporary_pricing",
        action_name="apply_temporary_pricing",
        parameters={"reason": "4 hour flash sale"},
        result={"success": True, "message": "Done.", "data": {"temp_offer_id": "temp_1"}},
    )

    assert entry["operator"] == "ops-1"
    assert entry["operator_name"] == "ops-1"
    assert entry["is_temporary"] is True
    assert entry["approvals"][0]["approved"] is True
    assert entry["applied"][0]["success"] is True
    assert entry["applied"][0]["data"] == {"temp_offer_id": "temp_1"}
