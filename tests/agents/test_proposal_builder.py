from __future__ import annotations

import pytest

from pricing_copilot.agents.proposal_builder import ProposalBuilder, build_undo_proposal
from pricing_copilot.schemas import ClassifiedIntent
from pricing_copilot.services.room_catalog import RoomCatalog


def _builder(tmp_path) -> ProposalBuilder:
    return ProposalBuilder(catalog=RoomCatalog(path=tmp_path / "rooms.json"))


def test_build_rejects_unknown_action(tmp_path) -> None:
    with pytest.raises(ValueError, match="Unsupported action"):
        _builder(tmp_path).build(ClassifiedIntent(action_name="book_spa"))


def test_build_fills_current_price_and_default_description(tmp_path) -> None:
    proposal = _builder(tmp_path).build(
        ClassifiedIntent(
            action_name="apply_temporary_pricing",
            parameters={
                "room_pricing": [{"room_type": "Executive Suite", "new_price": 190}],
                "start_date": "2026-03-10T10:00:00+00:00",
                "end_date": "2026-03-10T14:00:00+00:00",
                "reason": "4 hour flash sale",
            },
            confidence=0.92,
            reasoning="Matched flash sale phrasing",
        )
    )

    assert proposal.requires_approval is True
    assert proposal.confidence == 0.92
    assert proposal.parameters["room_pricing"][0]["current_price"] == 215.0
    assert proposal.description == "Apply 4 hour flash sale: Executive Suite $215 -> $190"


def test_build_keeps_classifier_description_and_defaults_scope(tmp_path) -> None:
    proposal = _builder(tmp_path).build(
        ClassifiedIntent(
            action_name="apply_price_increase",
            parameters={"room_types": ["Santiago"], "percentage": 6},
            description="Raise Santiago by 6%",
        )
    )

    assert proposal.description == "Raise Santiago by 6%"
    assert proposal.parameters["scope"] == "all days"


def test_describe_competitor_differential() -> None:
    text = ProposalBuilder.describe(
        "update_competitor_differential",
        {"competitor_name": "Hampton Inn", "new_differential": -12},
    )

    assert text == "Position pricing $12 below Hampton Inn"


def test_undo_proposal_shape(tmp_path) -> None:
    proposal = _builder(tmp_path).build(ClassifiedIntent(action_name="undo_last_action", confidence=0.8))

    assert proposal.action_name == "undo_last_action"
    assert proposal.parameters == {}
    assert proposal.description == build_undo_proposal().description
    assert proposal.confidence == 0.8
