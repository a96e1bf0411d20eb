from pricing_copilot.services.room_aliases import RoomAliasTable, normalize_room_name


def test_normalize_room_name_strips_case_and_whitespace() -> None:
    assert normalize_room_name("  Executive  Suite ") == "executivesuite"
    assert normalize_room_name(None) == ""


def test_resolve_accepts_codenames_and_aliases() -> None:
    table = RoomAliasTable()

    assert table.resolve("Santiago") == "Santiago"
    assert table.resolve("Executive Suite") == "Santiago"
    assert table.resolve("penthouse") == "Mariana"
    assert table.resolve("basic room") == "Bernard"


def test_resolve_rejects_unknown_and_too_short_names() -> None:
    table = RoomAliasTable()

    assert table.resolve("Ballroom") is None
    assert table.resolve("su") is None
    assert table.resolve("") is None


def test_rooms_match_compares_through_aliases() -> None:
    table = RoomAliasTable()

    assert table.rooms_match("Presidential Suite", "Mariana")
    assert not table.rooms_match("Pilar", "Mariana")
    assert not table.rooms_match(None, "Mariana")


def test_extract_rooms_orders_by_first_appearance_and_dedupes() -> None:
    table = RoomAliasTable()

    assert table.extract_rooms("apply the presidential and bernard offers") == ["Mariana", "Bernard"]
    assert table.extract_rooms("Santiago, the executive one") == ["Santiago"]
    assert table.extract_rooms("yes") == []


def test_variations_include_display_name_and_aliases() -> None:
    table = RoomAliasTable()

    variations = table.variations("Deluxe Room")

    assert variations[0] == "LaRua"
    assert "Deluxe Room" in variations
    assert "deluxe" in variations
    assert len(variations) == len(set(variations))


def test_resolve_leaves_ambiguous_partial_names_unresolved() -> None:
    table = RoomAliasTable()

    assert table.resolve("Suite") is None
    assert table.resolve("room") is None
    assert table.resolve("the executive suite room") == "Santiago"
    assert table.resolve("Deluxe Suite") == "LaRua"
