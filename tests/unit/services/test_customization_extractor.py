from __future__ import annotations

from orderflow.services.customization_extractor import (
    extract_customization,
    extract_from_line_items,
    format_customization_summary,
    normalize_key,
    parse_name_count,
    parse_names,
)


def _meta(**pairs):
    return [{"key": key, "value": value} for key, value in pairs.items()]


def test_normalize_key_strips_case_space_hyphen_underscore():
    assert normalize_key(" Board_Style - Choice ") == "boardstylechoice"


def test_no_matching_alias_returns_none_not_empty_record():
    meta = [{"key": "_reduced_stock", "value": "1"}, {"key": "Gift Wrap", "value": "Yes"}]
    assert extract_customization(meta) is None
    assert extract_customization([]) is None
    assert extract_customization(None) is None


def test_single_field_record_carries_only_that_field_and_raw_meta():
    meta = [{"key": "Font", "value": "Ballerina"}]
    record = extract_customization(meta)

    assert record is not None
    assert record.attributes() == {"font": "Ballerina"}
    assert record.raw_meta == ({"key": "Font", "value": "Ballerina"},)


def test_full_board_metadata():
    meta = [
        {"key": "Board Style", "value": "Large Board"},
        {"key": "Font Style", "value": "Script"},
        {"key": "Back Base Colour of Board", "value": "Pink"},
        {"key": "Colours for Each Name", "value": "Gold, Silver"},
        {"key": "Names max (4)", "value": "2 Names"},
        {"key": "Names max (4) price applies as above", "value": "Eve, Grace ,"},
        {"key": "Theme", "value": "Unicorns"},
        {"key": "Size", "value": "60cm"},
    ]
    record = extract_customization(meta)

    assert record.style == "Large Board"
    assert record.font == "Script"
    assert record.color == "Pink"
    assert record.name_colors == "Gold, Silver"
    assert record.name_count == 2
    assert record.names == ("Eve", "Grace")
    assert record.theme == "Unicorns"
    assert record.size == "60cm"
    assert len(record.raw_meta) == len(meta)


def test_name_count_parsing():
    assert parse_name_count("3 Names") == 3
    assert parse_name_count("1 Name") == 1
    assert parse_name_count("Names") is None
    assert parse_name_count(4) is None


def test_unparseable_name_count_leaves_other_fields_intact():
    record = extract_customization(_meta(**{"Number of Names": "Names", "Font": "Ballerina"}))

    assert record.name_count is None
    assert record.font == "Ballerina"


def test_names_split_on_commas_dropping_empties():
    assert parse_names(" Eve , ,Grace,") == ("Eve", "Grace")
    assert parse_names(" , ") is None


def test_exact_match_anywhere_beats_earlier_substring_match():
    meta = [
        {"key": "Preferred Colour Shade", "value": "Blue"},
        {"key": "Colour", "value": "Pink"},
    ]
    assert extract_customization(meta).color == "Pink"


def test_substring_fallback_when_no_exact_match():
    record = extract_customization([{"key": "pa_board-colour", "value": "Mint"}])
    assert record.color == "Mint"


def test_exact_key_of_one_field_is_not_reused_by_another_fields_substring_pass():
    record = extract_customization([{"key": "Style", "value": "Round"}])

    assert record.style == "Round"
    assert record.font is None


def test_blank_values_and_keys_are_ignored():
    meta = [
        {"key": "Board Style", "value": "   "},
        {"key": "", "value": "Orphan"},
        {"key": "Style", "value": "Heart"},
    ]
    record = extract_customization(meta)
    assert record.style == "Heart"


def test_non_string_values_are_rendered_as_text():
    record = extract_customization([{"key": "Height", "value": 40}])
    assert record.size == "40"


def test_falsy_values_are_treated_as_absent():
    assert extract_customization([{"key": "Height", "value": 0}, {"key": "Font", "value": False}]) is None


def test_extraction_is_deterministic():
    meta = _meta(**{"Board Style": "Large", "Font": "Ballerina", "Names": "Eve, Grace"})
    assert extract_customization(meta) == extract_customization(meta)


def test_extract_from_first_line_item_with_metadata():
    line_items = [
        {"name": "Gift card", "meta_data": []},
        {"name": "Name board", "meta_data": [{"key": "Font", "value": "Ballerina"}]},
        {"name": "Second board", "meta_data": [{"key": "Font", "value": "Script"}]},
    ]
    assert extract_from_line_items(line_items).font == "Ballerina"
    assert extract_from_line_items([{"name": "Plain"}]) is None


def test_summary_formatting():
    record = extract_customization(
        _meta(**{"Board Style": "Large", "Font": "Ballerina", "Board Colour": "Pink", "Names max (4)": "1 Name"})
    )
    assert format_customization_summary(record) == "Large • Ballerina • Pink • 1 Name"
    assert format_customization_summary(None) is None
