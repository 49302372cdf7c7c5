from __future__ import annotations

from vmfworld.common.diagnostics import DIAG_PARSE
from vmfworld.maps.keyvalues import as_list, first_scalar, parse_keyvalues, tokenize


def test_tokenize_strips_comments_and_keeps_quoted_braces() -> None:
    tokens = tokenize('// header\n"name" "a { b }" // trailing\nblock {\n}\n')
    assert [t.text for t in tokens] == ["name", "a { b }", "block", "{", "}"]
    assert tokens[1].quoted is True
    assert tokens[1].is_open is False
    assert tokens[3].is_open is True
    assert tokens[2].line == 3


def test_repeated_sibling_keys_become_ordered_list() -> None:
    doc = parse_keyvalues('world { "id" "1" "include" "a" "include" "b" "include" "c" }')
    world = doc.root["world"]
    assert world["id"] == "1"
    assert world["include"] == ["a", "b", "c"]
    assert len(doc.diagnostics) == 0


def test_solid_side_and_entity_are_always_lists() -> None:
    doc = parse_keyvalues('world { solid { side { "plane" "p" } } } entity { "classname" "light" }')
    solids = doc.root["world"]["solid"]
    assert isinstance(solids, list) and len(solids) == 1
    assert isinstance(solids[0]["side"], list)
    assert doc.root["entity"] == [{"classname": "light"}]


def test_unquoted_values_and_nested_blocks() -> None:
    doc = parse_keyvalues("versioninfo\n{\n\tmapversion 12\n\tprefab 0\n}\n")
    assert doc.root == {"versioninfo": {"mapversion": "12", "prefab": "0"}}


def test_unclosed_block_yields_partial_tree_and_diagnostic() -> None:
    doc = parse_keyvalues('world\n{\n"id" "1"\nsolid\n{\n"id" "2"\n')
    assert doc.root["world"]["id"] == "1"
    assert doc.root["world"]["solid"] == [{"id": "2"}]
    messages = [d.message for d in doc.diagnostics.of_kind(DIAG_PARSE)]
    assert "block 'solid' is never closed" in messages
    assert "block 'world' is never closed" in messages


def test_stray_close_and_dangling_key_are_reported() -> None:
    doc = parse_keyvalues('}\nworld { "id" }\n"orphan"')
    messages = [d.message for d in doc.diagnostics.items()]
    assert "unexpected '}' at top level" in messages
    assert "key 'id' has no value" in messages
    assert "key 'orphan' has no value" in messages
    assert doc.root["world"] == {}


def test_unterminated_quote_is_reported() -> None:
    doc = parse_keyvalues('world { "skyname" "sky_day')
    messages = [d.message for d in doc.diagnostics.items()]
    assert "unterminated quoted string" in messages
    assert doc.root["world"]["skyname"] == "sky_day"


def test_list_helpers() -> None:
    assert as_list(None) == []
    assert as_list("x") == ["x"]
    assert as_list(["a", "b"]) == ["a", "b"]
    assert first_scalar([{"k": "v"}, "s"]) == "s"
    assert first_scalar(None, "fallback") == "fallback"
