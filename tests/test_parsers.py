import pytest

from mongoshell.errors import ShellSyntaxError, UnsupportedCommandError
from mongoshell.parsers import (
    CursorMethod,
    extract_balanced,
    parse_command,
    split_statements,
    split_top_level,
)


def test_extract_balanced_nested():
    text = "foo(bar(1,2),3)"
    found = extract_balanced(text, 3)
    assert found.content == "bar(1,2),3"
    assert found.end_index == len(text)


def test_extract_balanced_requires_open_paren():
    assert extract_balanced("foo(1)", 0) is None
    assert extract_balanced("foo(1)", 42) is None


def test_extract_balanced_unbalanced():
    assert extract_balanced("insertOne({a: 1}", 9) is None


def test_extract_balanced_ignores_parens_in_strings_and_regex():
    text = 'find({note: "a ) b", re: /x\\)(y/i}).limit(1)'
    found = extract_balanced(text, 4)
    assert found.content == '{note: "a ) b", re: /x\\)(y/i}'
    assert text[found.end_index:] == ".limit(1)"


def test_split_top_level_ignores_nested_commas():
    parts = split_top_level("{a:1}, {$set:{b:{c:2}}}")
    assert parts == ["{a:1}", "{$set:{b:{c:2}}}"]


def test_split_top_level_ignores_commas_in_strings():
    assert split_top_level("{a: 'x, y'}, {b: \"}, {\"}") == ["{a: 'x, y'}", "{b: \"}, {\"}"]


def test_split_statements_respects_literals():
    src = 'db.notes.insertOne({text: "one; two"}); db.notes.find({});'
    assert split_statements(src) == ['db.notes.insertOne({text: "one; two"})', "db.notes.find({})"]


def test_split_statements_single():
    assert split_statements("  db.items.find()  ") == ["db.items.find()"]


def test_parse_collection_command_with_chain():
    command = parse_command("db.items.find({qty: {$gt: 3}}).sort({name: 1}).limit(5)")
    assert command.operation == "find"
    assert command.collection == "items"
    assert command.arguments == "{qty: {$gt: 3}}"
    assert command.chain == [CursorMethod("sort", "{name: 1}"), CursorMethod("limit", "5")]


@pytest.mark.parametrize("line", [
    'db.getCollection("items").find({})',
    "db['items'].find({})",
    "db . items . find({})",
])
def test_parse_collection_addressing(line):
    command = parse_command(line)
    assert (command.operation, command.collection) == ("find", "items")


def test_parse_bare_operation_has_no_collection():
    command = parse_command("insertOne({x: 1})")
    assert command.operation == "insertOne"
    assert command.collection is None


def test_parse_database_level():
    assert parse_command("db.stats()").operation == "stats"
    assert parse_command("db.stats()").collection is None
    assert parse_command("show collections").operation == "getCollectionNames"


def test_parse_unbalanced():
    with pytest.raises(ShellSyntaxError, match="unbalanced"):
        parse_command("db.items.insertOne({a: 1}")


def test_parse_trailing_input():
    with pytest.raises(ShellSyntaxError, match="unexpected input"):
        parse_command("db.items.find({}) + 1")


def test_parse_unrecognized():
    with pytest.raises(UnsupportedCommandError):
        parse_command("db.items")


def test_comments_are_skipped_when_scanning():
    text = "find({name: 'bob', // it's bob\n qty: 15 /* ) */})"
    found = extract_balanced(text, 4)
    assert found.end_index == len(text)
    assert split_top_level("{a: 1} /* , */, {b: 2} // x, y") == ["{a: 1} /* , */", "{b: 2} // x, y"]


def test_parse_trailing_comment():
    command = parse_command("db.items.find({}).limit(2) // first two")
    assert command.chain == [CursorMethod("limit", "2")]
