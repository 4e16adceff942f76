import logging
from unittest.mock import MagicMock

from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from mongoshell import execute


def test_single_statement(db, items):
    outcome = execute("db.items.countDocuments({})", db, "items")
    assert outcome == {"result": 4}


def test_multi_statement_returns_last_result_and_persists(db):
    outcome = execute("insertOne({x: 1}); find({x: 1}, {_id: 0})", db, "things")
    assert outcome == {"result": [{"x": 1}]}
    again = execute("find({x: 1})", db, "things")
    assert len(again["result"]) == 1


def test_multi_statement_stops_at_first_failure(db):
    outcome = execute("db.things.insertOne({n: 1}); db.things.bogus(); db.things.insertOne({n: 2})", db)
    assert outcome["error"].startswith('Error in command "db.things.bogus()"')
    assert db.things.count_documents({}) == 1


def test_semicolon_inside_string_is_not_a_separator(db):
    outcome = execute('db.notes.insertOne({text: "a; b"}); db.notes.findOne({}, {_id: 0})', db)
    assert outcome == {"result": {"text": "a; b"}}


def test_trailing_semicolon(db, items):
    assert execute("db.items.count();", db) == {"result": 4}


def test_unsupported_command_lists_operations(db):
    outcome = execute("db.foo.bar()", db, "foo")
    assert "Supported commands:" in outcome["error"]
    assert "insertMany" in outcome["error"]


def test_comment_inside_arguments(db, items):
    outcome = execute("db.items.find({name: 'bob', // it's bob\n qty: 15}, {_id: 0, name: 1})", db)
    assert outcome == {"result": [{"name": "bob"}]}


def test_null_filter_does_not_delete(db, items):
    outcome = execute("db.items.deleteMany(null)", db)
    assert outcome == {"error": "deleteMany requires a filter document"}
    assert db.items.count_documents({}) == 4


def test_unrecognized_text(db):
    outcome = execute("hello world", db, "items")
    assert "Supported commands:" in outcome["error"]


def test_empty_command(db):
    assert execute("   ", db, "items") == {"error": "Empty command"}


def test_literal_error_is_reported(db):
    outcome = execute("db.items.find({a: })", db)
    assert outcome["error"].startswith("Invalid find syntax:")


def test_unbalanced_is_reported(db):
    outcome = execute("db.items.insertOne({a: 1}", db)
    assert "unbalanced parentheses" in outcome["error"]


def test_driver_error_message_is_passed_through():
    collection = MagicMock()
    collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key error")
    db = MagicMock()
    db.__getitem__.return_value = collection
    outcome = execute("db.users.insertOne({_id: 1})", db)
    assert outcome == {"error": "E11000 duplicate key error"}


def test_connection_error_does_not_raise():
    db = MagicMock()
    db.list_collection_names.side_effect = ServerSelectionTimeoutError("No servers found")
    outcome = execute("show collections", db)
    assert outcome == {"error": "No servers found"}


def test_unexpected_error_does_not_raise():
    db = MagicMock()
    db.command.side_effect = RuntimeError("boom")
    assert execute("db.stats()", db) == {"error": "boom"}


def test_rejected_command_text_stays_out_of_warnings(db, caplog):
    caplog.set_level(logging.DEBUG, logger="mongoshell")
    execute("db.secret_stuff", db)
    execute("db.items.find({token: 'hunter2'}) + 1", db)
    warnings = [r.getMessage() for r in caplog.records if r.levelno >= logging.WARNING]
    assert warnings
    assert not any("secret_stuff" in m or "hunter2" in m for m in warnings)
    debug = [r.getMessage() for r in caplog.records if r.levelno == logging.DEBUG]
    assert any("secret_stuff" in m for m in debug)
