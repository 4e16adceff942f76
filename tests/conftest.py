import mongomock
import pytest


@pytest.fixture
def db():
    return mongomock.MongoClient()["shell_test"]


@pytest.fixture
def items(db):
    db.items.insert_many([
        {"name": "carol", "qty": 5, "tags": ["a"]},
        {"name": "alice", "qty": 20, "tags": ["b"]},
        {"name": "bob", "qty": 15, "tags": ["a", "b"]},
        {"name": "dave", "qty": 1, "tags": []},
    ])
    return db.items
