import json
import logging
from typing import Any, List, Optional

from bson import json_util
from pymongo import DeleteMany, DeleteOne, InsertOne, ReplaceOne, UpdateMany, UpdateOne

from .errors import LiteralParseError, ShellSyntaxError, UnsupportedCommandError
from .literals import parse_literal
from .parsers import CursorMethod, ShellCommand, split_top_level

logger = logging.getLogger(__name__)

# shell option name -> driver keyword
_OPTION_NAMES = {
    "upsert": "upsert",
    "arrayFilters": "array_filters",
    "hint": "hint",
    "collation": "collation",
    "bypassDocumentValidation": "bypass_document_validation",
    "ordered": "ordered",
    "comment": "comment",
    "let": "let",
}
_UPDATE_OPTIONS = {"upsert", "arrayFilters", "hint", "collation", "bypassDocumentValidation", "comment", "let"}
_REPLACE_OPTIONS = _UPDATE_OPTIONS - {"arrayFilters"}
_DELETE_OPTIONS = {"hint", "collation", "comment", "let"}
_INSERT_ONE_OPTIONS = {"bypassDocumentValidation", "comment"}
_INSERT_MANY_OPTIONS = {"ordered", "bypassDocumentValidation", "comment"}
_BULK_OPTIONS = {"ordered", "bypassDocumentValidation", "comment", "let"}

_NOOP_CURSOR_METHODS = {"toArray", "pretty"}


def to_json(value: Any) -> Any:
    """Convert driver results (ObjectId, datetime, SON, ...) into plain JSON values."""
    return json.loads(json_util.dumps(value, json_options=json_util.RELAXED_JSON_OPTIONS))


# ---------- ARGUMENT HELPERS ----------

def _parse_arguments(operation: str, params_str: str, maximum: int, minimum: int = 0,
                     usage: str = None) -> List[Any]:
    parts = split_top_level(params_str) if params_str.strip() else []
    if len(parts) < minimum:
        raise ShellSyntaxError(usage or f"{operation} requires at least {minimum} argument(s)")
    if len(parts) > maximum:
        raise ShellSyntaxError(f"{operation} accepts at most {maximum} argument(s), got {len(parts)}")
    values = []
    for part in parts:
        try:
            values.append(parse_literal(part))
        except LiteralParseError as e:
            raise LiteralParseError(f"Invalid {operation} syntax: {e}") from e
    return values


def _document(values: list, index: int, operation: str, what: str, default=None) -> Optional[dict]:
    if index >= len(values) or values[index] is None:
        return default
    value = values[index]
    if not isinstance(value, dict):
        raise ShellSyntaxError(f"{operation} requires the {what} to be an object")
    return value


def _required_filter(values: list, operation: str) -> dict:
    filter_q = _document(values, 0, operation, "filter")
    if filter_q is None:
        raise ShellSyntaxError(f"{operation} requires a filter document")
    return filter_q


def _driver_options(operation: str, options: Optional[dict], allowed: set) -> dict:
    kwargs = {}
    for key, value in (options or {}).items():
        if key not in allowed:
            raise ShellSyntaxError(f"Unsupported {operation} option: {key}")
        kwargs[_OPTION_NAMES[key]] = value
    return kwargs


def _cursor_int(method: CursorMethod) -> int:
    values = _parse_arguments(method.name, method.arguments, 1, 1, f"{method.name}(n) requires an integer")
    n = values[0]
    if isinstance(n, float) and n.is_integer():
        n = int(n)
    if not isinstance(n, int) or isinstance(n, bool):
        raise ShellSyntaxError(f"{method.name}(n) requires an integer")
    if method.name == "skip" and n < 0:
        raise ShellSyntaxError("skip(n) requires a non-negative integer")
    return n


def _sort_spec(method: CursorMethod) -> list:
    values = _parse_arguments("sort", method.arguments, 1, 1, "sort requires a sort document")
    spec = _document(values, 0, "sort", "sort specification")
    return list(spec.items())


def _only_noop_chain(command: ShellCommand):
    for method in command.chain:
        if method.name not in _NOOP_CURSOR_METHODS:
            raise ShellSyntaxError(f"Unsupported method .{method.name}() after {command.operation}()")


def _update_result(result) -> dict:
    return {
        "matchedCount": result.matched_count,
        "modifiedCount": result.modified_count,
        "upsertedId": result.upserted_id,
        "upsertedCount": 1 if result.upserted_id is not None else 0,
    }


def _index_name(keys: dict) -> str:
    return "_".join(f"{field}_{direction}" for field, direction in keys.items())


# ---------- FIND ----------

def _find(collection, command: ShellCommand):
    values = _parse_arguments("find", command.arguments, 2)
    filter_q = _document(values, 0, "find", "filter", {})
    projection = _document(values, 1, "find", "projection")
    sort = None
    skip = limit = 0
    count = False

    # chained calls may appear in any order; they are applied in a fixed one below
    for method in command.chain:
        if method.name in ("project", "projection"):
            projection = _document(_parse_arguments(method.name, method.arguments, 1), 0,
                                   method.name, "projection")
        elif method.name == "sort":
            sort = _sort_spec(method)
        elif method.name == "skip":
            skip = _cursor_int(method)
        elif method.name == "limit":
            limit = _cursor_int(method)
        elif method.name == "count":
            count = True
        elif method.name not in _NOOP_CURSOR_METHODS:
            raise ShellSyntaxError(f"Unsupported cursor method: .{method.name}()")

    if count:
        return collection.count_documents(filter_q)

    cursor = collection.find(filter_q, projection or None)
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def _find_one(collection, command: ShellCommand):
    _only_noop_chain(command)
    values = _parse_arguments("findOne", command.arguments, 2)
    filter_q = _document(values, 0, "findOne", "filter", {})
    projection = _document(values, 1, "findOne", "projection")
    return collection.find_one(filter_q, projection or None)


# ---------- AGGREGATE ----------

def _aggregate(collection, command: ShellCommand):
    _only_noop_chain(command)
    values = _parse_arguments("aggregate", command.arguments, 2, 1,
                              "aggregate requires a pipeline array parameter")
    pipeline = values[0]
    if not isinstance(pipeline, list):
        raise ShellSyntaxError("aggregate requires an array pipeline")
    if not all(isinstance(stage, dict) for stage in pipeline):
        raise ShellSyntaxError("aggregate pipeline stages must be objects")
    options = _document(values, 1, "aggregate", "options", {})
    return list(collection.aggregate(pipeline, **options))


# ---------- COUNT / DISTINCT ----------

def _count(collection, command: ShellCommand):
    _only_noop_chain(command)
    values = _parse_arguments(command.operation, command.arguments, 2)
    filter_q = _document(values, 0, command.operation, "query", {})
    options = _document(values, 1, command.operation, "options", {})
    return collection.count_documents(filter_q, **options)


def _estimated_count(collection, command: ShellCommand):
    _only_noop_chain(command)
    _parse_arguments("estimatedDocumentCount", command.arguments, 0)
    return collection.estimated_document_count()


def _distinct(collection, command: ShellCommand):
    _only_noop_chain(command)
    values = _parse_arguments("distinct", command.arguments, 2, 1, "distinct requires a field name")
    field = values[0]
    if not isinstance(field, str):
        raise ShellSyntaxError("distinct requires the field name to be a string")
    return collection.distinct(field, _document(values, 1, "distinct", "query", {}))


# ---------- INSERT ----------

def _insert_one(collection, command: ShellCommand):
    _only_noop_chain(command)
    values = _parse_arguments("insertOne", command.arguments, 2, 1,
                              "insertOne requires a document parameter")
    document = _document(values, 0, "insertOne", "document")
    if document is None:
        raise ShellSyntaxError("insertOne requires a document parameter")
    options = _driver_options("insertOne", _document(values, 1, "insertOne", "options"), _INSERT_ONE_OPTIONS)
    result = collection.insert_one(document, **options)
    return {"insertedId": result.inserted_id, "insertedCount": 1}


def _insert_many(collection, command: ShellCommand):
    _only_noop_chain(command)
    values = _parse_arguments("insertMany", command.arguments, 2, 1,
                              "insertMany requires an array parameter")
    documents = values[0]
    if isinstance(documents, dict):
        documents = [documents]
    if not isinstance(documents, list) or not all(isinstance(doc, dict) for doc in documents):
        raise ShellSyntaxError("insertMany requires an array of documents")
    if not documents:
        raise ShellSyntaxError("insertMany requires at least one document")
    options = _driver_options("insertMany", _document(values, 1, "insertMany", "options"), _INSERT_MANY_OPTIONS)
    result = collection.insert_many(documents, **options)
    return {"insertedIds": list(result.inserted_ids), "insertedCount": len(result.inserted_ids)}


# ---------- UPDATE / REPLACE ----------

def _update(collection, command: ShellCommand):
    _only_noop_chain(command)
    operation = command.operation
    values = _parse_arguments(operation, command.arguments, 3, 2,
                              "Invalid update syntax: missing filter or update parameter")
    filter_q = _required_filter(values, operation)
    update = values[1]
    if isinstance(update, dict):
        if not update or not all(key.startswith("$") for key in update):
            raise ShellSyntaxError(f"{operation} requires update operators such as $set")
    elif not isinstance(update, list):
        raise ShellSyntaxError(f"{operation} requires an update document or pipeline")
    options = _driver_options(operation, _document(values, 2, operation, "options"), _UPDATE_OPTIONS)
    if operation == "updateOne":
        result = collection.update_one(filter_q, update, **options)
    else:
        result = collection.update_many(filter_q, update, **options)
    return _update_result(result)


def _replace_one(collection, command: ShellCommand):
    _only_noop_chain(command)
    values = _parse_arguments("replaceOne", command.arguments, 3, 2,
                              "Invalid replaceOne syntax: missing filter or replacement parameter")
    filter_q = _required_filter(values, "replaceOne")
    replacement = _document(values, 1, "replaceOne", "replacement", {})
    if any(key.startswith("$") for key in replacement):
        raise ShellSyntaxError("replaceOne replacement can not include $ operators")
    options = _driver_options("replaceOne", _document(values, 2, "replaceOne", "options"), _REPLACE_OPTIONS)
    return _update_result(collection.replace_one(filter_q, replacement, **options))


# ---------- DELETE ----------

def _delete(collection, command: ShellCommand):
    _only_noop_chain(command)
    operation = command.operation
    values = _parse_arguments(operation, command.arguments, 2, 1,
                              f"{operation} requires a filter document")
    filter_q = _required_filter(values, operation)
    options = _driver_options(operation, _document(values, 1, operation, "options"), _DELETE_OPTIONS)
    if operation == "deleteOne":
        result = collection.delete_one(filter_q, **options)
    else:
        result = collection.delete_many(filter_q, **options)
    return {"deletedCount": result.deleted_count}


# ---------- BULK WRITE ----------

def bulk_operation(index: int, spec: Any):
    """Translate one shell bulkWrite entry into a driver write model."""
    if not isinstance(spec, dict) or len(spec) != 1:
        raise ShellSyntaxError(f"bulkWrite operation {index} must be an object with a single operation key")
    name, body = next(iter(spec.items()))
    if not isinstance(body, dict):
        raise ShellSyntaxError(f"bulkWrite operation {index} ({name}) must be an object")

    if name == "insertOne":
        return InsertOne(body.get("document", body))
    if name in ("deleteOne", "deleteMany"):
        model = DeleteOne if name == "deleteOne" else DeleteMany
        return model(body.get("filter", body))
    if name in ("updateOne", "updateMany"):
        if "filter" not in body or "update" not in body:
            raise ShellSyntaxError(f"bulkWrite {name} requires filter and update")
        model = UpdateOne if name == "updateOne" else UpdateMany
        return model(body["filter"], body["update"], upsert=bool(body.get("upsert", False)),
                     array_filters=body.get("arrayFilters"))
    if name == "replaceOne":
        if "filter" not in body or "replacement" not in body:
            raise ShellSyntaxError("bulkWrite replaceOne requires filter and replacement")
        return ReplaceOne(body["filter"], body["replacement"], upsert=bool(body.get("upsert", False)))
    raise ShellSyntaxError(f"Unsupported bulkWrite operation: {name}")


def _bulk_write(collection, command: ShellCommand):
    _only_noop_chain(command)
    values = _parse_arguments("bulkWrite", command.arguments, 2, 1,
                              "bulkWrite requires an array of operations")
    operations = values[0]
    if not isinstance(operations, list):
        raise ShellSyntaxError("bulkWrite requires an array of operations")
    if not operations:
        raise ShellSyntaxError("bulkWrite requires at least one operation")
    requests = [bulk_operation(i, spec) for i, spec in enumerate(operations)]
    options = _driver_options("bulkWrite", _document(values, 1, "bulkWrite", "options"), _BULK_OPTIONS)
    result = collection.bulk_write(requests, **options)
    return {
        "insertedCount": result.inserted_count,
        "matchedCount": result.matched_count,
        "modifiedCount": result.modified_count,
        "deletedCount": result.deleted_count,
        "upsertedCount": result.upserted_count,
        "upsertedIds": {str(i): _id for i, _id in (result.upserted_ids or {}).items()},
    }


# ---------- INDEXES / DROP ----------

def _get_indexes(collection, command: ShellCommand):
    _only_noop_chain(command)
    _parse_arguments("getIndexes", command.arguments, 0)
    return list(collection.list_indexes())


def _create_index(collection, command: ShellCommand):
    _only_noop_chain(command)
    values = _parse_arguments("createIndex", command.arguments, 2, 1, "createIndex requires a keys document")
    keys = _document(values, 0, "createIndex", "keys")
    if not keys:
        raise ShellSyntaxError("createIndex requires at least one key")
    options = _document(values, 1, "createIndex", "options", {})
    return collection.create_index(list(keys.items()), **options)


def _drop_index(collection, command: ShellCommand):
    _only_noop_chain(command)
    values = _parse_arguments("dropIndex", command.arguments, 1, 1, "dropIndex requires an index name or keys")
    target = values[0]
    if isinstance(target, dict) and target:
        name = _index_name(target)
    elif isinstance(target, str) and target:
        name = target
    else:
        raise ShellSyntaxError("dropIndex requires an index name or keys document")
    if name in ("_id_", "_id_1"):
        raise ShellSyntaxError("Cannot drop the _id_ index")
    collection.drop_index(name)
    return {"dropped": name}


def _drop(collection, command: ShellCommand):
    _only_noop_chain(command)
    _parse_arguments("drop", command.arguments, 0)
    collection.drop()
    return True


# ---------- DB-LEVEL ----------

def _get_collection_names(db, command: ShellCommand):
    _only_noop_chain(command)
    _parse_arguments("getCollectionNames", command.arguments, 0)
    return db.list_collection_names()


def _get_collection_infos(db, command: ShellCommand):
    _only_noop_chain(command)
    values = _parse_arguments("getCollectionInfos", command.arguments, 1)
    return list(db.list_collections(filter=_document(values, 0, "getCollectionInfos", "filter", {})))


def _stats(db, command: ShellCommand):
    _only_noop_chain(command)
    values = _parse_arguments("stats", command.arguments, 1)
    if values and values[0] is not None:
        return db.command("dbstats", scale=values[0])
    return db.command("dbstats")


def _create_collection(db, command: ShellCommand):
    _only_noop_chain(command)
    values = _parse_arguments("createCollection", command.arguments, 2, 1,
                              "createCollection requires a collection name parameter")
    name = values[0]
    if not isinstance(name, str) or not name:
        raise ShellSyntaxError("createCollection requires the collection name to be a string")
    options = _document(values, 1, "createCollection", "options", {})
    db.create_collection(name, **options)
    return {"ok": 1}


def _run_command(db, command: ShellCommand):
    _only_noop_chain(command)
    values = _parse_arguments("runCommand", command.arguments, 1, 1, "runCommand requires a command document")
    document = _document(values, 0, "runCommand", "command")
    if not document:
        raise ShellSyntaxError("runCommand requires a non-empty command document")
    return db.command(document)


COLLECTION_OPERATIONS = {
    "find": _find,
    "findOne": _find_one,
    "aggregate": _aggregate,
    "count": _count,
    "countDocuments": _count,
    "estimatedDocumentCount": _estimated_count,
    "distinct": _distinct,
    "insertOne": _insert_one,
    "insertMany": _insert_many,
    "updateOne": _update,
    "updateMany": _update,
    "replaceOne": _replace_one,
    "deleteOne": _delete,
    "deleteMany": _delete,
    "bulkWrite": _bulk_write,
    "getIndexes": _get_indexes,
    "createIndex": _create_index,
    "dropIndex": _drop_index,
    "drop": _drop,
}

DATABASE_OPERATIONS = {
    "getCollectionNames": _get_collection_names,
    "getCollectionInfos": _get_collection_infos,
    "stats": _stats,
    "createCollection": _create_collection,
    "runCommand": _run_command,
}

SUPPORTED_COMMANDS = (
    list(COLLECTION_OPERATIONS)
    + [f"db.{name}()" for name in DATABASE_OPERATIONS]
    + ["show collections"]
)

UNSUPPORTED_MESSAGE = (
    "Command not supported or invalid syntax. Supported commands: " + ", ".join(SUPPORTED_COMMANDS)
)


def execute_mongodb_command(db, command: ShellCommand, default_collection: Optional[str] = None) -> Any:
    """Run a parsed shell command against db and return a JSON-serializable result.

    Collection operations without an explicit collection run against
    default_collection. Raises ShellError subclasses for bad input and lets
    driver errors propagate.
    """
    operation = command.operation

    if command.collection is None and operation in DATABASE_OPERATIONS:
        logger.info("Executing db.%s()", operation)
        return to_json(DATABASE_OPERATIONS[operation](db, command))

    handler = COLLECTION_OPERATIONS.get(operation)
    if handler is None:
        raise UnsupportedCommandError(f"Unknown operation: {operation}")

    collection_name = command.collection or default_collection
    if not collection_name:
        raise ShellSyntaxError(f"No collection specified for {operation}(); use db.<collection>.{operation}(...)")

    logger.info("Executing %s on collection '%s'", operation, collection_name)
    return to_json(handler(db[collection_name], command))
