import logging
from typing import Any, Dict, Optional

from pymongo.errors import PyMongoError

from .errors import ShellError, UnsupportedCommandError
from .mongo_commands import UNSUPPORTED_MESSAGE, execute_mongodb_command
from .parsers import parse_command, split_statements

logger = logging.getLogger(__name__)


def _run_statement(statement: str, db, default_collection: Optional[str]) -> Dict[str, Any]:
    logger.debug("Running statement: %s", statement)
    try:
        command = parse_command(statement)
        return {"result": execute_mongodb_command(db, command, default_collection)}
    except UnsupportedCommandError as e:
        logger.warning("Rejected unsupported command")
        logger.debug("Unsupported command: %s", e)
        return {"error": f"{UNSUPPORTED_MESSAGE} ({e})"}
    except ShellError as e:
        logger.warning("Rejected invalid command (%s)", type(e).__name__)
        logger.debug("Invalid command: %s", e)
        return {"error": str(e)}
    except PyMongoError as e:
        logger.error("MongoDB execution error: %s", e)
        return {"error": str(e)}
    except Exception as e:
        logger.exception("Unexpected failure while executing command")
        return {"error": str(e) or "Failed to execute command"}


def execute(command: str, db, default_collection: Optional[str] = None) -> Dict[str, Any]:
    """Parse and run shell input against db.

    Returns {"result": ...} on success or {"error": "..."} on failure; never
    raises. Semicolon-separated statements run one after another and only
    the last result is returned. The first failing statement stops the run;
    writes made by earlier statements stay committed.
    """
    statements = split_statements(command or "")
    if not statements:
        return {"error": "Empty command"}
    if len(statements) == 1:
        return _run_statement(statements[0], db, default_collection)

    logger.info("Executing %d statements", len(statements))
    outcome = None
    for statement in statements:
        outcome = _run_statement(statement, db, default_collection)
        if "error" in outcome:
            return {"error": f'Error in command "{statement}": {outcome["error"]}'}
    return outcome
