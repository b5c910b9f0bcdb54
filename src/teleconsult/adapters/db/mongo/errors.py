"""Translation of driver failures into DatabaseError."""

import functools
import logging

from pymongo.errors import PyMongoError

from teleconsult.core.exceptions import DatabaseError

logger = logging.getLogger("teleconsult.db")


def translate_mongo_errors(func):
    """Re-raise driver errors from a repository coroutine as DatabaseError."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PyMongoError as e:
            logger.error(f"MongoDB operation {func.__qualname__} failed: {e}")
            raise DatabaseError(
                f"Database operation failed: {func.__name__}",
                details={"operation": func.__qualname__, "error": str(e)},
            ) from e

    return wrapper
