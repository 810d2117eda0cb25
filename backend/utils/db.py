from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from core.exceptions import ConflictError, StoreError


async def safe_commit(session, conflict_message: str = "Resource already exists", server_error_message: str = "Server error"):
    """Commit, rolling back and translating driver failures into store errors."""
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ConflictError(conflict_message, error=str(e.orig)) from e
    except SQLAlchemyError as e:
        await session.rollback()
        raise StoreError(server_error_message, error=str(e)) from e
