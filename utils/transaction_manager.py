import logging
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from functools import wraps

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from exceptions.base import ShopException, DatabaseException
from utils.clock import utcnow

logger = logging.getLogger(__name__)


class TransactionManager:
    """
    Utility class for managing database transactions with rollback
    and retry logic.
    """

    # Transactions slower than this are logged as warnings
    TRANSACTION_TIMEOUT = 30

    # Retry configuration
    MAX_RETRIES = 3
    RETRY_DELAY_BASE = 0.1  # Base delay in seconds

    @staticmethod
    @asynccontextmanager
    async def atomic_transaction(session: AsyncSession, timeout: Optional[int] = None) -> AsyncGenerator[AsyncSession, None]:
        """
        Commit everything done inside the block, or roll all of it back.

        Usage:
            async with TransactionManager.atomic_transaction(session):
                await session.execute(...)

        Shop exceptions raised inside the block propagate unchanged after the
        rollback. Any other SQLAlchemy error is wrapped in DatabaseException.
        """
        timeout = timeout or TransactionManager.TRANSACTION_TIMEOUT
        transaction_start = utcnow()
        logger.debug(f"Transaction started at {transaction_start}")

        try:
            yield session
            await session.commit()
        except ShopException as e:
            await TransactionManager._rollback(session, e)
            raise
        except SQLAlchemyError as e:
            await TransactionManager._rollback(session, e)
            raise DatabaseException(
                "Database operation failed",
                details={'error': e.__class__.__name__}
            ) from e
        except BaseException as e:
            await TransactionManager._rollback(session, e)
            raise

        duration = (utcnow() - transaction_start).total_seconds()
        if duration > timeout:
            logger.warning(f"Transaction exceeded timeout: {duration}s > {timeout}s")
        logger.debug(f"Transaction committed successfully in {duration:.2f}s")

    @staticmethod
    async def _rollback(session: AsyncSession, error: BaseException) -> None:
        try:
            await session.rollback()
            logger.info(f"Transaction rolled back due to error: {error!r}")
        except SQLAlchemyError as rollback_error:
            logger.critical(f"Failed to rollback transaction: {str(rollback_error)}")

    @staticmethod
    def with_retry(max_retries: Optional[int] = None, delay_base: Optional[float] = None):
        """
        Decorator for automatic retry of database operations with exponential backoff.

        Only transient OperationalError (database locked, connection dropped)
        is retried, raised directly or as the cause of a DatabaseException.

        Args:
            max_retries: Maximum number of retry attempts
            delay_base: Base delay for exponential backoff
        """
        max_retries = max_retries or TransactionManager.MAX_RETRIES
        delay_base = delay_base or TransactionManager.RETRY_DELAY_BASE

        def decorator(func):
            @wraps(func)
            async def wrapper(*args, **kwargs):
                for attempt in range(max_retries + 1):
                    try:
                        return await func(*args, **kwargs)
                    except (OperationalError, DatabaseException) as e:
                        transient = isinstance(e, OperationalError) or isinstance(e.__cause__, OperationalError)
                        if not transient or attempt == max_retries:
                            logger.error(f"Function {func.__name__} failed after {attempt} retries: {str(e)}")
                            raise

                        # Exponential backoff with jitter
                        delay = delay_base * (2 ** attempt) + (delay_base * 0.1 * attempt)
                        logger.warning(f"Attempt {attempt + 1} failed for {func.__name__}, retrying in {delay:.2f}s: {str(e)}")
                        await asyncio.sleep(delay)

            return wrapper
        return decorator
