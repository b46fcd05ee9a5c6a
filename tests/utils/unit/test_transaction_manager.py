"""
Unit Tests: TransactionManager

atomic_transaction commits or rolls back the whole block; with_retry only
retries transient OperationalErrors.
"""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError, IntegrityError

from exceptions.base import DatabaseException
from exceptions.order import OrderNotFoundException
from models.user import User
from utils.transaction_manager import TransactionManager


async def user_count(session) -> int:
    return (await session.execute(select(func.count()).select_from(User))).scalar()


class TestAtomicTransaction:

    @pytest.mark.asyncio
    async def test_commits_on_success(self, test_session):
        async with TransactionManager.atomic_transaction(test_session):
            test_session.add(User(email="a@example.com"))

        assert await user_count(test_session) == 1

    @pytest.mark.asyncio
    async def test_shop_exception_rolls_back_and_propagates(self, test_session):
        with pytest.raises(OrderNotFoundException):
            async with TransactionManager.atomic_transaction(test_session):
                test_session.add(User(email="a@example.com"))
                await test_session.flush()
                raise OrderNotFoundException(1)

        assert await user_count(test_session) == 0

    @pytest.mark.asyncio
    async def test_sqlalchemy_error_wrapped(self, test_session):
        test_session.add(User(email="dup@example.com"))
        await test_session.commit()

        with pytest.raises(DatabaseException) as exc_info:
            async with TransactionManager.atomic_transaction(test_session):
                test_session.add(User(email="dup@example.com"))
                await test_session.flush()

        assert isinstance(exc_info.value.__cause__, IntegrityError)
        assert exc_info.value.details == {'error': 'IntegrityError'}
        assert await user_count(test_session) == 1


class TestWithRetry:

    @pytest.mark.asyncio
    async def test_retries_transient_error(self):
        locked = OperationalError("UPDATE events", {}, Exception("database is locked"))
        operation = AsyncMock(side_effect=[locked, "done"])
        operation.__name__ = "operation"

        result = await TransactionManager.with_retry(max_retries=2, delay_base=0.001)(operation)()

        assert result == "done"
        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_wrapped_operational_error(self):
        wrapped = DatabaseException("Database operation failed")
        wrapped.__cause__ = OperationalError("UPDATE events", {}, Exception("database is locked"))
        operation = AsyncMock(side_effect=[wrapped, "done"])
        operation.__name__ = "operation"

        assert await TransactionManager.with_retry(max_retries=1, delay_base=0.001)(operation)() == "done"

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        locked = OperationalError("UPDATE events", {}, Exception("database is locked"))
        operation = AsyncMock(side_effect=locked)
        operation.__name__ = "operation"

        with pytest.raises(OperationalError):
            await TransactionManager.with_retry(max_retries=2, delay_base=0.001)(operation)()

        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_non_transient_database_error_not_retried(self):
        operation = AsyncMock(side_effect=DatabaseException("Database operation failed"))
        operation.__name__ = "operation"

        with pytest.raises(DatabaseException):
            await TransactionManager.with_retry(max_retries=3, delay_base=0.001)(operation)()

        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_business_errors_pass_through(self):
        operation = AsyncMock(side_effect=OrderNotFoundException(1))
        operation.__name__ = "operation"

        with pytest.raises(OrderNotFoundException):
            await TransactionManager.with_retry(max_retries=3, delay_base=0.001)(operation)()

        assert operation.await_count == 1
