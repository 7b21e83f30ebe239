"""Tests for AccountService.

Registration uniqueness, login, refresh-token rotation (including two
concurrent refreshes with the same token) and logout revocation, against the
in-memory account tables.
"""

import asyncio

import pytest

from coursemart.auth.actors import ActorType
from coursemart.auth.schemas import LoginRequest, RegisterRequest, UpdateProfileRequest
from coursemart.auth.security import decode_access_token
from coursemart.auth.service import (
    AccountExistsError,
    AccountService,
    InvalidCredentialsError,
)
from coursemart.core.errors import InvalidTokenError
from tests.cassandra_fakes import FakeAccountTables, make_session
from tests.conftest import KEYSPACE, PASSWORD


@pytest.fixture
def tables() -> FakeAccountTables:
    return FakeAccountTables(f"{KEYSPACE}.learners")


@pytest.fixture
def service(tables: FakeAccountTables) -> AccountService:
    session = make_session(tables.execute)
    return AccountService(session=session, keyspace=KEYSPACE, actor_type=ActorType.LEARNER)


def _registration(username: str = "asha", email: str = "asha@coursemart.io") -> RegisterRequest:
    return RegisterRequest(
        username=username,
        email=email,
        contact="9876543210",
        address="12 MG Road, Pune",
        password=PASSWORD,
        confirm_password=PASSWORD,
    )


async def _logged_in(service: AccountService):
    await service.register(_registration())
    return await service.login(LoginRequest(username="asha", password=PASSWORD))


class TestRegistration:
    """Tests for registration uniqueness."""

    @pytest.mark.asyncio
    async def test_register_stores_account_and_claims(
        self, service: AccountService, tables: FakeAccountTables
    ) -> None:
        account = await service.register(_registration())

        assert account.id in tables.accounts
        assert tables.usernames["asha"] == account.id
        assert tables.emails["asha@coursemart.io"] == account.id
        assert account.refresh_token == ""

    @pytest.mark.asyncio
    async def test_duplicate_username_conflicts(self, service: AccountService) -> None:
        await service.register(_registration())

        with pytest.raises(AccountExistsError) as exc_info:
            await service.register(_registration(email="other@coursemart.io"))
        assert exc_info.value.field == "username"
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts_and_releases_username(
        self, service: AccountService, tables: FakeAccountTables
    ) -> None:
        await service.register(_registration())

        with pytest.raises(AccountExistsError) as exc_info:
            await service.register(_registration(username="ravi"))
        assert exc_info.value.field == "email"
        assert "ravi" not in tables.usernames
        assert len(tables.accounts) == 1

    @pytest.mark.asyncio
    async def test_failed_insert_releases_claims(self, tables: FakeAccountTables) -> None:
        async def failing_insert(stmt, params):
            if stmt.startswith("INSERT") and "_by_" not in stmt:
                raise OSError("write timeout")
            return await tables.execute(stmt, params)

        service = AccountService(
            session=make_session(failing_insert),
            keyspace=KEYSPACE,
            actor_type=ActorType.LEARNER,
        )

        with pytest.raises(OSError):
            await service.register(_registration())

        assert tables.usernames == {}
        assert tables.emails == {}
        assert tables.accounts == {}

        retry = AccountService(
            session=make_session(tables.execute),
            keyspace=KEYSPACE,
            actor_type=ActorType.LEARNER,
        )
        account = await retry.register(_registration())
        assert tables.emails["asha@coursemart.io"] == account.id


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_by_username_issues_learner_tokens(
        self, service: AccountService, tables: FakeAccountTables
    ) -> None:
        account, access_token, refresh_token = await _logged_in(service)

        payload = decode_access_token(access_token, ActorType.LEARNER)
        assert payload["sub"] == str(account.id)
        assert tables.accounts[account.id]["refresh_token"] == refresh_token

    @pytest.mark.asyncio
    async def test_login_by_email(self, service: AccountService) -> None:
        await service.register(_registration())
        account, _, _ = await service.login(
            LoginRequest(email="ASHA@coursemart.io", password=PASSWORD)
        )
        assert account.username == "asha"

    @pytest.mark.asyncio
    async def test_wrong_password_is_unauthorized(self, service: AccountService) -> None:
        await service.register(_registration())

        with pytest.raises(InvalidCredentialsError) as exc_info:
            await service.login(LoginRequest(username="asha", password="Wrong#12345"))
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_account_is_unauthorized(self, service: AccountService) -> None:
        with pytest.raises(InvalidCredentialsError):
            await service.login(LoginRequest(username="ghost", password=PASSWORD))


class TestRefreshFlow:
    """Tests for refresh-token rotation and revocation."""

    @pytest.mark.asyncio
    async def test_rotation_replaces_stored_token(
        self, service: AccountService, tables: FakeAccountTables
    ) -> None:
        account, _, refresh_token = await _logged_in(service)

        _, access_token, new_refresh = await service.refresh_tokens(refresh_token)

        assert new_refresh != refresh_token
        assert tables.accounts[account.id]["refresh_token"] == new_refresh
        assert decode_access_token(access_token, ActorType.LEARNER)["sub"] == str(account.id)

    @pytest.mark.asyncio
    async def test_old_token_rejected_after_rotation(self, service: AccountService) -> None:
        _, _, refresh_token = await _logged_in(service)
        await service.refresh_tokens(refresh_token)

        with pytest.raises(InvalidTokenError):
            await service.refresh_tokens(refresh_token)

    @pytest.mark.asyncio
    async def test_concurrent_refresh_with_same_token(
        self, service: AccountService, tables: FakeAccountTables
    ) -> None:
        """Of two concurrent refreshes presenting one token, exactly one wins."""
        account, _, refresh_token = await _logged_in(service)

        results = await asyncio.gather(
            service.refresh_tokens(refresh_token),
            service.refresh_tokens(refresh_token),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, BaseException)]
        failures = [r for r in results if isinstance(r, BaseException)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], InvalidTokenError)
        assert tables.accounts[account.id]["refresh_token"] == successes[0][2]

    @pytest.mark.asyncio
    async def test_logout_revokes_refresh_token(
        self, service: AccountService, tables: FakeAccountTables
    ) -> None:
        account, _, refresh_token = await _logged_in(service)

        await service.logout(account.id)

        assert tables.accounts[account.id]["refresh_token"] == ""
        with pytest.raises(InvalidTokenError):
            await service.refresh_tokens(refresh_token)

    @pytest.mark.asyncio
    async def test_administrator_token_rejected(self, service: AccountService) -> None:
        """A token from the other actor type fails like any invalid token."""
        admin_tables = FakeAccountTables(f"{KEYSPACE}.administrators")
        admin_service = AccountService(
            session=make_session(admin_tables.execute),
            keyspace=KEYSPACE,
            actor_type=ActorType.ADMINISTRATOR,
        )
        await admin_service.register(_registration())
        _, _, admin_refresh = await admin_service.login(
            LoginRequest(username="asha", password=PASSWORD)
        )

        with pytest.raises(InvalidTokenError):
            await service.refresh_tokens(admin_refresh)

    @pytest.mark.asyncio
    async def test_garbage_token(self, service: AccountService) -> None:
        with pytest.raises(InvalidTokenError):
            await service.refresh_tokens("not-a-token")


class TestProfile:
    @pytest.mark.asyncio
    async def test_update_username_moves_claim(
        self, service: AccountService, tables: FakeAccountTables
    ) -> None:
        account = await service.register(_registration())

        updated = await service.update_profile(account.id, UpdateProfileRequest(username="asha_k"))

        assert updated.username == "asha_k"
        assert tables.usernames == {"asha_k": account.id}
        assert tables.accounts[account.id]["username"] == "asha_k"

    @pytest.mark.asyncio
    async def test_update_to_taken_email_conflicts(self, service: AccountService) -> None:
        account = await service.register(_registration())
        await service.register(_registration(username="ravi", email="ravi@coursemart.io"))

        with pytest.raises(AccountExistsError):
            await service.update_profile(
                account.id, UpdateProfileRequest(email="ravi@coursemart.io")
            )

    @pytest.mark.asyncio
    async def test_change_password_requires_old_password(self, service: AccountService) -> None:
        account = await service.register(_registration())

        with pytest.raises(InvalidCredentialsError, match="Old password is incorrect"):
            await service.change_password(account.id, "Wrong#12345", "Another#12345")

    @pytest.mark.asyncio
    async def test_change_password_then_login(self, service: AccountService) -> None:
        account = await service.register(_registration())
        await service.change_password(account.id, PASSWORD, "Another#12345")

        with pytest.raises(InvalidCredentialsError):
            await service.login(LoginRequest(username="asha", password=PASSWORD))
        await service.login(LoginRequest(username="asha", password="Another#12345"))

    @pytest.mark.asyncio
    async def test_delete_releases_claims(
        self, service: AccountService, tables: FakeAccountTables
    ) -> None:
        account = await service.register(_registration())

        await service.delete_account(account.id)

        assert tables.accounts == {}
        assert tables.usernames == {}
        assert tables.emails == {}
        await service.register(_registration())
