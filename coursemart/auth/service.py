"""Account service layer.

Business logic for:
- Registration with unique username/email claims
- Login, token issuance and refresh-token rotation
- Logout (refresh token revocation)
- Profile, password and account deletion

One AccountService exists per actor type; the actor type selects the tables
and the token secrets, everything else is shared.
"""

import secrets
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from jose import JWTError

from coursemart.auth.actors import ActorType
from coursemart.auth.models import Account
from coursemart.auth.schemas import (
    AccountResponse,
    LoginRequest,
    RegisterRequest,
    UpdateProfileRequest,
)
from coursemart.auth.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)
from coursemart.config.settings import get_settings
from coursemart.core.errors import (
    ConflictError,
    InvalidTokenError,
    NotFoundError,
    UnauthorizedError,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class InvalidCredentialsError(UnauthorizedError):
    """Invalid username/email or password."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, "invalid_credentials")


class AccountExistsError(ConflictError):
    """Username or email already taken."""

    def __init__(self, message: str = "Account already exists", field: str | None = None):
        super().__init__(message, "account_exists", field=field)


class AccountNotFoundError(NotFoundError):
    """Account not found."""

    def __init__(self, message: str = "Account not found"):
        super().__init__(message, "account_not_found")


# ==============================================================================
# Account Service
# ==============================================================================


class AccountService:
    """Account management and token operations for one actor type."""

    def __init__(self, session: "Session", keyspace: str, actor_type: ActorType):
        """actor_type selects both the account tables and the token secrets."""
        self.session = session
        self.keyspace = keyspace
        self.actor_type = actor_type
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        table = f"{self.keyspace}.{self.actor_type.table}"

        self._get_by_id = self.session.prepare(f"SELECT * FROM {table} WHERE id = ?")
        self._get_id_by_username = self.session.prepare(
            f"SELECT account_id FROM {table}_by_username WHERE username = ?"
        )
        self._get_id_by_email = self.session.prepare(
            f"SELECT account_id FROM {table}_by_email WHERE email = ?"
        )

        # Claims: the IF NOT EXISTS is what enforces uniqueness
        self._claim_username = self.session.prepare(f"""
            INSERT INTO {table}_by_username (username, account_id)
            VALUES (?, ?) IF NOT EXISTS
        """)
        self._claim_email = self.session.prepare(f"""
            INSERT INTO {table}_by_email (email, account_id)
            VALUES (?, ?) IF NOT EXISTS
        """)
        self._release_username = self.session.prepare(
            f"DELETE FROM {table}_by_username WHERE username = ? IF account_id = ?"
        )
        self._release_email = self.session.prepare(
            f"DELETE FROM {table}_by_email WHERE email = ? IF account_id = ?"
        )

        self._insert_account = self.session.prepare(f"""
            INSERT INTO {table}
            (id, username, email, contact, address, password_hash,
             refresh_token, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) IF NOT EXISTS
        """)
        self._update_profile = self.session.prepare(f"""
            UPDATE {table}
            SET username = ?, email = ?, contact = ?, address = ?, updated_at = ?
            WHERE id = ? IF EXISTS
        """)
        self._update_password = self.session.prepare(f"""
            UPDATE {table} SET password_hash = ?, updated_at = ?
            WHERE id = ? IF EXISTS
        """)

        # Refresh token cell: every write is conditional
        self._set_refresh_token = self.session.prepare(f"""
            UPDATE {table} SET refresh_token = ?, updated_at = ?
            WHERE id = ? IF EXISTS
        """)
        self._rotate_refresh_token = self.session.prepare(f"""
            UPDATE {table} SET refresh_token = ?, updated_at = ?
            WHERE id = ? IF refresh_token = ?
        """)

        self._delete_account = self.session.prepare(
            f"DELETE FROM {table} WHERE id = ? IF EXISTS"
        )

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_by_id(self, account_id: UUID) -> Account | None:
        """Find account by ID."""
        result = await self.session.aexecute(self._get_by_id, [account_id])
        row = result.one()
        return Account.from_row(row) if row else None

    async def get_by_username(self, username: str) -> Account | None:
        """Find account by username."""
        result = await self.session.aexecute(self._get_id_by_username, [username])
        row = result.one()
        return await self.get_by_id(row.account_id) if row else None

    async def get_by_email(self, email: str) -> Account | None:
        """Find account by email address."""
        result = await self.session.aexecute(self._get_id_by_email, [email.lower()])
        row = result.one()
        return await self.get_by_id(row.account_id) if row else None

    async def require(self, account_id: UUID) -> Account:
        """Get account by ID or raise AccountNotFoundError."""
        account = await self.get_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(f"{self.actor_type.label} not found")
        return account

    def to_response(self, account: Account) -> AccountResponse:
        """Public profile of an account."""
        return AccountResponse.from_account(account)

    # ==========================================================================
    # Registration
    # ==========================================================================

    async def _claim(self, field: str, value: str, account_id: UUID) -> bool:
        stmt = self._claim_username if field == "username" else self._claim_email
        result = await self.session.aexecute(stmt, [value, account_id])
        return result.was_applied

    async def _release(self, field: str, value: str, account_id: UUID) -> None:
        stmt = self._release_username if field == "username" else self._release_email
        await self.session.aexecute(stmt, [value, account_id])

    async def register(self, data: RegisterRequest) -> Account:
        """Register a new account.

        Args:
            data: Registration request data

        Returns:
            Created Account

        Raises:
            AccountExistsError: If username or email already exists
        """
        account = Account(
            username=data.username,
            email=data.email.lower(),
            contact=data.contact,
            address=data.address,
            password_hash=hash_password(data.password),
        )

        if not await self._claim("username", account.username, account.id):
            raise AccountExistsError("Username already taken", field="username")

        if not await self._claim("email", account.email, account.id):
            await self._release("username", account.username, account.id)
            raise AccountExistsError("Email already registered", field="email")

        try:
            await self.session.aexecute(
                self._insert_account,
                [
                    account.id,
                    account.username,
                    account.email,
                    account.contact,
                    account.address,
                    account.password_hash,
                    account.refresh_token,
                    account.created_at,
                    account.updated_at,
                ],
            )
        except Exception:
            logger.exception("account_insert_failed", actor_type=self.actor_type.value)
            await self._release("username", account.username, account.id)
            await self._release("email", account.email, account.id)
            raise

        logger.info(
            "account_registered",
            actor_type=self.actor_type.value,
            account_id=str(account.id),
        )
        return account

    # ==========================================================================
    # Login / Tokens
    # ==========================================================================

    async def authenticate(self, data: LoginRequest) -> Account:
        """Authenticate with username or email and password.

        Raises:
            InvalidCredentialsError: If the account is unknown or the password
                is wrong (indistinguishable to the caller)
        """
        if data.username:
            account = await self.get_by_username(data.username)
        else:
            account = await self.get_by_email(str(data.email))

        if account is None:
            raise InvalidCredentialsError

        is_valid, new_hash = verify_password(data.password, account.password_hash)
        if not is_valid:
            logger.info(
                "login_failed",
                actor_type=self.actor_type.value,
                account_id=str(account.id),
            )
            raise InvalidCredentialsError

        # Update hash if needed (algorithm params changed)
        if new_hash:
            await self.session.aexecute(
                self._update_password, [new_hash, datetime.now(UTC), account.id]
            )
            account.password_hash = new_hash

        return account

    def issue_tokens(self, account: Account) -> tuple[str, str]:
        """Create a fresh (access, refresh) pair for an account."""
        claims = account.token_claims()
        return (
            create_access_token(self.actor_type, claims),
            create_refresh_token(self.actor_type, claims),
        )

    async def login(self, data: LoginRequest) -> tuple[Account, str, str]:
        """Authenticate and store a new refresh token.

        Logging in replaces any refresh token issued before, so at most one
        refresh token per account is live.

        Returns:
            Tuple of (account, access_token, refresh_token)
        """
        account = await self.authenticate(data)
        access_token, refresh_token = self.issue_tokens(account)

        now = datetime.now(UTC)
        result = await self.session.aexecute(
            self._set_refresh_token, [refresh_token, now, account.id]
        )
        if not result.was_applied:
            # Deleted between authentication and token storage
            raise InvalidCredentialsError

        account.refresh_token = refresh_token
        account.updated_at = now
        logger.info(
            "login_succeeded",
            actor_type=self.actor_type.value,
            account_id=str(account.id),
        )
        return account, access_token, refresh_token

    async def refresh_tokens(self, presented: str) -> tuple[Account, str, str]:
        """Rotate the refresh token.

        The new token is written with a conditional update on the presented
        one, so of two concurrent refreshes with the same token only one can
        succeed.

        Args:
            presented: Refresh token sent by the client

        Returns:
            Tuple of (account, access_token, refresh_token)

        Raises:
            InvalidTokenError: Bad signature, expired, wrong actor type,
                unknown account, token no longer current, or lost race
        """
        try:
            payload = decode_refresh_token(presented, self.actor_type)
            account_id = UUID(payload["sub"])
        except (JWTError, ValueError) as e:
            raise InvalidTokenError from e

        account = await self.get_by_id(account_id)
        if account is None or not account.refresh_token:
            raise InvalidTokenError

        if not secrets.compare_digest(
            account.refresh_token.encode(), presented.encode()
        ):
            logger.warning(
                "refresh_token_mismatch",
                actor_type=self.actor_type.value,
                account_id=str(account.id),
            )
            raise InvalidTokenError

        access_token, refresh_token = self.issue_tokens(account)
        now = datetime.now(UTC)
        result = await self.session.aexecute(
            self._rotate_refresh_token, [refresh_token, now, account.id, presented]
        )
        if not result.was_applied:
            logger.warning(
                "refresh_token_rotation_lost",
                actor_type=self.actor_type.value,
                account_id=str(account.id),
            )
            raise InvalidTokenError

        account.refresh_token = refresh_token
        account.updated_at = now
        logger.info(
            "refresh_token_rotated",
            actor_type=self.actor_type.value,
            account_id=str(account.id),
        )
        return account, access_token, refresh_token

    async def logout(self, account_id: UUID) -> None:
        """Clear the stored refresh token (sole revocation mechanism)."""
        await self.session.aexecute(
            self._set_refresh_token, ["", datetime.now(UTC), account_id]
        )
        logger.info(
            "logout",
            actor_type=self.actor_type.value,
            account_id=str(account_id),
        )

    # ==========================================================================
    # Profile Management
    # ==========================================================================

    async def update_profile(
        self, account_id: UUID, data: UpdateProfileRequest
    ) -> Account:
        """Update profile fields, keeping username and email unique.

        New claims are taken before the account row changes; old claims are
        released afterwards.

        Raises:
            AccountNotFoundError: If the account does not exist
            AccountExistsError: If the new username or email is taken
        """
        account = await self.require(account_id)

        claimed: list[tuple[str, str]] = []
        released: list[tuple[str, str]] = []

        for field, new_value in (
            ("username", data.username),
            ("email", data.email.lower() if data.email else None),
        ):
            old_value = getattr(account, field)
            if new_value is None or new_value == old_value:
                continue
            if not await self._claim(field, new_value, account.id):
                for claimed_field, value in claimed:
                    await self._release(claimed_field, value, account.id)
                raise AccountExistsError(f"{field.capitalize()} already taken", field=field)
            claimed.append((field, new_value))
            released.append((field, old_value))
            setattr(account, field, new_value)

        if data.contact is not None:
            account.contact = data.contact
        if data.address is not None:
            account.address = data.address
        account.updated_at = datetime.now(UTC)

        result = await self.session.aexecute(
            self._update_profile,
            [
                account.username,
                account.email,
                account.contact,
                account.address,
                account.updated_at,
                account.id,
            ],
        )
        if not result.was_applied:
            for claimed_field, value in claimed:
                await self._release(claimed_field, value, account.id)
            raise AccountNotFoundError

        for field, value in released:
            await self._release(field, value, account.id)

        logger.info(
            "profile_updated",
            actor_type=self.actor_type.value,
            account_id=str(account.id),
            fields=[f for f, _ in claimed]
            + [f for f in ("contact", "address") if getattr(data, f) is not None],
        )
        return account

    async def change_password(
        self, account_id: UUID, old_password: str, new_password: str
    ) -> None:
        """Change password after verifying the current one.

        Raises:
            AccountNotFoundError: If the account does not exist
            InvalidCredentialsError: If the current password is wrong
        """
        account = await self.require(account_id)

        is_valid, _ = verify_password(old_password, account.password_hash)
        if not is_valid:
            raise InvalidCredentialsError("Old password is incorrect")

        await self.session.aexecute(
            self._update_password,
            [hash_password(new_password), datetime.now(UTC), account.id],
        )
        logger.info(
            "password_changed",
            actor_type=self.actor_type.value,
            account_id=str(account.id),
        )

    async def delete_account(self, account_id: UUID) -> None:
        """Delete an account and release its username/email claims.

        Courses and payments that reference the account are left in place.
        """
        account = await self.require(account_id)

        await self.session.aexecute(self._delete_account, [account.id])
        await self._release("username", account.username, account.id)
        await self._release("email", account.email, account.id)

        logger.info(
            "account_deleted",
            actor_type=self.actor_type.value,
            account_id=str(account.id),
        )
