"""
Session-scoped FedEx credential storage.

A frontend session may save its own FedEx account; otherwise the service
falls back to the default account configured in settings (exposed as the
special session id "default").
"""
import logging
import uuid
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shipping_calculator.core.config import settings
from shipping_calculator.core.exceptions import ErrorKind, ShippingError
from shipping_calculator.core.request_logger import RequestLogger, bind_logger
from shipping_calculator.models.fedex_session import FedexSession
from shipping_calculator.services.encryption import decrypt_secret, encrypt_secret
from shipping_calculator.services.shipping_types import Credentials

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"

_STORAGE_USER_MESSAGE = "Unable to access saved FedEx configuration. Please try again."


def default_credentials() -> Optional[Credentials]:
    """Credentials from FEDEX_DEFAULT_* settings, if all three are set."""
    if not settings.has_default_fedex_credentials:
        return None
    return Credentials(
        account_number=settings.FEDEX_DEFAULT_ACCOUNT,
        client_id=settings.FEDEX_DEFAULT_CLIENT_ID,
        client_secret=settings.FEDEX_DEFAULT_CLIENT_SECRET,
    )


def new_session_id() -> str:
    return str(uuid.uuid4())


class FedexCredentialStore:
    """Encrypted credential persistence in `fedex_sessions`."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save(
        self,
        credentials: Credentials,
        session_id: Optional[str] = None,
        log: Optional[RequestLogger] = None,
    ) -> str:
        """
        Replace any credentials stored under ``session_id``.

        Returns:
            The session id used (generated when not supplied)
        """
        log = bind_logger(logger, log)
        session_id = session_id or new_session_id()
        if session_id == DEFAULT_SESSION_ID:
            raise ShippingError(
                ErrorKind.VALIDATION,
                "Attempt to overwrite default credentials session",
                "This session id is reserved.",
            )

        try:
            await self.db.execute(delete(FedexSession).where(FedexSession.session_id == session_id))
            self.db.add(FedexSession(
                session_id=session_id,
                encrypted_account_number=encrypt_secret(credentials.account_number),
                encrypted_client_id=encrypt_secret(credentials.client_id),
                encrypted_client_secret=encrypt_secret(credentials.client_secret),
            ))
            await self.db.flush()
        except SQLAlchemyError as e:
            log.error(f"Failed to store FedEx configuration: {type(e).__name__}")
            raise ShippingError(
                ErrorKind.DATABASE,
                f"Failed to store FedEx configuration: {type(e).__name__}",
                _STORAGE_USER_MESSAGE,
            ) from e

        log.info("FedEx configuration saved", data={"sessionId": session_id})
        return session_id

    async def get(
        self,
        session_id: str,
        log: Optional[RequestLogger] = None,
    ) -> Optional[Credentials]:
        """
        Credentials for a session, or None when nothing is stored.

        The "default" session resolves to the settings credentials.
        """
        log = bind_logger(logger, log)
        if session_id == DEFAULT_SESSION_ID:
            return default_credentials()

        try:
            result = await self.db.execute(
                select(FedexSession).where(FedexSession.session_id == session_id)
            )
            row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            log.error(f"Failed to load FedEx configuration: {type(e).__name__}")
            raise ShippingError(
                ErrorKind.DATABASE,
                f"Failed to load FedEx configuration: {type(e).__name__}",
                _STORAGE_USER_MESSAGE,
            ) from e

        if row is None:
            return None

        try:
            return Credentials(
                account_number=decrypt_secret(row.encrypted_account_number),
                client_id=decrypt_secret(row.encrypted_client_id),
                client_secret=decrypt_secret(row.encrypted_client_secret),
            )
        except ValueError as e:
            log.error("Stored FedEx configuration could not be decrypted")
            raise ShippingError(
                ErrorKind.CONFIGURATION,
                "Stored FedEx configuration could not be decrypted",
                "Saved FedEx configuration is unreadable. Please save your credentials again.",
            ) from e

    async def delete(self, session_id: str, log: Optional[RequestLogger] = None) -> None:
        log = bind_logger(logger, log)
        try:
            await self.db.execute(delete(FedexSession).where(FedexSession.session_id == session_id))
        except SQLAlchemyError as e:
            log.error(f"Failed to delete FedEx configuration: {type(e).__name__}")
            raise ShippingError(
                ErrorKind.DATABASE,
                f"Failed to delete FedEx configuration: {type(e).__name__}",
                _STORAGE_USER_MESSAGE,
            ) from e
        log.info("FedEx configuration deleted", data={"sessionId": session_id})

    @staticmethod
    def has_defaults() -> bool:
        return settings.has_default_fedex_credentials
