"""MongoDB store handle: owns the Motor client and the Beanie binding for its lifetime."""

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, TypeVar

import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import (
    AutoReconnect,
    ConnectionFailure,
    DuplicateKeyError,
    NetworkTimeout,
    PyMongoError,
    ServerSelectionTimeoutError,
)

from imaginify.core.config import Settings, get_settings
from imaginify.core.exceptions import AppError, ConflictError, StoreUnavailableError, ValidationError
from imaginify.core.logging import get_logger
from imaginify.core.utils import handle_error
from imaginify.models.audit_log import AuditLog
from imaginify.models.credit_ledger import CreditLedgerEntry
from imaginify.models.image import Image
from imaginify.models.user import User

log = get_logger(__name__)

T = TypeVar("T")

DOCUMENT_MODELS = [
    User,
    Image,
    CreditLedgerEntry,
    AuditLog,
]

TRANSIENT_ERRORS = (AutoReconnect, NetworkTimeout, ServerSelectionTimeoutError)


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


class MongoStore:
    """Lazily connects on first use; `close()` releases the client.

    A client may be passed in (tests inject an in-memory one); otherwise one is
    built from the settings on `connect()`.
    """

    def __init__(self, settings: Settings | None = None, client: Any | None = None):
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None
        self._database: AsyncIOMotorDatabase | None = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._database is not None

    @property
    def database(self) -> AsyncIOMotorDatabase:
        if self._database is None:
            raise StoreUnavailableError("Store is not connected")
        return self._database

    async def connect(self) -> AsyncIOMotorDatabase:
        if self._database is not None:
            return self._database
        async with self._lock:
            if self._database is not None:
                return self._database
            try:
                if self._client is None:
                    uri = self.settings.mongodb_uri
                    kwargs = {}
                    # Atlas in Docker: tlsCAFile + tlsDisableOCSPEndpointCheck avoid TLSV1_ALERT_INTERNAL_ERROR
                    if _use_tls(uri):
                        kwargs["tlsCAFile"] = certifi.where()
                        kwargs["tlsDisableOCSPEndpointCheck"] = True
                    self._client = AsyncIOMotorClient(uri, **kwargs)
                database = self._client[self.settings.mongodb_db_name]
                await init_beanie(database=database, document_models=DOCUMENT_MODELS)
            except PyMongoError as e:
                log.error("store_connect_failed", error=str(e))
                raise StoreUnavailableError(f"Could not connect to MongoDB: {e}") from e
            self._database = database
            log.info("store_connected", db=self.settings.mongodb_db_name)
            return database

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None
        self._database = None
        log.info("store_closed")

    async def run(
        self,
        operation: str,
        call: Callable[[], Awaitable[T]],
        retry: bool = True,
    ) -> T:
        """Connect, then run `call` inside the store error path.

        Transient transport errors are retried when `retry` is set; callers
        that must apply at most once pass `retry=False`.
        """
        attempts = 1 + (self.settings.store_max_retries if retry else 0)
        for attempt in range(1, attempts + 1):
            try:
                async with store_errors(operation):
                    await self.connect()
                    return await call()
            except StoreUnavailableError as e:
                if attempt >= attempts or not isinstance(e.__cause__, TRANSIENT_ERRORS):
                    raise
                log.warning("store_retry", operation=operation, attempt=attempt, error=str(e.__cause__))
                await asyncio.sleep(self.settings.store_retry_backoff * attempt)
        raise StoreUnavailableError(f"{operation} failed")  # pragma: no cover


@asynccontextmanager
async def store_errors(operation: str) -> AsyncIterator[None]:
    """Single failure path for store calls: log the cause, raise a normalized AppError."""
    try:
        yield
    except AppError:
        raise
    except PydanticValidationError as e:
        log.warning("store_validation_failed", operation=operation, error=str(e))
        raise ValidationError(details={"errors": e.errors(include_url=False, include_context=False)}) from e
    except DuplicateKeyError as e:
        log.warning("store_duplicate_key", operation=operation, error=str(e))
        raise ConflictError("Record already exists", details={"operation": operation}) from e
    except ConnectionFailure as e:
        log.error("store_unavailable", operation=operation, error=str(e))
        raise StoreUnavailableError(f"{operation} failed: {e}") from e
    except PyMongoError as e:
        handle_error(e)
