"""Builds store clients from account credentials kept in the secret store."""

import asyncio

import aioboto3
from motor.motor_asyncio import AsyncIOMotorClient

from migration_monitor.clients.dead_letter import DeadLetterContainer
from migration_monitor.clients.secrets import VaultSecretStore
from migration_monitor.config import Settings
from migration_monitor.core.constants import (
    K_CONNECTION_STRING,
    OBJECT_STORE_SECRET,
    RECORD_STORE_SECRET,
)
from migration_monitor.core.exceptions import SecretStoreError
from migration_monitor.core.logging import get_logger

logger = get_logger(__name__)


class ClientFactory:
    """Creates record-store clients and dead-letter containers per account."""

    def __init__(self, secret_store: VaultSecretStore, settings: Settings):
        self.secret_store = secret_store
        self.settings = settings

    async def _read_secret(self, account_name: str, secret: str) -> dict[str, str]:
        # hvac is synchronous
        return await asyncio.to_thread(self.secret_store.read_secret, f"{account_name}/{secret}")

    async def create_record_client(self, account_name: str, app_name: str) -> AsyncIOMotorClient:
        """Create a MongoDB API client for an account.

        Args:
            account_name: Account whose connection string is stored in the secret store.
            app_name: Application name reported to the server.

        Returns:
            AsyncIOMotorClient: Client (connects lazily on first operation).
        """
        data = await self._read_secret(account_name, RECORD_STORE_SECRET)
        connection_string = data.get(K_CONNECTION_STRING)
        if not connection_string:
            raise SecretStoreError(f"No '{K_CONNECTION_STRING}' in record-store secret of account '{account_name}'")

        logger.info(f"Creating record store client for account '{account_name}' ({app_name})")
        return AsyncIOMotorClient(
            connection_string,
            appname=app_name,
            maxPoolSize=self.settings.record_store_max_pool_size,
            serverSelectionTimeoutMS=self.settings.record_store_timeout_ms,
            socketTimeoutMS=self.settings.record_store_timeout_ms,
        )

    async def create_dead_letter_container(self, account_name: str, container_name: str) -> DeadLetterContainer:
        """Create the dead-letter container handle of one migration.

        Args:
            account_name: Object store account whose credentials are stored in the secret store.
            container_name: Per-migration container (key prefix) name.

        Returns:
            DeadLetterContainer: Container handle.
        """
        if not container_name or not container_name.strip():
            raise ValueError("Dead-letter container name must not be empty")

        data = await self._read_secret(account_name, OBJECT_STORE_SECRET)
        bucket = data.get("bucket")
        if not bucket:
            raise SecretStoreError(f"No 'bucket' in object-store secret of account '{account_name}'")

        session = aioboto3.Session(
            aws_access_key_id=data.get("aws_access_key_id"),
            aws_secret_access_key=data.get("aws_secret_access_key"),
            region_name=data.get("region_name"),
        )
        return DeadLetterContainer(
            session,
            bucket=bucket,
            name=container_name,
            endpoint_url=data.get("endpoint_url"),
        )
