"""HashiCorp Vault access for account credentials.

The store is constructed once at startup and passed to whatever needs secrets.
It must be initialized explicitly; reading before that fails loudly instead of
lazily authenticating in the middle of a monitoring round.
"""

import logging
from typing import Any

import hvac
from hvac.exceptions import VaultError
from tenacity import Retrying, before_sleep_log, stop_after_attempt, wait_fixed

from migration_monitor.config import Settings
from migration_monitor.core.exceptions import SecretStoreError, SecretStoreNotInitializedError
from migration_monitor.core.logging import get_logger

logger = get_logger(__name__)


class VaultSecretStore:
    """KV v2 secret reader using token or AppRole authentication."""

    def __init__(self, settings: Settings, client: hvac.Client | None = None):
        """Initialize the secret store (no network calls yet).

        Args:
            settings: Application settings with the Vault coordinates.
            client: Optional pre-built hvac client (used in tests).
        """
        self.settings = settings
        self.url = settings.vault_url
        self.mount_point = settings.vault_mount_point
        self.path_prefix = settings.vault_path_prefix
        self.client = client or hvac.Client(url=self.url, namespace=settings.vault_namespace)
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Authenticate against Vault, retrying a fixed number of times.

        Raises:
            SecretStoreError: If every attempt failed.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.settings.vault_init_attempts),
            wait=wait_fixed(self.settings.vault_init_retry_delay_seconds),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    self._authenticate()
        except Exception as e:
            logger.error(f"Can't initialize secret store '{self.url}': {e}")
            raise SecretStoreError(f"Can't initialize secret store '{self.url}': {e}") from e

        self._initialized = True
        logger.info(f"Secret store initialized: {self.url} (mount '{self.mount_point}')")

    def _authenticate(self) -> None:
        if self.settings.vault_token:
            self.client.token = self.settings.vault_token
        elif self.settings.vault_role_id and self.settings.vault_secret_id:
            self.client.auth.approle.login(
                role_id=self.settings.vault_role_id,
                secret_id=self.settings.vault_secret_id,
            )
        else:
            raise SecretStoreError("Either VAULT_TOKEN or VAULT_ROLE_ID/VAULT_SECRET_ID must be set")

        if not self.client.is_authenticated():
            raise SecretStoreError(f"Vault at '{self.url}' rejected the credentials")

    def _build_secret_path(self, path: str) -> str:
        path = path.strip("/")
        prefix = self.path_prefix.strip("/")
        return f"{prefix}/{path}" if prefix else path

    def read_secret(self, path: str) -> dict[str, Any]:
        """Read a KV v2 secret.

        Args:
            path: Secret path relative to the configured prefix.

        Returns:
            dict[str, Any]: The secret's key/value data.

        Raises:
            SecretStoreNotInitializedError: If ``initialize()`` has not succeeded.
            SecretStoreError: If Vault refused or failed the read.
        """
        if not self._initialized:
            raise SecretStoreNotInitializedError()
        if not path or not path.strip("/"):
            raise ValueError("Secret path must not be empty")

        full_path = self._build_secret_path(path)
        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path,
                mount_point=self.mount_point,
                raise_on_deleted_version=True,
            )
        except VaultError as e:
            logger.error(f"Cannot retrieve secret '{full_path}' from '{self.url}': {e}")
            raise SecretStoreError(f"Cannot retrieve secret '{full_path}': {e}") from e

        return response.get("data", {}).get("data", {})
