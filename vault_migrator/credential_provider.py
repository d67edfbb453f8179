"""
Credential Provider Module

This module turns environment principals into authenticated sessions.
Environments that declare a service principal log in with it; all others
reuse the ambient session (Azure CLI login, managed identity or the
AZURE_* environment variables picked up by DefaultAzureCredential).
"""

import logging
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from azure.core.credentials import TokenCredential
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import ClientSecretCredential, DefaultAzureCredential

from .config.models import PrincipalSpec
from .exceptions import AuthenticationError

logger = logging.getLogger(__name__)

ARM_SCOPE = "https://management.azure.com/.default"


@dataclass
class AuthSession:
    """
    An authenticated identity.

    Attributes:
        credential: Azure credential used by every service of the session
        tenant_id: Tenant the identity signed in to, if known
        client_id: Application id for service principals
        subscription_id: Subscription left active by the login, if any
    """

    credential: TokenCredential
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    subscription_id: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.tenant_id or "", self.client_id or "")

    def describe(self) -> str:
        """Return a safe representation for logging."""
        tenant = _mask(self.tenant_id) if self.tenant_id else "default"
        client = self.client_id or "ambient"
        return f"AuthSession(tenant={tenant}, client={client})"


class Authenticator(ABC):
    """Produces authenticated sessions for the migration pipeline."""

    @abstractmethod
    def login(self, principal: PrincipalSpec) -> AuthSession:
        """Log in with a service principal."""

    @abstractmethod
    def current_session(self) -> Optional[AuthSession]:
        """Return the ambient session, or None if nobody is logged in."""


def _mask(value: str) -> str:
    """Mask an id for logs (show first 8 chars)."""
    return value[:8] + "..." if len(value) > 8 else value


class CredentialAuthenticator(Authenticator):
    """
    Authenticator backed by azure-identity.

    Each login is verified by acquiring an ARM token, so a bad secret fails
    the authenticate step instead of the first API call. Credentials are
    cached per (tenant, app id).
    """

    def __init__(
        self,
        default_subscription_id: Optional[str] = None,
        verify: bool = True,
    ) -> None:
        self.default_subscription_id = default_subscription_id or os.getenv(
            "AZURE_SUBSCRIPTION_ID"
        )
        self.verify = verify
        self._session_cache: Dict[Tuple[str, str], AuthSession] = {}
        self._ambient: Optional[AuthSession] = None
        self._current_key: Optional[Tuple[str, str]] = None
        self._lock = threading.Lock()

    def login(self, principal: PrincipalSpec) -> AuthSession:
        with self._lock:
            return self._login(principal)

    def current_session(self) -> Optional[AuthSession]:
        with self._lock:
            return self._current_session()

    def _login(self, principal: PrincipalSpec) -> AuthSession:
        key = (principal.tenant, principal.app_id)
        if key in self._session_cache:
            session = self._session_cache[key]
        else:
            logger.debug(
                f"Creating new credential for tenant {_mask(principal.tenant)} "
                f"(app {principal.app_id})"
            )
            credential = ClientSecretCredential(
                tenant_id=principal.tenant,
                client_id=principal.app_id,
                client_secret=principal.secret.get_secret_value(),
            )
            session = AuthSession(
                credential=credential,
                tenant_id=principal.tenant,
                client_id=principal.app_id,
                subscription_id=self.default_subscription_id,
            )
            self._verify(session)
            self._session_cache[key] = session

        self._log_switch(session)
        return session

    def _current_session(self) -> Optional[AuthSession]:
        if self._ambient is None:
            session = AuthSession(
                credential=DefaultAzureCredential(),
                tenant_id=os.getenv("AZURE_TENANT_ID"),
                client_id=os.getenv("AZURE_CLIENT_ID"),
                subscription_id=self.default_subscription_id,
            )
            try:
                self._verify(session)
            except AuthenticationError as e:
                logger.warning(f"No usable ambient Azure login: {e.message}")
                return None
            self._ambient = session

        self._log_switch(self._ambient)
        return self._ambient

    def _verify(self, session: AuthSession) -> None:
        if not self.verify:
            return
        try:
            session.credential.get_token(ARM_SCOPE)
        except ClientAuthenticationError as e:
            raise AuthenticationError(
                f"Login failed for {session.describe()}",
                tenant_id=session.tenant_id,
                cause=e,
            ) from e

    def _log_switch(self, session: AuthSession) -> None:
        if self._current_key != session.key:
            logger.info(f"Using {session.describe()}")
            self._current_key = session.key

    def clear_cache(self) -> None:
        """Clear credential cache. Useful for testing or credential refresh."""
        logger.debug("Clearing credential cache")
        self._session_cache.clear()
        self._ambient = None
        self._current_key = None
