"""
Custom Exception Hierarchy for Vault Migrator

This module provides the exception hierarchy used by the migration pipeline.
Each error carries structured context so that step outcomes and migration
logs can explain exactly what failed and where.

Fatal errors (AuthenticationError, ProvisionError) abort the remaining steps
of the current environment only. Every other migration error is recoverable
and is recorded as a warning on the environment's MigrationResult.
"""

from typing import Any, Dict, Optional

from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    ResourceNotFoundError,
)


class VaultMigratorError(Exception):
    """
    Base exception class for all Vault Migrator errors.

    Provides structured error information including context, error codes,
    and optional recovery suggestions.
    """

    fatal: bool = False

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
        recovery_suggestion: Optional[str] = None,
    ) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error message
            error_code: Optional error code for programmatic handling
            context: Optional dictionary with error context
            cause: Optional underlying exception that caused this error
            recovery_suggestion: Optional suggestion for error recovery
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause
        self.recovery_suggestion = recovery_suggestion

    def __str__(self) -> str:
        """Return a formatted error message with context."""
        result = self.message
        if self.error_code:
            result = f"[{self.error_code}] {result}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            result += f" (context: {context_str})"
        if self.cause:
            result += f" (caused by: {self.cause})"
        if self.recovery_suggestion:
            result += f" (suggestion: {self.recovery_suggestion})"
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None,
            "recovery_suggestion": self.recovery_suggestion,
            "fatal": self.fatal,
        }


def _with_context(kwargs: Dict[str, Any], **values: Any) -> Dict[str, Any]:
    """Merge non-empty keyword values into kwargs['context']."""
    context = kwargs.get("context") or {}
    for key, value in values.items():
        if value:
            context[key] = value
    kwargs["context"] = context
    return kwargs


# Subscription context
class ContextSwitchError(VaultMigratorError):
    """Raised when the active subscription cannot be switched or read."""

    def __init__(
        self, message: str, subscription_id: Optional[str] = None, **kwargs: Any
    ) -> None:
        kwargs = _with_context(kwargs, subscription_id=subscription_id)
        kwargs.setdefault("error_code", "CONTEXT_SWITCH_FAILED")
        kwargs.setdefault(
            "recovery_suggestion",
            "Check that the signed-in identity has access to the subscription",
        )
        super().__init__(message, **kwargs)


class AuthenticationError(VaultMigratorError):
    """Raised when login for an environment fails."""

    fatal = True

    def __init__(
        self, message: str, tenant_id: Optional[str] = None, **kwargs: Any
    ) -> None:
        kwargs = _with_context(kwargs, tenant_id=tenant_id)
        kwargs.setdefault("error_code", "AUTHENTICATION_FAILED")
        kwargs.setdefault(
            "recovery_suggestion",
            "Try running 'az login' or check the service principal credentials",
        )
        super().__init__(message, **kwargs)


# Provisioning (fatal)
class ProvisionError(VaultMigratorError):
    """Raised when a resource group or key vault cannot be ensured."""

    fatal = True

    def __init__(
        self,
        message: str,
        subscription_id: Optional[str] = None,
        resource_name: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        kwargs = _with_context(
            kwargs, subscription_id=subscription_id, resource_name=resource_name
        )
        kwargs.setdefault("error_code", "PROVISION_FAILED")
        super().__init__(message, **kwargs)


# Recoverable step errors
class PolicyError(VaultMigratorError):
    """Raised when an access policy cannot be applied to the target vault."""

    def __init__(
        self,
        message: str,
        vault_name: Optional[str] = None,
        object_id: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        kwargs = _with_context(kwargs, vault_name=vault_name, object_id=object_id)
        kwargs.setdefault("error_code", "ACCESS_POLICY_FAILED")
        kwargs.setdefault(
            "recovery_suggestion",
            "Grant the access policy manually; the identity lacks vault access until then",
        )
        super().__init__(message, **kwargs)


class TagError(VaultMigratorError):
    """Raised when vault tags cannot be read or applied."""

    def __init__(
        self, message: str, vault_name: Optional[str] = None, **kwargs: Any
    ) -> None:
        kwargs = _with_context(kwargs, vault_name=vault_name)
        kwargs.setdefault("error_code", "TAG_UPDATE_FAILED")
        super().__init__(message, **kwargs)


class SecretItemError(VaultMigratorError):
    """Raised when a single secret cannot be read or written."""

    def __init__(
        self, message: str, secret_name: Optional[str] = None, **kwargs: Any
    ) -> None:
        kwargs = _with_context(kwargs, secret_name=secret_name)
        kwargs.setdefault("error_code", "SECRET_COPY_FAILED")
        super().__init__(message, **kwargs)


class SecretEnumerationError(VaultMigratorError):
    """Raised when the secrets of the source vault cannot be listed."""

    def __init__(
        self, message: str, vault_name: Optional[str] = None, **kwargs: Any
    ) -> None:
        kwargs = _with_context(kwargs, vault_name=vault_name)
        kwargs.setdefault("error_code", "SECRET_ENUMERATION_FAILED")
        kwargs.setdefault(
            "recovery_suggestion",
            "Check that the source vault is reachable and grants 'list' on secrets",
        )
        super().__init__(message, **kwargs)


class InventoryError(VaultMigratorError):
    """Raised when keys or certificates cannot be enumerated."""

    def __init__(
        self,
        message: str,
        vault_name: Optional[str] = None,
        item_type: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        kwargs = _with_context(kwargs, vault_name=vault_name, item_type=item_type)
        kwargs.setdefault("error_code", "INVENTORY_FAILED")
        super().__init__(message, **kwargs)


class NetworkError(VaultMigratorError):
    """Raised when the virtual network cannot be read or replicated."""

    def __init__(
        self,
        message: str,
        vnet_name: Optional[str] = None,
        subnet_name: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        kwargs = _with_context(kwargs, vnet_name=vnet_name, subnet_name=subnet_name)
        kwargs.setdefault("error_code", "NETWORK_REPLICATION_FAILED")
        super().__init__(message, **kwargs)


# Configuration-related exceptions
class ConfigurationError(VaultMigratorError):
    """Base class for configuration-related errors."""

    pass


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration validation fails."""

    def __init__(
        self, message: str, config_section: Optional[str] = None, **kwargs: Any
    ) -> None:
        kwargs = _with_context(kwargs, config_section=config_section)
        kwargs.setdefault("error_code", "INVALID_CONFIG")
        kwargs.setdefault(
            "recovery_suggestion", "Check configuration file and environment variables"
        )
        super().__init__(message, **kwargs)


class MissingConfigurationError(ConfigurationError):
    """Raised when required configuration is missing."""

    def __init__(
        self, message: str, missing_keys: Optional[list[str]] = None, **kwargs: Any
    ) -> None:
        kwargs = _with_context(kwargs, missing_keys=missing_keys)
        kwargs.setdefault("error_code", "MISSING_CONFIG")
        kwargs.setdefault(
            "recovery_suggestion",
            f"Set required configuration: {', '.join(missing_keys)}"
            if missing_keys
            else "Set required configuration",
        )
        super().__init__(message, **kwargs)


def wrap_azure_exception(
    exc: AzureError, context: Optional[Dict[str, Any]] = None
) -> VaultMigratorError:
    """
    Wrap an Azure SDK exception that no component translated.

    Callers that know which step failed raise the step-specific error
    instead; this covers SDK errors surfacing outside those paths.

    Args:
        exc: The original exception
        context: Optional context information

    Returns:
        VaultMigratorError: Wrapped exception with enhanced context
    """
    context = dict(context or {})
    status_code = getattr(exc, "status_code", None)
    if status_code is not None:
        context["status_code"] = status_code

    if isinstance(exc, ClientAuthenticationError):
        return AuthenticationError(
            f"Azure authentication failed: {exc}", context=context, cause=exc
        )
    if isinstance(exc, ResourceNotFoundError):
        return VaultMigratorError(
            f"Azure resource not found: {exc}",
            error_code="RESOURCE_NOT_FOUND",
            context=context,
            cause=exc,
        )
    return VaultMigratorError(
        f"Azure operation failed: {exc}",
        error_code="AZURE_ERROR",
        context=context,
        cause=exc,
    )
