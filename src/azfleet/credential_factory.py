"""Authentication and Azure management client construction.

authenticate() turns service principal credentials into an AzureClients
bundle: one ClientSecretCredential shared by the resource, network, storage
and compute management clients.

Philosophy:
- Ruthless simplicity: delegate to Azure Identity, don't reinvent
- Fail-fast: incomplete credentials are rejected before any client exists,
  so no resource-management call can happen on an auth failure
- Security first: error messages are sanitized before they are raised

Security:
- No token storage - tokens live inside the Azure Identity credential
- Client secrets from environment variables only
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from azure.core.exceptions import AzureError, ClientAuthenticationError
from azure.identity import ClientSecretCredential
from azure.mgmt.compute import ComputeManagementClient
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.storage import StorageManagementClient

from azfleet.config import (
    CREDENTIAL_ENV_VARS,
    ServicePrincipalCredentials,
    load_credentials_from_env,
)
from azfleet.errors import AuthError
from azfleet.log_sanitizer import LogSanitizer

logger = logging.getLogger(__name__)

ARM_SCOPE = "https://management.azure.com/.default"


@dataclass
class AzureClients:
    """Management clients for one subscription, sharing one credential."""

    subscription_id: str
    credential: Any
    resource: ResourceManagementClient
    network: NetworkManagementClient
    storage: StorageManagementClient
    compute: ComputeManagementClient

    def close(self) -> None:
        """Close every client's transport and the credential."""
        for client in (self.resource, self.network, self.storage, self.compute):
            client.close()
        self.credential.close()

    def __enter__(self) -> "AzureClients":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def authenticate(
    tenant_id: str | None,
    client_id: str | None,
    client_secret: str | None,
    subscription_id: str | None,
    verify: bool = True,
) -> AzureClients:
    """Exchange client credentials for a management session.

    Args:
        tenant_id: Azure AD tenant id
        client_id: Service principal application id
        client_secret: Service principal secret
        subscription_id: Subscription to manage
        verify: Request an ARM token up front so a rejected secret fails
            here instead of on the first create call

    Returns:
        AzureClients bundle

    Raises:
        AuthError: If a value is missing or the token exchange is rejected
    """
    credentials = ServicePrincipalCredentials(
        tenant_id=tenant_id,
        client_id=client_id,
        client_secret=client_secret,
        subscription_id=subscription_id,
    )
    missing = credentials.missing_fields()
    if missing:
        env_names = ", ".join(CREDENTIAL_ENV_VARS[name][0] for name in missing)
        raise AuthError(f"Missing required credentials. Set environment variable(s): {env_names}")

    try:
        credential = ClientSecretCredential(
            tenant_id=tenant_id,
            client_id=client_id,
            client_secret=client_secret,
        )
    except ValueError as e:
        raise AuthError(
            LogSanitizer.create_safe_error_message(e, "Invalid service principal credentials")
        ) from e

    if verify:
        try:
            credential.get_token(ARM_SCOPE)
        except ClientAuthenticationError as e:
            credential.close()
            raise AuthError(
                LogSanitizer.create_safe_error_message(e, "Token exchange rejected")
            ) from e
        except AzureError as e:
            credential.close()
            raise AuthError(
                LogSanitizer.create_safe_error_message(e, "Token exchange failed")
            ) from e

    logger.info(f"Selected subscription: {LogSanitizer.mask_ids(subscription_id)}")

    clients = []
    try:
        for client_class in (
            ResourceManagementClient,
            NetworkManagementClient,
            StorageManagementClient,
            ComputeManagementClient,
        ):
            clients.append(client_class(credential, subscription_id))
    except Exception:
        for client in clients:
            client.close()
        credential.close()
        raise

    resource, network, storage, compute = clients
    return AzureClients(
        subscription_id=subscription_id,
        credential=credential,
        resource=resource,
        network=network,
        storage=storage,
        compute=compute,
    )


def authenticate_from_env(
    environ: Mapping[str, str] | None = None, verify: bool = True
) -> AzureClients:
    """Authenticate with CLIENT_ID / CLIENT_SECRET / TENANT_ID / SUBSCRIPTION_ID.

    Raises:
        AuthError: If any variable is unset or the exchange is rejected
    """
    credentials = load_credentials_from_env(environ)
    return authenticate(
        tenant_id=credentials.tenant_id,
        client_id=credentials.client_id,
        client_secret=credentials.client_secret,
        subscription_id=credentials.subscription_id,
        verify=verify,
    )


__all__ = ["ARM_SCOPE", "AzureClients", "authenticate", "authenticate_from_env"]
