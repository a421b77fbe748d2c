"""
Token providers for Graph authentication.

Flow:
1. Build an MSAL confidential client for the tenant (once, lazily)
2. acquire_token_for_client() in a worker thread
3. MSAL serves the token from its cache until it is about to expire
"""
import asyncio
import logging
from typing import Optional

import msal

from ..errors import ErrorKind, StorageError

logger = logging.getLogger(__name__)

LOGIN_BASE_URL = "https://login.microsoftonline.com"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"


class StaticTokenProvider:
    """Provider for a token obtained elsewhere."""

    def __init__(self, token: str):
        self._token = token

    async def get_token(self) -> str:
        return self._token


class ClientCredentialsTokenProvider:
    """
    OAuth2 client-credentials token provider backed by MSAL.

    Usage:
        provider = ClientCredentialsTokenProvider(tenant_id, client_id, secret)
        token = await provider.get_token()
    """

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        scope: str = GRAPH_SCOPE,
        authority: str = LOGIN_BASE_URL,
    ):
        self._authority = f"{authority}/{tenant_id}"
        self._client_id = client_id
        self._client_secret = client_secret
        self._scopes = [scope]
        self._token_cache = msal.TokenCache()
        self._app: Optional[msal.ConfidentialClientApplication] = None

    def _build_app(self) -> msal.ConfidentialClientApplication:
        # Constructing the app performs authority discovery over the network
        if self._app is None:
            self._app = msal.ConfidentialClientApplication(
                client_id=self._client_id,
                client_credential=self._client_secret,
                authority=self._authority,
                token_cache=self._token_cache,
            )
        return self._app

    def _acquire(self) -> dict:
        return self._build_app().acquire_token_for_client(scopes=self._scopes)

    async def get_token(self) -> str:
        try:
            result = await asyncio.to_thread(self._acquire)
        except ValueError as exc:
            raise StorageError(
                ErrorKind.AUTHENTICATION_FAILED,
                f"Could not initialize MSAL client for {self._authority}: {exc}",
            ) from exc

        token = (result or {}).get("access_token")
        if not token:
            error = (result or {}).get("error", "unknown_error")
            description = (result or {}).get("error_description", "No token returned")
            raise StorageError(
                ErrorKind.AUTHENTICATION_FAILED,
                f"Token request failed ({error}): {description}",
            )

        logger.debug(f"[auth] Token acquired ({result.get('token_source', 'identity_provider')})")
        return token
