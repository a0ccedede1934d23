"""
http.py -- Shared outbound HTTP client for Vault calls.

One VaultHTTPClient is built at startup (api/main.py lifespan, or the CLI's
main()) and handed to every Vault operation. It wraps a requests.Session for
connection pooling and pins the things every call must agree on: the fixed
timeout, the JSON content type, TLS verification, and the redirect cap.

No retries. A timeout or connection failure surfaces to the caller as a
requests.RequestException on the first attempt.
"""

import logging
from typing import Any, Optional, Union

import requests

logger = logging.getLogger("vaultcheck.http")

DEFAULT_TIMEOUT = 10.0
VAULT_TOKEN_HEADER = "X-Vault-Token"


class VaultHTTPClient:
    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        verify: Union[bool, str] = True,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.verify = verify
        # Vault only redirects standby-node requests to the active node.
        self._session.max_redirects = 3
        self._session.headers.update({"Content-Type": "application/json"})

    def request(
        self,
        method: str,
        url: str,
        token: Optional[str] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> requests.Response:
        """Send one request and return the raw response.

        Raises requests.RequestException on transport failure. HTTP error
        statuses are returned, not raised -- see core.vault for that mapping.
        """
        headers = {VAULT_TOKEN_HEADER: token} if token else None
        logger.debug("Making %s request to: %s", method.upper(), url)
        try:
            return self._session.request(method, url, headers=headers, json=json, timeout=self.timeout)
        except requests.exceptions.SSLError as exc:
            logger.error("TLS certificate verification failed for %s: %s", url, exc)
            logger.error("Check VAULT_CA_BUNDLE or the CA certificates mounted into the pod")
            raise

    def get(self, url: str, token: Optional[str] = None) -> requests.Response:
        return self.request("GET", url, token=token)

    def post(self, url: str, token: Optional[str] = None, json: Optional[dict[str, Any]] = None) -> requests.Response:
        return self.request("POST", url, token=token, json=json if json is not None else {})

    def close(self) -> None:
        self._session.close()
