"""
k8s.py -- Read the AppRole secret_id out of a Kubernetes Secret.

The secret_id never transits the browser: the login handler passes only the
namespace, secret name, and key name, and this module resolves the value
server-side for the lifetime of that single request.

Config loading: an explicit kubeconfig file when KUBECONFIG names one,
otherwise the in-cluster service account. Both load into a private
Configuration/ApiClient rather than the kubernetes package's global default,
so nothing leaks between requests.

Every failure is raised as a KubeSecretError subclass carrying the HTTP status
the login handler should answer with.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

logger = logging.getLogger("vaultcheck.k8s")

REQUEST_TIMEOUT = 10


class KubeSecretError(Exception):
    """Base class -- an unclassified failure reading the secret."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class KubeClientInitError(KubeSecretError):
    status_code = 500


class KubeSecretNotFound(KubeSecretError):
    status_code = 404


class KubeAccessDenied(KubeSecretError):
    status_code = 403


class KubeUnauthorized(KubeSecretError):
    status_code = 401


class KubeUnavailable(KubeSecretError):
    status_code = 503


class KubeEmptySecret(KubeSecretError):
    status_code = 400


def build_core_api(kubeconfig: Optional[str] = None) -> client.CoreV1Api:
    """Return a CoreV1Api bound to a freshly loaded configuration.

    Raises KubeClientInitError if neither the kubeconfig file nor the
    in-cluster environment can be loaded.
    """
    try:
        if kubeconfig:
            logger.debug("Loading Kubernetes config from KUBECONFIG: %s", kubeconfig)
            api_client = config.new_client_from_config(config_file=kubeconfig)
        else:
            logger.debug("Loading Kubernetes config from in-cluster service account")
            configuration = client.Configuration()
            config.load_incluster_config(client_configuration=configuration)
            api_client = client.ApiClient(configuration)
    except (ConfigException, OSError) as exc:
        logger.error("Failed to load Kubernetes config: %s", exc)
        raise KubeClientInitError(
            "Failed to initialize Kubernetes client. Ensure KUBECONFIG is set or running in cluster."
        ) from exc
    return client.CoreV1Api(api_client)


def _map_api_exception(exc: ApiException, namespace: str, name: str) -> KubeSecretError:
    if exc.status == 404:
        return KubeSecretNotFound(f"Secret '{name}' not found in namespace '{namespace}'")
    if exc.status == 403:
        return KubeAccessDenied(
            f"Access denied: insufficient permissions to read secrets in namespace '{namespace}'. "
            "Check RBAC configuration."
        )
    if exc.status == 401:
        return KubeUnauthorized("Authentication failed: invalid Kubernetes credentials")
    return KubeSecretError(f"Failed to access Kubernetes secret: {exc.status} {exc.reason}")


def fetch_secret_value(
    namespace: str,
    name: str,
    key: str,
    kubeconfig: Optional[str] = None,
    core_api: Optional[client.CoreV1Api] = None,
) -> str:
    """Return the decoded value of ``key`` in Secret ``namespace/name``.

    Args:
        namespace:  Kubernetes namespace holding the secret.
        name:       Secret name.
        key:        Field inside the secret's data map.
        kubeconfig: Optional kubeconfig path; None means in-cluster.
        core_api:   Pre-built client, mainly for tests. Skips config loading.
    """
    api = core_api or build_core_api(kubeconfig)
    logger.debug("Fetching secret %s/%s (key %s)", namespace, name, key)
    try:
        secret = api.read_namespaced_secret(name=name, namespace=namespace, _request_timeout=REQUEST_TIMEOUT)
    except ApiException as exc:
        logger.warning("Kubernetes API error reading %s/%s: %s %s", namespace, name, exc.status, exc.reason)
        raise _map_api_exception(exc, namespace, name) from exc
    except urllib3.exceptions.HTTPError as exc:
        logger.warning("Kubernetes API unreachable reading %s/%s: %s", namespace, name, exc)
        raise KubeUnavailable("Unable to connect to Kubernetes API. Check cluster configuration.") from exc

    data = secret.data or {}
    logger.debug("Secret %s/%s fetched, available keys: %s", namespace, name, sorted(data))
    encoded = data.get(key)
    if not encoded:
        raise KubeSecretNotFound(f"Secret key '{key}' not found in secret '{name}' in namespace '{namespace}'")

    try:
        value = base64.b64decode(encoded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise KubeEmptySecret(f"Secret key '{key}' is empty or invalid in secret '{name}'") from exc
    if not value:
        raise KubeEmptySecret(f"Secret key '{key}' is empty or invalid in secret '{name}'")
    logger.debug("Secret value decoded, length: %d", len(value))
    return value
