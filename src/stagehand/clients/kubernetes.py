"""
Kubernetes cluster client.

Thin async wrapper over the official kubernetes client that speaks in
plain manifest dicts and sorts API failures into retryable and permanent
errors. One instance is passed explicitly to every resource adapter.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, List, Optional

import structlog
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError as TransportError

from stagehand.config import Settings
from stagehand.core.errors import (
    ClusterError,
    ConfigurationError,
    ConflictError,
    TransientClusterError,
)

logger = structlog.get_logger()

# kind -> (API class name, method suffix used by the generated client)
KIND_APIS: Dict[str, tuple[str, str]] = {
    "deployment": ("AppsV1Api", "deployment"),
    "replicaset": ("AppsV1Api", "replica_set"),
    "statefulset": ("AppsV1Api", "stateful_set"),
    "service": ("CoreV1Api", "service"),
    "configmap": ("CoreV1Api", "config_map"),
    "persistentvolumeclaim": ("CoreV1Api", "persistent_volume_claim"),
    "pod": ("CoreV1Api", "pod"),
    "job": ("BatchV1Api", "job"),
}


_MISSING = object()


def is_retryable_status(status_code: int) -> bool:
    """Determine if an API status code is retryable."""
    return status_code in (408, 429, 500, 502, 503, 504)


def format_selector(selector: Dict[str, str]) -> str:
    """Render a label selector dict as 'k1=v1,k2=v2'."""
    return ",".join(f"{k}={v}" for k, v in sorted(selector.items()))


@dataclass
class KubernetesClient:
    """
    Namespaced access to the Kubernetes API.

    Configuration:
        namespace: Namespace all objects live in
        kubeconfig: Path to kubeconfig file (optional)
        context: Kubeconfig context to use (optional)
        timeout: API request timeout in seconds

    Environment variables:
        KUBECONFIG: Standard kubeconfig path
        STAGEHAND_NAMESPACE: Default namespace
        STAGEHAND_KUBE_CONTEXT: Kubeconfig context
    """

    namespace: str = field(default_factory=lambda: os.environ.get("STAGEHAND_NAMESPACE", "default"))
    kubeconfig: Optional[str] = field(default_factory=lambda: os.environ.get("KUBECONFIG"))
    context: Optional[str] = field(default_factory=lambda: os.environ.get("STAGEHAND_KUBE_CONTEXT"))
    timeout: float = 30.0

    # Internal state
    _api_client: Any = field(default=None, repr=False, compare=False)
    _apis: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> KubernetesClient:
        return cls(
            namespace=settings.namespace,
            kubeconfig=settings.kubeconfig or os.environ.get("KUBECONFIG"),
            context=settings.kube_context,
            timeout=settings.request_timeout,
        )

    def _ensure_initialized(self) -> None:
        """Load cluster configuration on first use."""
        if self._api_client is not None:
            return

        # Try in-cluster config first, then kubeconfig
        try:
            k8s_config.load_incluster_config()
        except k8s_config.ConfigException:
            try:
                k8s_config.load_kube_config(
                    config_file=self.kubeconfig,
                    context=self.context,
                )
            except k8s_config.ConfigException as e:
                raise ConfigurationError(f"Failed to load Kubernetes config: {e}") from e

        self._api_client = k8s_client.ApiClient()

    def _api_for(self, kind: str) -> tuple[Any, str]:
        try:
            api_name, suffix = KIND_APIS[kind]
        except KeyError:
            raise ClusterError(f"No Kubernetes API mapping for kind {kind}", {"kind": kind})

        self._ensure_initialized()
        api = self._apis.get(api_name)
        if api is None:
            api = getattr(k8s_client, api_name)(self._api_client)
            self._apis[api_name] = api
        return api, suffix

    async def _run_sync(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        """Run synchronous kubernetes API call in executor."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    def _to_dict(self, obj: Any) -> Dict[str, Any]:
        return self._api_client.sanitize_for_serialization(obj)

    async def _call(
        self,
        verb: str,
        kind: str,
        *args: Any,
        missing_ok: bool = False,
        **kwargs: Any,
    ) -> Any:
        """Invoke '<verb>_namespaced_<kind>'; returns _MISSING on 404 when missing_ok."""
        api, suffix = self._api_for(kind)
        method = getattr(api, f"{verb}_namespaced_{suffix}")
        try:
            return await self._run_sync(
                method,
                *args,
                self.namespace,
                _request_timeout=self.timeout,
                **kwargs,
            )
        except ApiException as exc:
            details = {"kind": kind, "verb": verb, "status": exc.status}
            if exc.status == 404 and missing_ok:
                return _MISSING
            if exc.status == 409:
                raise ConflictError(f"{kind} already exists", details) from exc
            if exc.status is None or is_retryable_status(exc.status):
                logger.warning("k8s_retryable_error", **details, reason=exc.reason)
                raise TransientClusterError(f"{verb} {kind} failed: {exc.reason}", details) from exc
            logger.error("k8s_permanent_error", **details, reason=exc.reason)
            raise ClusterError(f"{verb} {kind} failed: {exc.reason}", details) from exc
        except (TransportError, OSError) as exc:
            logger.warning("k8s_network_error", kind=kind, verb=verb, error=str(exc))
            raise TransientClusterError(f"{verb} {kind} failed: {exc}", {"kind": kind}) from exc

    async def get(self, kind: str, name: str) -> Optional[Dict[str, Any]]:
        """Read an object, returning None if it does not exist."""
        obj = await self._call("read", kind, name, missing_ok=True)
        if obj is _MISSING:
            return None
        return self._to_dict(obj)

    async def create(self, kind: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Create an object from a manifest dict."""
        body = dict(body)
        body.setdefault("metadata", {})
        obj = await self._call("create", kind, body=body)
        logger.info("k8s_object_created", kind=kind, name=body["metadata"].get("name"))
        return self._to_dict(obj)

    async def delete(self, kind: str, name: str) -> bool:
        """Delete an object, returning False if it was already gone."""
        result = await self._call(
            "delete", kind, name, missing_ok=True, propagation_policy="Foreground"
        )
        if result is _MISSING:
            return False
        logger.info("k8s_object_deleted", kind=kind, name=name)
        return True

    async def list(self, kind: str, selector: Dict[str, str]) -> List[Dict[str, Any]]:
        """List objects of a kind matching a label selector."""
        result = await self._call("list", kind, label_selector=format_selector(selector))
        return [self._to_dict(item) for item in result.items]
