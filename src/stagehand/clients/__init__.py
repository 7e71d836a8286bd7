from stagehand.clients.kubernetes import KIND_APIS, KubernetesClient, format_selector

__all__ = ["KIND_APIS", "KubernetesClient", "format_selector"]
