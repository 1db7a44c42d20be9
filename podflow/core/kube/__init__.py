from podflow.core.kube.client import (
    KubeEventSource,
    KubeResourceClient,
    load_kube_config,
    split_manifests,
)

__all__ = [
    'KubeEventSource',
    'KubeResourceClient',
    'load_kube_config',
    'split_manifests',
]
