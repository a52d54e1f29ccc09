"""Canonical resource kinds and the alias table used to normalise user input."""

from __future__ import annotations

from enum import StrEnum


class ResourceKind(StrEnum):
    """Every kind the engine reads from the cluster."""

    POD = "Pod"
    SERVICE = "Service"
    ENDPOINT_SLICE = "EndpointSlice"
    NAMESPACE = "Namespace"
    CONFIG_MAP = "ConfigMap"
    SECRET = "Secret"
    PERSISTENT_VOLUME_CLAIM = "PersistentVolumeClaim"
    PERSISTENT_VOLUME = "PersistentVolume"
    DEPLOYMENT = "Deployment"
    STATEFUL_SET = "StatefulSet"
    DAEMON_SET = "DaemonSet"
    REPLICA_SET = "ReplicaSet"
    JOB = "Job"
    CRON_JOB = "CronJob"
    INGRESS = "Ingress"
    NETWORK_POLICY = "NetworkPolicy"
    VIRTUAL_SERVICE = "VirtualService"
    DESTINATION_RULE = "DestinationRule"
    GATEWAY = "Gateway"


# Kinds whose objects are Istio custom resources.
ISTIO_KINDS = frozenset(
    {
        ResourceKind.VIRTUAL_SERVICE,
        ResourceKind.DESTINATION_RULE,
        ResourceKind.GATEWAY,
    }
)

# Kinds that are not namespaced.
CLUSTER_SCOPED_KINDS = frozenset({ResourceKind.NAMESPACE, ResourceKind.PERSISTENT_VOLUME})

KIND_ALIASES: dict[str, str] = {
    "pod": "Pod",
    "pods": "Pod",
    "po": "Pod",
    "service": "Service",
    "services": "Service",
    "svc": "Service",
    "endpointslice": "EndpointSlice",
    "endpointslices": "EndpointSlice",
    "namespace": "Namespace",
    "namespaces": "Namespace",
    "ns": "Namespace",
    "configmap": "ConfigMap",
    "configmaps": "ConfigMap",
    "cm": "ConfigMap",
    "secret": "Secret",
    "secrets": "Secret",
    "persistentvolumeclaim": "PersistentVolumeClaim",
    "persistentvolumeclaims": "PersistentVolumeClaim",
    "pvc": "PersistentVolumeClaim",
    "persistentvolume": "PersistentVolume",
    "persistentvolumes": "PersistentVolume",
    "pv": "PersistentVolume",
    "deployment": "Deployment",
    "deployments": "Deployment",
    "deploy": "Deployment",
    "statefulset": "StatefulSet",
    "statefulsets": "StatefulSet",
    "sts": "StatefulSet",
    "daemonset": "DaemonSet",
    "daemonsets": "DaemonSet",
    "ds": "DaemonSet",
    "replicaset": "ReplicaSet",
    "replicasets": "ReplicaSet",
    "rs": "ReplicaSet",
    "job": "Job",
    "jobs": "Job",
    "cronjob": "CronJob",
    "cronjobs": "CronJob",
    "cj": "CronJob",
    "ingress": "Ingress",
    "ingresses": "Ingress",
    "ing": "Ingress",
    "networkpolicy": "NetworkPolicy",
    "networkpolicies": "NetworkPolicy",
    "netpol": "NetworkPolicy",
    "virtualservice": "VirtualService",
    "virtualservices": "VirtualService",
    "vs": "VirtualService",
    "destinationrule": "DestinationRule",
    "destinationrules": "DestinationRule",
    "dr": "DestinationRule",
    "gateway": "Gateway",
    "gateways": "Gateway",
    "gw": "Gateway",
}


def normalize_kind(kind: str) -> str:
    """Map an alias such as ``svc`` or ``deploy`` to its canonical kind.

    Unknown kinds are returned stripped but otherwise untouched so callers can
    still report them back to the user.
    """
    raw = kind.strip()
    return KIND_ALIASES.get(raw.lower(), raw)
