"""Global constants."""

import re
from datetime import timedelta
from pathlib import Path

__all__ = [
    "CLUSTER_NAME_LABEL",
    "CLUSTER_NAME_REGEX",
    "CONFIGURATION_PATH",
    "CONFIGURATION_PATH_ENV",
    "CONNECT_GATEWAY_PORT",
    "DEFAULT_TEMPLATE_LABEL",
    "DEFAULT_TEMPLATE_VALUE",
    "HOST_ID_ANNOTATION",
    "KUBECONFIG_SECRET_SUFFIX",
    "LABEL_KEY_REGEX",
    "LABEL_UPDATE_BACKOFF",
    "LABEL_UPDATE_RETRIES",
    "LABEL_VALUE_REGEX",
    "PLATFORM_PREFIX",
    "PROMETHEUS_METRICS_LABEL",
    "PROMETHEUS_METRICS_SUBDOMAIN",
    "SERVICE_ACCOUNT_TOKEN_PATH",
    "SYSTEM_LABEL_PREFIXES",
    "TEMPLATE_ANNOTATION",
    "TEMPLATE_DESCRIPTION_ANNOTATION",
    "TEMPLATE_NAME_REGEX",
    "TRUSTED_COMPUTE_LABEL",
    "ZERO_UUID",
]

CONFIGURATION_PATH = Path("/etc/cluster-manager/config.yaml")
"""Default path to the service configuration."""

CONFIGURATION_PATH_ENV = "CLUSTER_MANAGER_CONFIG_PATH"
"""Environment variable that overrides the configuration path."""

SERVICE_ACCOUNT_TOKEN_PATH = Path(
    "/var/run/secrets/kubernetes.io/serviceaccount/token"
)
"""Where Kubernetes mounts the token of the pod service account."""

PLATFORM_PREFIX = "edge-orchestrator.intel.com"
"""Prefix of labels and annotations owned by the platform."""

SYSTEM_LABEL_PREFIXES = [
    PLATFORM_PREFIX,
    "cluster.x-k8s.io",
    "topology.cluster.x-k8s.io",
    "prometheusMetricsURL",
    "trusted-compute-compatible",
]
"""Default label key prefixes that are never exposed to or set by users."""

CLUSTER_NAME_LABEL = "cluster.x-k8s.io/cluster-name"
"""Label tying a ``Machine`` (or binding) to its owning cluster."""

HOST_ID_ANNOTATION = "intelmachine.infrastructure.cluster.x-k8s.io/host-id"
"""Annotation on provider machines holding the tenant-visible node ID."""

TEMPLATE_ANNOTATION = f"{PLATFORM_PREFIX}/template"
"""Annotation on clusters recording the template they were created from."""

TEMPLATE_DESCRIPTION_ANNOTATION = "description"
"""Annotation on cluster templates holding the free-form description."""

DEFAULT_TEMPLATE_LABEL = "default"
"""Label key marking the default template of a project."""

DEFAULT_TEMPLATE_VALUE = "true"
"""Label value marking the default template of a project."""

PROMETHEUS_METRICS_LABEL = "prometheusMetricsURL"
"""Label carrying the metrics endpoint host of a cluster."""

PROMETHEUS_METRICS_SUBDOMAIN = "metrics-node"
"""Subdomain of the cluster domain that serves node metrics."""

TRUSTED_COMPUTE_LABEL = "trusted-compute-compatible"
"""Label recording whether the cluster host supports trusted compute."""

KUBECONFIG_SECRET_SUFFIX = "-kubeconfig"
"""Suffix appended to a cluster name to get its kubeconfig ``Secret``."""

CONNECT_GATEWAY_PORT = 443
"""Port of the external connect gateway written into kubeconfigs."""

ZERO_UUID = "00000000-0000-0000-0000-000000000000"
"""Nil project ID, which is never a valid tenant."""

LABEL_UPDATE_RETRIES = 12
"""Default number of retries of a conflicting label update."""

LABEL_UPDATE_BACKOFF = timedelta(milliseconds=250)
"""Default delay between retries of a conflicting label update."""

CLUSTER_NAME_REGEX = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9.-]*[a-zA-Z0-9]$")
"""Regular expression matching valid cluster names."""

LABEL_KEY_REGEX = re.compile(
    r"^(([A-Za-z0-9][-A-Za-z0-9_.]{0,250})?[A-Za-z0-9]\/)?"
    r"([A-Za-z0-9][-A-Za-z0-9_.]{0,61})?[A-Za-z0-9]$"
)
"""Regular expression matching valid Kubernetes label keys."""

LABEL_VALUE_REGEX = re.compile(
    r"^(([A-Za-z0-9][-A-Za-z0-9_.]{0,61})?[A-Za-z0-9])?$"
)
"""Regular expression matching valid Kubernetes label values."""

TEMPLATE_NAME_REGEX = re.compile(
    r"^(?P<name>.*)-(?P<version>v\d+\.\d+\.\d+.*)$"
)
"""Regular expression splitting a template resource name.

The resource name of a cluster template is ``<name>-<version>`` where the
version is a SemVer string with a leading ``v``. The split happens at the last
hyphen that is followed by such a version.
"""
