# bmw_saver/providers/identity.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import requests

from ..types import Namespace

log = logging.getLogger(__name__)

METADATA_URL = "http://metadata.google.internal/computeMetadata/v1/"
METADATA_HEADERS = {"Metadata-Flavor": "Google"}
METADATA_TIMEOUT = 5

NAMESPACE_ENV = "NAMESPACE"
EKS_CLUSTER_NAME_ENV = "EKS_CLUSTER_NAME"


@dataclass(frozen=True)
class GKEIdentity:
    project_id: str
    location: str
    cluster: str

    @property
    def cluster_path(self) -> str:
        return f"projects/{self.project_id}/locations/{self.location}/clusters/{self.cluster}"

    def node_pool_path(self, pool: str) -> str:
        return f"{self.cluster_path}/nodePools/{pool}"


def read_metadata(path: str, session: requests.Session | None = None) -> str:
    http = session or requests
    resp = http.get(METADATA_URL + path, headers=METADATA_HEADERS, timeout=METADATA_TIMEOUT)
    resp.raise_for_status()
    return resp.text.strip()


def gke_identity_from_metadata(session: requests.Session | None = None) -> GKEIdentity:
    ident = GKEIdentity(
        project_id=read_metadata("project/project-id", session),
        location=read_metadata("instance/attributes/cluster-location", session),
        cluster=read_metadata("instance/attributes/cluster-name", session),
    )
    log.info(f"GKE identity from metadata: project={ident.project_id} location={ident.location} cluster={ident.cluster}")
    return ident


def current_namespace() -> Namespace:
    return Namespace(os.getenv(NAMESPACE_ENV, "default"))


def eks_cluster_name() -> str:
    name = os.getenv(EKS_CLUSTER_NAME_ENV, "")
    if not name:
        raise RuntimeError(f"{EKS_CLUSTER_NAME_ENV} environment variable is not set")
    return name
