"""Installing or refreshing a custom resource definition from a YAML file."""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path

import yaml

from .client import ClusterClient
from .meta import BadRequestError, GroupVersionResource, KubeObject, NotFoundError

log = logging.getLogger(__name__)

CRD_RESOURCE = GroupVersionResource(
    group="apiextensions.k8s.io", version="v1beta1", resource="customresourcedefinitions"
)


def check_and_install_crd(client: ClusterClient, path: str | os.PathLike[str]) -> KubeObject:
    """Create the definition in the file, or bring an existing one's spec in line.

    Returns the definition as held by the cluster afterwards. File, YAML and
    client errors propagate.
    """
    text = Path(path).read_text(encoding="utf-8")
    document = yaml.safe_load(text)
    if not isinstance(document, dict):
        raise BadRequestError(f"{path} does not hold a resource definition")
    crd = KubeObject(document)
    if not crd.name:
        raise BadRequestError(f"resource definition in {path} has no name")
    log.debug("Loaded CRD %r from %s", crd, path)

    resources = client.resource(CRD_RESOURCE)
    try:
        existing = resources.get(crd.name)
    except NotFoundError:
        log.info("Installing CRD from file: %s", path)
        return resources.create(crd)

    if existing.data.get("spec") == crd.data.get("spec"):
        log.info("CRD %s exists: %s", crd.name, path)
        return existing

    log.info("CRD %s is being updated with %s", crd.name, path)
    spec = crd.data.get("spec")
    if spec is None:
        existing.data.pop("spec", None)
    else:
        existing.data["spec"] = copy.deepcopy(spec)
    return resources.update(existing)