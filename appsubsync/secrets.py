"""Filtering secrets and wrapping them into deployable templates."""

from __future__ import annotations

import copy
import logging

from .meta import GroupVersionKind, KubeObject

log = logging.getLogger(__name__)


def clean_up_object(secret: KubeObject) -> KubeObject:
    """Return a copy stripped of server-set fields, typed as a v1 Secret."""
    cleaned = secret.deep_copy()
    cleaned.resource_version = ""
    cleaned.uid = ""
    cleaned.self_link = ""
    cleaned.group_version_kind = GroupVersionKind(version="v1", kind="Secret")
    return cleaned


def package_secret(secret: KubeObject) -> KubeObject:
    """Wrap the secret as the template of a deployable of the same name."""
    deployable = KubeObject({"spec": {"template": copy.deepcopy(secret.data)}})
    deployable.name = secret.name
    deployable.namespace = secret.namespace
    log.debug("Retrieved deployable: %r", deployable)
    return deployable


def apply_filters(secret: KubeObject, subscription: KubeObject) -> tuple[KubeObject, bool]:
    """Clean the secret and report whether the subscription's filters accept it."""
    secret = clean_up_object(secret)
    spec = subscription.data.get("spec") or {}

    if spec.get("packageFilter") is not None:
        package = spec.get("package") or ""
        if package and package != secret.name:
            log.info("Name does not match, skipping: %s|%s", package, secret.name)
            return secret, False

        secret_annotations = secret.annotations
        for key, value in subscription.annotations.items():
            if secret_annotations.get(key, "") != value:
                log.info("Annotation filter does not match: %s|%s|%s", key, value, secret_annotations.get(key, ""))
                return secret, False

    return secret, True