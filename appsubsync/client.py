"""Interfaces to a cluster's API and the registry records kept per resource kind."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Protocol

from .meta import GroupVersionResource, KubeObject

DELETE_PROPAGATION_BACKGROUND = "Background"


class ResourceClient(Protocol):
    """Operations on the objects of one resource, optionally within a namespace."""

    def get(self, name: str) -> KubeObject:
        """Return the named object, raising ``NotFoundError`` when absent."""

    def list(self) -> list[KubeObject]:
        """Return every object of the resource."""

    def create(self, obj: KubeObject) -> KubeObject:
        """Create the object and return it as stored."""

    def update(self, obj: KubeObject) -> KubeObject:
        """Replace the object and return it as stored."""

    def patch(self, name: str, patch: bytes) -> KubeObject:
        """Apply a JSON merge patch to the named object."""

    def delete(self, name: str, propagation_policy: str = DELETE_PROPAGATION_BACKGROUND) -> None:
        """Delete the named object."""


class ClusterClient(Protocol):
    """Access to the resources a cluster serves."""

    def resource(self, gvr: GroupVersionResource, namespace: str = "") -> ResourceClient:
        """A client for one resource; an empty namespace means all or cluster scope."""

    def server_preferred_resources(self) -> list[APIResourceList]:
        """The preferred version of every resource the server offers."""


@dataclass(frozen=True)
class APIResource:
    """One resource as reported by server discovery."""

    name: str
    kind: str
    namespaced: bool = False
    verbs: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "verbs", tuple(self.verbs))
        object.__setattr__(self, "categories", tuple(self.categories))

    def supports_all_verbs(self, verbs: Iterable[str]) -> bool:
        """True when the resource allows every one of the given verbs."""
        return set(verbs) <= set(self.verbs)


@dataclass
class APIResourceList:
    """The resources served under one group version, e.g. ``apps/v1``."""

    group_version: str
    resources: list[APIResource] = field(default_factory=list)


@dataclass
class TemplateUnit(KubeObject):
    """A registered resource template and whether it has been applied."""

    source: str = ""
    resource_updated: bool = False
    status_updated: bool = False

    @classmethod
    def from_object(cls, obj: KubeObject, source: str = "") -> TemplateUnit:
        """A unit holding a private copy of the object's content."""
        return cls(data=obj.deep_copy().data, source=source)

    @property
    def template(self) -> KubeObject:
        """The template content, sharing this unit's data."""
        return KubeObject(self.data)


@dataclass
class ResourceMap:
    """Registry entry for one kind: its API resource and its templates."""

    group_version_resource: GroupVersionResource = field(default_factory=GroupVersionResource)
    namespaced: bool = False
    server_updated: bool = False
    template_map: dict[str, TemplateUnit] = field(default_factory=dict)