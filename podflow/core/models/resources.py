# podflow/core/models/resources.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr


@dataclass(frozen=True)
class ResourceHandle:
    """Reference to a cluster-side object returned by an apply operation.

    `resource` is the plural collection name used for list/watch requests
    (e.g. 'pods').
    """

    api_version: str
    kind: str
    name: str
    namespace: str
    resource: str

    def describe(self) -> str:
        return f'{self.kind.lower()} {self.namespace}/{self.name}'


class ObjectMeta(BaseModel):
    model_config = ConfigDict(extra='ignore')

    name: StrictStr
    namespace: Optional[StrictStr] = None


class PodStatus(BaseModel):
    model_config = ConfigDict(extra='ignore')

    phase: Optional[StrictStr] = None


class PodObject(BaseModel):
    """Subset of a Pod needed to evaluate readiness."""

    model_config = ConfigDict(extra='ignore')

    kind: Optional[StrictStr] = None
    metadata: ObjectMeta
    status: PodStatus = Field(default_factory=PodStatus)
