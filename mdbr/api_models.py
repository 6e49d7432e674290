from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidResourceError
from .kinds import MONGODB


QUANTITY_RE = re.compile(r"^\d+(\.\d+)?(Ki|Mi|Gi|Ti|Pi|Ei|k|M|G|T|P|E)?$")


class MongoDBSpec(BaseModel):
    replicas: int | None = Field(None, ge=1, description="Desired mongod replica count (default 1)")
    storage: str | None = Field(None, description="Volume size per replica, e.g. 100Gi (default 100Gi)")

    @field_validator("storage")
    @classmethod
    def _storage_is_quantity(cls, v: str | None) -> str | None:
        if v is not None and not QUANTITY_RE.match(v):
            raise ValueError(f"storage must be a quantity such as 100Gi, got {v!r}")
        return v


class MongoDBStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    stateful_set_status: dict[str, Any] = Field(default_factory=dict, alias="statefulSetStatus")
    service_status: dict[str, Any] = Field(default_factory=dict, alias="serviceStatus")
    cluster_ip: str | None = Field(None, alias="clusterIP")


class MongoDB(BaseModel):
    """The parent resource as stored in the API server."""

    model_config = ConfigDict(populate_by_name=True)

    api_version: str = Field(MONGODB.api_version, alias="apiVersion")
    kind: str = MONGODB.kind
    metadata: dict[str, Any] = Field(default_factory=dict)
    spec: MongoDBSpec = Field(default_factory=MongoDBSpec)
    status: MongoDBStatus = Field(default_factory=MongoDBStatus)

    @property
    def name(self) -> str:
        return self.metadata.get("name", "")

    @property
    def namespace(self) -> str:
        return self.metadata.get("namespace", "")

    @property
    def labels(self) -> dict[str, str]:
        return dict(self.metadata.get("labels") or {})

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> MongoDB:
        try:
            return cls.model_validate(obj)
        except ValidationError as e:
            meta = obj.get("metadata") or {}
            raise InvalidResourceError(
                f"{meta.get('namespace')}/{meta.get('name')} is not a valid MongoDB: {e.error_count()} error(s): {e}"
            ) from e

    def to_object(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class EnqueueResponse(BaseModel):
    key: str
    queued: bool = True


class KeyStatusModel(BaseModel):
    key: str
    last_result: str = Field(..., description="ok|error")
    fail_count: int = 0
    last_error: str | None = None
    updated_at: str
