# api/assets/models.py
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from core.asset_types import DEFAULT_PRIORITY, DeviceSubtype, LinkType


# ---------- Value types passed between the asset layers ----------

class AssetElement(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int = 0
    name: str = ""
    status: str = "nonactive"
    priority: int = DEFAULT_PRIORITY
    type_id: int = 0
    subtype_id: int = int(DeviceSubtype.N_A)
    parent_id: int | None = None
    asset_tag: str | None = None


class WebAssetElement(AssetElement):
    ext_name: str = ""
    type_name: str = ""
    subtype_name: str = ""
    parent_name: str | None = None
    parent_type_id: int | None = None


class ExtAttrValue(BaseModel):
    value: str
    read_only: bool = False


class AssetLink(BaseModel):
    """A power link to be written."""

    src: int
    dest: int
    src_out: str | None = None
    dest_in: str | None = None
    link_type: int = int(LinkType.POWER_CHAIN)


class DbAssetLink(BaseModel):
    """A power link read back, described from the fed device's side."""

    src_id: int
    dest_id: int
    src_name: str
    src_socket: str | None = None
    dest_socket: str | None = None


class GroupRef(BaseModel):
    id: int
    name: str
    ext_name: str = ""


class ParentRef(BaseModel):
    id: int
    name: str
    ext_name: str = ""
    type_id: int
    subtype_id: int


class ContainedAsset(BaseModel):
    id: int
    name: str
    type_id: int
    subtype_id: int
    status: str


# ---------- Requests ----------

class PowerIn(BaseModel):
    src_name: str = Field(..., min_length=1, description="External name of the feeding device")
    src_socket: str | None = None
    dest_socket: str | None = None


class AssetPayload(BaseModel):
    """One asset as sent by the UI; unknown top-level keys become ext attributes."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    name: str | None = None
    type: str | None = None
    sub_type: str | None = None
    location: str | None = None
    status: str | None = None
    priority: str | int | None = None
    asset_tag: str | None = None
    powers: list[PowerIn] = Field(default_factory=list)
    groups: list[str] = Field(default_factory=list)
    ext: dict[str, Any] | list[dict[str, Any]] = Field(default_factory=dict)


# ---------- Responses ----------

class ExtAttrRead(BaseModel):
    key: str
    value: str
    read_only: bool


class GroupRead(BaseModel):
    id: str
    name: str


class PowerRead(BaseModel):
    src_name: str
    src_id: str
    src_socket: str | None = None
    dest_socket: str | None = None


class ParentRead(BaseModel):
    id: str
    name: str
    type: str
    sub_type: str


class AssetDetail(BaseModel):
    id: str
    name: str
    status: str
    priority: str
    type: str
    sub_type: str
    location: str | None = None
    location_id: str | None = None
    location_type: str | None = None
    asset_tag: str | None = None
    ext: list[ExtAttrRead] = Field(default_factory=list)
    groups: list[GroupRead] = Field(default_factory=list)
    powers: list[PowerRead] = Field(default_factory=list)
    parents: list[ParentRead] = Field(default_factory=list)


class ShortAsset(BaseModel):
    id: str
    name: str


class ContainedAssetRead(BaseModel):
    id: str
    name: str
    type: str
    sub_type: str
    status: str


class AssetCreated(BaseModel):
    id: str


class DeleteStatus(BaseModel):
    asset: str
    status: str
    reason: str | None = None


class ImportReport(BaseModel):
    imported_lines: int
    errors: list[tuple[int, str]] = Field(default_factory=list)
