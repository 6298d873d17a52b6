# db_models/__init__.py
from db_models.asset import AssetDeviceType, AssetElement, AssetElementType
from db_models.asset_link import AssetLink, AssetLinkType
from db_models.ext_attribute import AssetExtAttribute
from db_models.group_relation import AssetGroupRelation
from db_models.monitor import DiscoveredDevice, MonitorAssetRelation, MonitorDeviceType

__all__ = [
    "AssetDeviceType",
    "AssetElement",
    "AssetElementType",
    "AssetExtAttribute",
    "AssetGroupRelation",
    "AssetLink",
    "AssetLinkType",
    "DiscoveredDevice",
    "MonitorAssetRelation",
    "MonitorDeviceType",
]
