# db_models/monitor.py
from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from db_base import Base


class MonitorDeviceType(Base):
    __tablename__ = "monitor_device_types"

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
    )


class DiscoveredDevice(Base):
    __tablename__ = "discovered_devices"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    id_device_type: Mapped[int] = mapped_column(
        ForeignKey("monitor_device_types.id", ondelete="RESTRICT"),
        nullable=False,
    )


class MonitorAssetRelation(Base):
    __tablename__ = "monitor_asset_relations"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    id_discovered_device: Mapped[int] = mapped_column(
        ForeignKey("discovered_devices.id", ondelete="RESTRICT"),
        nullable=False,
    )

    id_asset_element: Mapped[int] = mapped_column(
        ForeignKey("asset_elements.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
