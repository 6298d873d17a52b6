# db_models/asset.py
from sqlalchemy import String, SmallInteger, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from db_base import Base


class AssetElementType(Base):
    __tablename__ = "asset_element_types"

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
    )


class AssetDeviceType(Base):
    __tablename__ = "asset_device_types"

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
    )


class AssetElement(Base):
    __tablename__ = "asset_elements"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    # Internal name, e.g. "ups-12"; the display name lives in ext attribute "name"
    name: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        index=True,
        nullable=False,
    )

    id_type: Mapped[int] = mapped_column(
        ForeignKey("asset_element_types.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    id_subtype: Mapped[int] = mapped_column(
        ForeignKey("asset_device_types.id", ondelete="RESTRICT"),
        nullable=False,
        default=11,
        server_default="11",
    )

    id_parent: Mapped[int | None] = mapped_column(
        ForeignKey("asset_elements.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    status: Mapped[str] = mapped_column(
        String(9),
        nullable=False,
        default="nonactive",
        server_default="nonactive",
    )

    priority: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
        default=5,
        server_default="5",
    )

    asset_tag: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )
