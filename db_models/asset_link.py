# db_models/asset_link.py
from sqlalchemy import String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db_base import Base


class AssetLinkType(Base):
    __tablename__ = "asset_link_types"

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
    )


class AssetLink(Base):
    """Directed power edge from a feeding device to a fed device."""

    __tablename__ = "asset_links"
    __table_args__ = (
        UniqueConstraint(
            "id_asset_device_src",
            "id_asset_device_dest",
            "src_out",
            "dest_in",
            name="uq_link_src_dest_sockets",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    id_asset_device_src: Mapped[int] = mapped_column(
        ForeignKey("asset_elements.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    src_out: Mapped[str | None] = mapped_column(
        String(16),
        nullable=True,
    )

    id_asset_device_dest: Mapped[int] = mapped_column(
        ForeignKey("asset_elements.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    dest_in: Mapped[str | None] = mapped_column(
        String(16),
        nullable=True,
    )

    id_asset_link_type: Mapped[int] = mapped_column(
        ForeignKey("asset_link_types.id", ondelete="RESTRICT"),
        nullable=False,
    )
