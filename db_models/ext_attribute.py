# db_models/ext_attribute.py
from sqlalchemy import String, Boolean, ForeignKey, UniqueConstraint, false
from sqlalchemy.orm import Mapped, mapped_column

from db_base import Base


class AssetExtAttribute(Base):
    __tablename__ = "asset_ext_attributes"
    __table_args__ = (
        UniqueConstraint("keytag", "id_asset_element", name="uq_ext_keytag_element"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    keytag: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        index=True,
    )

    value: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    id_asset_element: Mapped[int] = mapped_column(
        ForeignKey("asset_elements.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # System managed attributes are replaced as a whole on every update
    read_only: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
