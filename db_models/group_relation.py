# db_models/group_relation.py
from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db_base import Base


class AssetGroupRelation(Base):
    __tablename__ = "asset_group_relations"
    __table_args__ = (
        UniqueConstraint("id_asset_group", "id_asset_element", name="uq_group_element"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    id_asset_group: Mapped[int] = mapped_column(
        ForeignKey("asset_elements.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    id_asset_element: Mapped[int] = mapped_column(
        ForeignKey("asset_elements.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
