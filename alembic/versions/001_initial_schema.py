"""Initial asset inventory schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from core.asset_types import LINK_TYPE_NAMES, MONITORED_SUBTYPES, SUBTYPE_NAMES, TYPE_NAMES


# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _dictionary(name: str) -> sa.Table:
    return op.create_table(
        name,
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )


def upgrade() -> None:
    # Dictionaries
    element_types = _dictionary('asset_element_types')
    device_types = _dictionary('asset_device_types')
    link_types = _dictionary('asset_link_types')
    monitor_types = _dictionary('monitor_device_types')

    op.bulk_insert(element_types, [{'id': int(t), 'name': n} for t, n in TYPE_NAMES.items()])
    op.bulk_insert(device_types, [{'id': int(s), 'name': n} for s, n in SUBTYPE_NAMES.items()])
    op.bulk_insert(link_types, [{'id': int(t), 'name': n} for t, n in LINK_TYPE_NAMES.items()])
    op.bulk_insert(
        monitor_types,
        [{'id': i, 'name': SUBTYPE_NAMES[s]} for i, s in enumerate(MONITORED_SUBTYPES, start=1)],
    )

    # Create asset_elements table
    op.create_table(
        'asset_elements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('id_type', sa.Integer(), nullable=False),
        sa.Column('id_subtype', sa.Integer(), nullable=False, server_default='11'),
        sa.Column('id_parent', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(9), nullable=False, server_default='nonactive'),
        sa.Column('priority', sa.SmallInteger(), nullable=False, server_default='5'),
        sa.Column('asset_tag', sa.String(50), nullable=True),
        sa.ForeignKeyConstraint(['id_type'], ['asset_element_types.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['id_subtype'], ['asset_device_types.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['id_parent'], ['asset_elements.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_asset_elements_id', 'asset_elements', ['id'], unique=False)
    op.create_index('ix_asset_elements_name', 'asset_elements', ['name'], unique=True)
    op.create_index('ix_asset_elements_id_type', 'asset_elements', ['id_type'], unique=False)
    op.create_index('ix_asset_elements_id_parent', 'asset_elements', ['id_parent'], unique=False)

    # Create asset_ext_attributes table
    op.create_table(
        'asset_ext_attributes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('keytag', sa.String(40), nullable=False),
        sa.Column('value', sa.String(255), nullable=False),
        sa.Column('id_asset_element', sa.Integer(), nullable=False),
        sa.Column('read_only', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(['id_asset_element'], ['asset_elements.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('keytag', 'id_asset_element', name='uq_ext_keytag_element')
    )
    op.create_index('ix_asset_ext_attributes_id', 'asset_ext_attributes', ['id'], unique=False)
    op.create_index('ix_asset_ext_attributes_keytag', 'asset_ext_attributes', ['keytag'], unique=False)
    op.create_index(
        'ix_asset_ext_attributes_id_asset_element', 'asset_ext_attributes', ['id_asset_element'], unique=False
    )

    # Create asset_group_relations table
    op.create_table(
        'asset_group_relations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('id_asset_group', sa.Integer(), nullable=False),
        sa.Column('id_asset_element', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['id_asset_group'], ['asset_elements.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['id_asset_element'], ['asset_elements.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('id_asset_group', 'id_asset_element', name='uq_group_element')
    )
    op.create_index('ix_asset_group_relations_id', 'asset_group_relations', ['id'], unique=False)
    op.create_index(
        'ix_asset_group_relations_id_asset_group', 'asset_group_relations', ['id_asset_group'], unique=False
    )
    op.create_index(
        'ix_asset_group_relations_id_asset_element', 'asset_group_relations', ['id_asset_element'], unique=False
    )

    # Create asset_links table
    op.create_table(
        'asset_links',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('id_asset_device_src', sa.Integer(), nullable=False),
        sa.Column('src_out', sa.String(16), nullable=True),
        sa.Column('id_asset_device_dest', sa.Integer(), nullable=False),
        sa.Column('dest_in', sa.String(16), nullable=True),
        sa.Column('id_asset_link_type', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['id_asset_device_src'], ['asset_elements.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['id_asset_device_dest'], ['asset_elements.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['id_asset_link_type'], ['asset_link_types.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'id_asset_device_src', 'id_asset_device_dest', 'src_out', 'dest_in', name='uq_link_src_dest_sockets'
        )
    )
    op.create_index('ix_asset_links_id', 'asset_links', ['id'], unique=False)
    op.create_index('ix_asset_links_id_asset_device_src', 'asset_links', ['id_asset_device_src'], unique=False)
    op.create_index('ix_asset_links_id_asset_device_dest', 'asset_links', ['id_asset_device_dest'], unique=False)

    # Monitoring side
    op.create_table(
        'discovered_devices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('id_device_type', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['id_device_type'], ['monitor_device_types.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_discovered_devices_id', 'discovered_devices', ['id'], unique=False)

    op.create_table(
        'monitor_asset_relations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('id_discovered_device', sa.Integer(), nullable=False),
        sa.Column('id_asset_element', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['id_discovered_device'], ['discovered_devices.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['id_asset_element'], ['asset_elements.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_monitor_asset_relations_id', 'monitor_asset_relations', ['id'], unique=False)
    op.create_index(
        'ix_monitor_asset_relations_id_asset_element', 'monitor_asset_relations', ['id_asset_element'], unique=False
    )


def downgrade() -> None:
    op.drop_index('ix_monitor_asset_relations_id_asset_element', table_name='monitor_asset_relations')
    op.drop_index('ix_monitor_asset_relations_id', table_name='monitor_asset_relations')
    op.drop_table('monitor_asset_relations')

    op.drop_index('ix_discovered_devices_id', table_name='discovered_devices')
    op.drop_table('discovered_devices')

    op.drop_index('ix_asset_links_id_asset_device_dest', table_name='asset_links')
    op.drop_index('ix_asset_links_id_asset_device_src', table_name='asset_links')
    op.drop_index('ix_asset_links_id', table_name='asset_links')
    op.drop_table('asset_links')

    op.drop_index('ix_asset_group_relations_id_asset_element', table_name='asset_group_relations')
    op.drop_index('ix_asset_group_relations_id_asset_group', table_name='asset_group_relations')
    op.drop_index('ix_asset_group_relations_id', table_name='asset_group_relations')
    op.drop_table('asset_group_relations')

    op.drop_index('ix_asset_ext_attributes_id_asset_element', table_name='asset_ext_attributes')
    op.drop_index('ix_asset_ext_attributes_keytag', table_name='asset_ext_attributes')
    op.drop_index('ix_asset_ext_attributes_id', table_name='asset_ext_attributes')
    op.drop_table('asset_ext_attributes')

    op.drop_index('ix_asset_elements_id_parent', table_name='asset_elements')
    op.drop_index('ix_asset_elements_id_type', table_name='asset_elements')
    op.drop_index('ix_asset_elements_name', table_name='asset_elements')
    op.drop_index('ix_asset_elements_id', table_name='asset_elements')
    op.drop_table('asset_elements')

    op.drop_table('monitor_device_types')
    op.drop_table('asset_link_types')
    op.drop_table('asset_device_types')
    op.drop_table('asset_element_types')
