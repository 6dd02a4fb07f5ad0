from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610190900_a1c3e5f7"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('display_name', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.text('1')),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'files',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('filename', sa.String(), nullable=False),
        sa.Column('content_type', sa.String(), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('storage_path', sa.String(), nullable=False, unique=True),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('download_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('share_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_accessed_at', sa.DateTime(), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_by', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_files_filename', 'files', ['filename'])
    op.create_index('ix_files_owner_id', 'files', ['owner_id'])
    op.create_index('ix_files_is_deleted', 'files', ['is_deleted'])

    op.create_table(
        'file_access_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('file_id', sa.String(length=36), sa.ForeignKey('files.id', ondelete='CASCADE'), nullable=False),
        sa.Column('accessed_at', sa.DateTime(), nullable=False),
        sa.Column('access_type', sa.String(length=16), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('user_agent', sa.String(), nullable=True),
        sa.Column('device', sa.String(length=16), nullable=True),
    )
    op.create_index('ix_file_access_events_file_id', 'file_access_events', ['file_id'])

    op.create_table(
        'access_grants',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('file_id', sa.String(length=36), sa.ForeignKey('files.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('granted_by', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('granted_at', sa.DateTime(), nullable=False),
        sa.Column('last_accessed_at', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.UniqueConstraint('file_id', 'user_id', name='uq_access_grant_file_user'),
    )
    op.create_index('ix_access_grants_file_id', 'access_grants', ['file_id'])
    op.create_index('ix_access_grants_user_id', 'access_grants', ['user_id'])

    op.create_table(
        'access_grant_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'grant_id', sa.String(length=36), sa.ForeignKey('access_grants.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('accessed_at', sa.DateTime(), nullable=False),
        sa.Column('access_type', sa.String(length=16), nullable=False),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('user_agent', sa.String(), nullable=True),
    )
    op.create_index('ix_access_grant_events_grant_id', 'access_grant_events', ['grant_id'])

    op.create_table(
        'access_requests',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('file_id', sa.String(length=36), sa.ForeignKey('files.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('requested_role', sa.String(length=16), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('actioned_by', sa.String(length=36), nullable=True),
        sa.Column('actioned_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_access_requests_file_id', 'access_requests', ['file_id'])
    op.create_index('ix_access_requests_user_id', 'access_requests', ['user_id'])
    op.create_index('ix_access_requests_status', 'access_requests', ['status'])

    op.create_table(
        'secure_links',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('file_id', sa.String(length=36), sa.ForeignKey('files.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_by', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('access_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_access_count', sa.Integer(), nullable=True),
        sa.Column('last_accessed_at', sa.DateTime(), nullable=True),
        sa.Column('password_hash', sa.String(), nullable=True),
        sa.Column('require_email', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('allow_preview', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('watermark_enabled', sa.Boolean(), nullable=False, server_default=sa.text('0')),
    )
    op.create_index('ix_secure_links_token', 'secure_links', ['token'], unique=True)
    op.create_index('ix_secure_links_file_creator', 'secure_links', ['file_id', 'created_by'])
    op.create_index('ix_secure_links_active_expiry', 'secure_links', ['is_active', 'expires_at'])

    op.create_table(
        'secure_link_access_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'link_id', sa.String(length=36), sa.ForeignKey('secure_links.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('accessed_at', sa.DateTime(), nullable=False),
        sa.Column('access_type', sa.String(length=16), nullable=False),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('user_agent', sa.String(), nullable=True),
        sa.Column('visitor_email', sa.String(), nullable=True),
    )
    op.create_index('ix_secure_link_access_events_link_id', 'secure_link_access_events', ['link_id'])

    op.create_table(
        'link_mappings',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('short_code', sa.String(length=8), nullable=False),
        sa.Column('blob_path', sa.String(), nullable=False),
        sa.Column('owner_id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('access_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_accessed_at', sa.DateTime(), nullable=True),
        sa.Column('password_hash', sa.String(), nullable=True),
        sa.Column('original_file_name', sa.String(), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('mime_type', sa.String(), nullable=True),
    )
    op.create_index('ix_link_mappings_short_code', 'link_mappings', ['short_code'], unique=True)
    op.create_index('ix_link_mappings_owner_id', 'link_mappings', ['owner_id'])
    op.create_index('ix_link_mappings_owner_created', 'link_mappings', ['owner_id', 'created_at'])
    op.create_index('ix_link_mappings_expiry_status', 'link_mappings', ['expires_at', 'status'])

def downgrade() -> None:
    op.drop_table('link_mappings')
    op.drop_table('secure_link_access_events')
    op.drop_table('secure_links')
    op.drop_table('access_requests')
    op.drop_table('access_grant_events')
    op.drop_table('access_grants')
    op.drop_table('file_access_events')
    op.drop_table('files')
    op.drop_table('users')
