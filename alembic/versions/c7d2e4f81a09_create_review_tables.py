"""create_review_tables

Revision ID: c7d2e4f81a09
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'c7d2e4f81a09'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


EMPTY_DISTRIBUTION = (
    '[{"star": 5, "count": 0}, {"star": 4, "count": 0}, {"star": 3, "count": 0}, '
    '{"star": 2, "count": 0}, {"star": 1, "count": 0}]'
)


def upgrade() -> None:
    op.create_table(
        'books',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False, comment='Book title'),
        sa.Column('author', sa.String(length=255), nullable=True,
                  comment='Display name of the author(s)'),
        sa.Column('isbn', sa.String(length=20), nullable=True,
                  comment='International Standard Book Number'),
        sa.Column('average_rating', sa.Numeric(precision=2, scale=1), nullable=False,
                  server_default='0',
                  comment='Mean of approved review ratings, 0 if none'),
        sa.Column('ratings_count', sa.Integer(), nullable=False, server_default='0',
                  comment='Number of approved reviews'),
        sa.Column('ratings_distribution', sa.JSON(), nullable=False,
                  server_default=EMPTY_DISTRIBUTION,
                  comment='Approved review count per star, ordered 5..1'),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True),
                  server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_books_title'), 'books', ['title'], unique=False)
    op.create_index(op.f('ix_books_isbn'), 'books', ['isbn'], unique=True)
    op.create_index(op.f('ix_books_average_rating'), 'books', ['average_rating'], unique=False)

    op.create_table(
        'reviews',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('book_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False,
                  comment='Author id from the authentication service'),
        sa.Column('rating', sa.Integer(), nullable=False, comment='Rating from 1-5 stars'),
        sa.Column('title', sa.String(length=100), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('contains_spoilers', sa.Boolean(), nullable=False,
                  server_default=sa.false()),
        sa.Column('is_recommended', sa.Boolean(), nullable=False,
                  server_default=sa.false()),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending',
                  comment='pending, approved or rejected'),
        sa.Column('moderated_by', sa.Integer(), nullable=True,
                  comment='Moderator who last changed the status'),
        sa.Column('moderated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.String(length=500), nullable=True),
        sa.Column('edited', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_edited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False,
                  comment='Optimistic concurrency token'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('rating >= 1 AND rating <= 5', name='ck_review_rating_range'),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')",
                           name='ck_review_status'),
        sa.ForeignKeyConstraint(['book_id'], ['books.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('book_id', 'user_id', name='uq_review_book_user'),
    )
    op.create_index(op.f('ix_reviews_id'), 'reviews', ['id'], unique=False)
    op.create_index(op.f('ix_reviews_book_id'), 'reviews', ['book_id'], unique=False)
    op.create_index(op.f('ix_reviews_user_id'), 'reviews', ['user_id'], unique=False)
    op.create_index(op.f('ix_reviews_status'), 'reviews', ['status'], unique=False)

    op.create_table(
        'review_likes',
        sa.Column('review_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['review_id'], ['reviews.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('review_id', 'user_id'),
    )


def downgrade() -> None:
    op.drop_table('review_likes')
    op.drop_index(op.f('ix_reviews_status'), table_name='reviews')
    op.drop_index(op.f('ix_reviews_user_id'), table_name='reviews')
    op.drop_index(op.f('ix_reviews_book_id'), table_name='reviews')
    op.drop_index(op.f('ix_reviews_id'), table_name='reviews')
    op.drop_table('reviews')
    op.drop_index(op.f('ix_books_average_rating'), table_name='books')
    op.drop_index(op.f('ix_books_isbn'), table_name='books')
    op.drop_index(op.f('ix_books_title'), table_name='books')
    op.drop_table('books')
