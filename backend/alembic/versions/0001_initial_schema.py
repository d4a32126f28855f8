"""Initial schema — users, movies, reviews, favorites, follows, watchlists

Revision ID: 0001
Revises: —
Create Date: 2025-01-01 00:00:00
"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TABLES_WITH_UPDATED_AT = ("users", "movies", "reviews", "review_helpful_votes", "watchlists")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────────
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # ── Trigger function (auto-update updated_at) ─────────────────────────────
    op.execute("""
        CREATE OR REPLACE FUNCTION set_updated_at()
        RETURNS trigger
        LANGUAGE plpgsql
        AS $$
        BEGIN
          NEW.updated_at = now();
          RETURN NEW;
        END;
        $$
    """)

    # ── users ─────────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("username", sa.String(30), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(60), nullable=True),
        sa.Column("bio", sa.String(500), nullable=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("password_hash", sa.String, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("is_admin", sa.Boolean, nullable=False, server_default="false"),
        *_timestamps(),
        sa.CheckConstraint(
            r"username ~ '^[a-zA-Z0-9_]{3,30}$'",
            name="chk_username_format",
        ),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    # Case-insensitive username lookups at login
    op.execute("CREATE UNIQUE INDEX uq_users_username_lower ON users (lower(username))")

    # ── movies ────────────────────────────────────────────────────────────────
    op.create_table(
        "movies",
        sa.Column("id", UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("tmdb_id", sa.String(32), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("original_title", sa.String(500), nullable=True),
        sa.Column("genres", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("year", sa.Integer, nullable=True),
        sa.Column("release_date", sa.Date, nullable=True),
        sa.Column("runtime", sa.Integer, nullable=True),
        sa.Column("overview", sa.Text, nullable=True),
        sa.Column("tagline", sa.String(300), nullable=True),
        sa.Column("status", sa.String(40), nullable=True),
        sa.Column("budget", sa.BigInteger, nullable=True),
        sa.Column("revenue", sa.BigInteger, nullable=True),
        sa.Column("popularity", sa.Float, nullable=True),
        sa.Column("adult", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("poster_path", sa.String(255), nullable=True),
        sa.Column("poster_url", sa.String(500), nullable=True),
        sa.Column("backdrop_path", sa.String(255), nullable=True),
        sa.Column("backdrop_url", sa.String(500), nullable=True),
        sa.Column("attributes", JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("tmdb_rating_average", sa.Float, nullable=True),
        sa.Column("tmdb_rating_count", sa.Integer, nullable=True),
        sa.Column("local_rating_average", sa.Float, nullable=False, server_default="0"),
        sa.Column("local_rating_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("view_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("favorite_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("watchlist_count", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint(
            "local_rating_average >= 0 AND local_rating_average <= 10",
            name="chk_movies_local_rating_range",
        ),
        sa.CheckConstraint("local_rating_count >= 0", name="chk_movies_local_rating_count"),
        sa.CheckConstraint(
            "view_count >= 0 AND favorite_count >= 0 AND watchlist_count >= 0",
            name="chk_movies_counters_non_negative",
        ),
        sa.CheckConstraint(
            "jsonb_typeof(attributes) = 'object'",
            name="chk_movies_attributes_object",
        ),
    )
    # Arbiter for concurrent first references to the same catalog movie
    op.create_index("ix_movies_tmdb_id", "movies", ["tmdb_id"], unique=True)
    op.create_index("ix_movies_title", "movies", ["title"])
    op.create_index("ix_movies_year", "movies", ["year"])
    op.create_index("ix_movies_popularity", "movies", ["popularity"])

    # ── reviews ───────────────────────────────────────────────────────────────
    op.create_table(
        "reviews",
        sa.Column("id", UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("movie_id", UUID(as_uuid=True),
                  sa.ForeignKey("movies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tmdb_id", sa.String(32), nullable=False),
        sa.Column("rating", sa.Float, nullable=False),
        sa.Column("title", sa.String(200), nullable=True),
        sa.Column("comment", sa.Text, nullable=True),
        sa.Column("spoiler_warning", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("is_visible", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "movie_id", name="uq_reviews_user_movie"),
        sa.CheckConstraint("rating >= 0.5 AND rating <= 10", name="chk_reviews_rating_range"),
        sa.CheckConstraint("char_length(comment) <= 2000", name="chk_reviews_comment_length"),
    )
    op.create_index("ix_reviews_user_id", "reviews", ["user_id"])
    op.create_index("ix_reviews_movie_id", "reviews", ["movie_id"])
    op.create_index("ix_reviews_tmdb_id", "reviews", ["tmdb_id"])
    op.create_index("idx_reviews_movie_created", "reviews", ["movie_id", "created_at"])

    op.create_table(
        "review_helpful_votes",
        sa.Column("review_id", UUID(as_uuid=True),
                  sa.ForeignKey("reviews.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("is_helpful", sa.Boolean, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "review_reports",
        sa.Column("review_id", UUID(as_uuid=True),
                  sa.ForeignKey("reviews.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("reason", sa.String(20), nullable=False),
        sa.Column("reported_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "reason IN ('spam', 'inappropriate', 'spoiler', 'offensive', 'other')",
            name="chk_review_reports_reason",
        ),
    )

    # ── user_favorites ────────────────────────────────────────────────────────
    op.create_table(
        "user_favorites",
        sa.Column("user_id", UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("movie_id", UUID(as_uuid=True),
                  sa.ForeignKey("movies.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
    )

    # ── follows ───────────────────────────────────────────────────────────────
    op.create_table(
        "follows",
        sa.Column("id", UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("follower_id", UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("following_id", UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("follower_id", "following_id", name="uq_follow"),
        sa.CheckConstraint("follower_id <> following_id", name="chk_no_self_follow"),
    )
    op.create_index("ix_follows_follower_id", "follows", ["follower_id"])
    op.create_index("ix_follows_following_id", "follows", ["following_id"])

    # ── watchlists ────────────────────────────────────────────────────────────
    op.create_table(
        "watchlists",
        sa.Column("id", UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=False, server_default=""),
        sa.Column("is_public", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("tags", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("views", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint(
            "length(trim(name)) >= 1 AND length(trim(name)) <= 100",
            name="chk_watchlists_name",
        ),
    )
    op.create_index("ix_watchlists_user_id", "watchlists", ["user_id"])
    op.create_index("idx_watchlists_user_name", "watchlists", ["user_id", "name"])
    # Partial index: at most one default watchlist per user
    op.execute("""
        CREATE UNIQUE INDEX uq_watchlists_user_default
          ON watchlists (user_id)
          WHERE is_default
    """)
    op.execute("""
        CREATE INDEX idx_watchlists_public_updated
          ON watchlists (updated_at DESC)
          WHERE is_public
    """)

    op.create_table(
        "watchlist_movies",
        sa.Column("id", UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("watchlist_id", UUID(as_uuid=True),
                  sa.ForeignKey("watchlists.id", ondelete="CASCADE"), nullable=False),
        sa.Column("movie_id", UUID(as_uuid=True),
                  sa.ForeignKey("movies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tmdb_id", sa.String(32), nullable=False),
        sa.Column("added_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
        sa.Column("watched", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("watched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("personal_rating", sa.Float, nullable=True),
        sa.Column("personal_notes", sa.String(1000), nullable=False, server_default=""),
        sa.UniqueConstraint("watchlist_id", "tmdb_id", name="uq_watchlist_movies_tmdb"),
        sa.CheckConstraint(
            "personal_rating IS NULL OR (personal_rating >= 0.5 AND personal_rating <= 10)",
            name="chk_watchlist_movies_personal_rating",
        ),
    )
    op.create_index("ix_watchlist_movies_watchlist_id", "watchlist_movies", ["watchlist_id"])

    op.create_table(
        "watchlist_collaborators",
        sa.Column("watchlist_id", UUID(as_uuid=True),
                  sa.ForeignKey("watchlists.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("permission", sa.String(10), nullable=False, server_default="view"),
        sa.Column("added_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "permission IN ('view', 'edit', 'admin')",
            name="chk_watchlist_collaborators_permission",
        ),
    )

    op.create_table(
        "watchlist_likes",
        sa.Column("watchlist_id", UUID(as_uuid=True),
                  sa.ForeignKey("watchlists.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
    )

    # ── updated_at triggers ───────────────────────────────────────────────────
    for table in TABLES_WITH_UPDATED_AT:
        op.execute(f"""
            CREATE TRIGGER trg_{table}_updated_at
            BEFORE UPDATE ON {table}
            FOR EACH ROW EXECUTE FUNCTION set_updated_at()
        """)


def downgrade() -> None:
    for table in TABLES_WITH_UPDATED_AT:
        op.execute(f"DROP TRIGGER IF EXISTS trg_{table}_updated_at ON {table}")

    op.drop_table("watchlist_likes")
    op.drop_table("watchlist_collaborators")
    op.drop_table("watchlist_movies")
    op.execute("DROP INDEX IF EXISTS idx_watchlists_public_updated")
    op.execute("DROP INDEX IF EXISTS uq_watchlists_user_default")
    op.drop_table("watchlists")
    op.drop_table("follows")
    op.drop_table("user_favorites")
    op.drop_table("review_reports")
    op.drop_table("review_helpful_votes")
    op.drop_table("reviews")
    op.drop_table("movies")
    op.execute("DROP INDEX IF EXISTS uq_users_username_lower")
    op.drop_table("users")
    op.execute("DROP FUNCTION IF EXISTS set_updated_at()")
