"""
SQLAlchemy ORM models.

Every uniqueness rule the services rely on is declared here as a
constraint, so the database stays the source of truth under concurrent
requests:

    movies.tmdb_id                          one local row per catalog movie
    reviews (user_id, movie_id)             one review per user per movie
    user_favorites (user_id, movie_id)      favorites behave as a set
    watchlist_movies (watchlist_id, tmdb_id) a movie appears once per watchlist
    watchlists (user_id) WHERE is_default   one default watchlist per user

Types are portable (Uuid, JSON with a JSONB variant) so the same metadata
builds the Postgres schema and the SQLite schema used by the test suite.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, relationship

JSONType = JSON().with_variant(JSONB(), "postgresql")


# ── Base ──────────────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


# ── Enums ─────────────────────────────────────────────────────────────────────

class ReportReasonEnum(str, PyEnum):
    SPAM = "spam"
    INAPPROPRIATE = "inappropriate"
    SPOILER = "spoiler"
    OFFENSIVE = "offensive"
    OTHER = "other"


class CollaboratorPermissionEnum(str, PyEnum):
    VIEW = "view"
    EDIT = "edit"
    ADMIN = "admin"


def _enum_values(enum_cls: type[PyEnum]) -> list[str]:
    return [member.value for member in enum_cls]


# ── Timestamp helper ──────────────────────────────────────────────────────────

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Models ────────────────────────────────────────────────────────────────────

class User(Base):
    """
    Application user.

    Favorites and follows are association rows (UserFavorite, Follow) rather
    than arrays on the user, so membership checks are single indexed lookups.
    """
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(30), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    display_name = Column(String(60), nullable=True)
    bio = Column(String(500), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    password_hash = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    # Relationships
    reviews = relationship(
        "Review",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="dynamic",
    )
    watchlists = relationship(
        "Watchlist",
        back_populates="owner",
        cascade="all, delete-orphan",
        lazy="dynamic",
    )
    following_assoc = relationship(
        "Follow",
        foreign_keys="Follow.follower_id",
        back_populates="follower",
        cascade="all, delete-orphan",
    )
    followers_assoc = relationship(
        "Follow",
        foreign_keys="Follow.following_id",
        back_populates="following_user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r}>"


class Movie(Base):
    """
    Local copy of a TMDB movie, created the first time anything references it.

    local_rating_*  — derived from visible reviews; only the rating service
                      writes these columns.
    tmdb_rating_*   — snapshot from the catalog, never touched by aggregation.
    attributes      — opaque catalog payload: spoken_languages,
                      production_companies, production_countries, credits,
                      videos, keywords.
    """
    __tablename__ = "movies"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tmdb_id = Column(String(32), unique=True, nullable=False, index=True)
    title = Column(String(500), nullable=False, index=True)
    original_title = Column(String(500), nullable=True)
    genres = Column(JSONType, nullable=False, default=list)
    year = Column(Integer, nullable=True, index=True)
    release_date = Column(Date, nullable=True)
    runtime = Column(Integer, nullable=True)
    overview = Column(Text, nullable=True)
    tagline = Column(String(300), nullable=True)
    status = Column(String(40), nullable=True)
    budget = Column(BigInteger, nullable=True)
    revenue = Column(BigInteger, nullable=True)
    popularity = Column(Float, nullable=True, index=True)
    adult = Column(Boolean, default=False, nullable=False)
    poster_path = Column(String(255), nullable=True)
    poster_url = Column(String(500), nullable=True)
    backdrop_path = Column(String(255), nullable=True)
    backdrop_url = Column(String(500), nullable=True)
    attributes = Column(JSONType, nullable=False, default=dict)

    tmdb_rating_average = Column(Float, nullable=True)
    tmdb_rating_count = Column(Integer, nullable=True)
    local_rating_average = Column(Float, default=0.0, nullable=False)
    local_rating_count = Column(Integer, default=0, nullable=False)

    view_count = Column(Integer, default=0, nullable=False)
    favorite_count = Column(Integer, default=0, nullable=False)
    watchlist_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "local_rating_average >= 0 AND local_rating_average <= 10",
            name="chk_movies_local_rating_range",
        ),
        CheckConstraint("local_rating_count >= 0", name="chk_movies_local_rating_count"),
        CheckConstraint(
            "view_count >= 0 AND favorite_count >= 0 AND watchlist_count >= 0",
            name="chk_movies_counters_non_negative",
        ),
    )

    reviews = relationship("Review", back_populates="movie", lazy="dynamic")

    def __repr__(self) -> str:
        return f"<Movie id={self.id} tmdb_id={self.tmdb_id!r} title={self.title!r}>"


class Review(Base):
    """
    One user's rating and opinion of one movie.

    is_visible is the moderation flag: hidden reviews stay in the table but
    never count toward the movie's local rating or appear in listings.
    """
    __tablename__ = "reviews"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    movie_id = Column(
        Uuid,
        ForeignKey("movies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tmdb_id = Column(String(32), nullable=False, index=True)
    rating = Column(Float, nullable=False)
    title = Column(String(200), nullable=True)
    comment = Column(Text, nullable=True)
    spoiler_warning = Column(Boolean, default=False, nullable=False)
    is_visible = Column(Boolean, default=True, nullable=False)
    edited_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "movie_id", name="uq_reviews_user_movie"),
        CheckConstraint("rating >= 0.5 AND rating <= 10", name="chk_reviews_rating_range"),
        Index("idx_reviews_movie_created", "movie_id", "created_at"),
    )

    # Relationships
    user = relationship("User", back_populates="reviews")
    movie = relationship("Movie", back_populates="reviews")
    helpful_votes = relationship(
        "ReviewHelpfulVote",
        back_populates="review",
        cascade="all, delete-orphan",
    )
    reports = relationship(
        "ReviewReport",
        back_populates="review",
        cascade="all, delete-orphan",
    )

    @property
    def helpful_score(self) -> int:
        return sum(1 if vote.is_helpful else -1 for vote in self.helpful_votes)

    @property
    def total_votes(self) -> int:
        return len(self.helpful_votes)

    def __repr__(self) -> str:
        return f"<Review user={self.user_id} movie={self.movie_id} rating={self.rating}>"


class ReviewHelpfulVote(Base):
    """One helpfulness vote per user per review; a later vote overwrites."""
    __tablename__ = "review_helpful_votes"

    review_id = Column(
        Uuid,
        ForeignKey("reviews.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    is_helpful = Column(Boolean, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    review = relationship("Review", back_populates="helpful_votes")


class ReviewReport(Base):
    """One abuse report per user per review."""
    __tablename__ = "review_reports"

    review_id = Column(
        Uuid,
        ForeignKey("reviews.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    reason = Column(
        SAEnum(
            ReportReasonEnum,
            name="report_reason",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    reported_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    review = relationship("Review", back_populates="reports")


class UserFavorite(Base):
    """Favorites set membership. The composite primary key makes it a set."""
    __tablename__ = "user_favorites"

    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    movie_id = Column(
        Uuid,
        ForeignKey("movies.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    user = relationship("User")
    movie = relationship("Movie")


class Follow(Base):
    """
    Directed follow relationship: follower → following_user.
    The same row is the follower's "following" entry and the target's
    "followers" entry, so the two sides cannot drift apart.
    """
    __tablename__ = "follows"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    follower_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    following_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_follow"),
        CheckConstraint("follower_id <> following_id", name="chk_no_self_follow"),
    )

    follower = relationship("User", foreign_keys=[follower_id], back_populates="following_assoc")
    following_user = relationship("User", foreign_keys=[following_id], back_populates="followers_assoc")

    def __repr__(self) -> str:
        return f"<Follow {self.follower_id} → {self.following_id}>"


# ── Watchlists ────────────────────────────────────────────────────────────────

class Watchlist(Base):
    """
    A named, ordered list of movies owned by one user.

    At most one watchlist per user carries is_default; the partial unique
    index below enforces it.
    """
    __tablename__ = "watchlists"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=False, default="")
    is_public = Column(Boolean, default=False, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    tags = Column(JSONType, nullable=False, default=list)
    views = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index(
            "uq_watchlists_user_default",
            "user_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
        Index("idx_watchlists_user_name", "user_id", "name"),
        CheckConstraint(
            "length(trim(name)) >= 1 AND length(trim(name)) <= 100",
            name="chk_watchlists_name",
        ),
    )

    owner = relationship("User", back_populates="watchlists")
    entries = relationship(
        "WatchlistMovie",
        back_populates="watchlist",
        cascade="all, delete-orphan",
        order_by="WatchlistMovie.added_at",
    )
    collaborators = relationship(
        "WatchlistCollaborator",
        back_populates="watchlist",
        cascade="all, delete-orphan",
    )
    likes = relationship(
        "WatchlistLike",
        back_populates="watchlist",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Watchlist id={self.id} name={self.name!r}>"


class WatchlistMovie(Base):
    """
    One movie in a watchlist plus the owner's per-entry state.

    tmdb_id is stored next to movie_id so membership checks and removals
    work from the catalog id without resolving the movie first.
    """
    __tablename__ = "watchlist_movies"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    watchlist_id = Column(
        Uuid,
        ForeignKey("watchlists.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    movie_id = Column(
        Uuid,
        ForeignKey("movies.id", ondelete="CASCADE"),
        nullable=False,
    )
    tmdb_id = Column(String(32), nullable=False)
    added_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    watched = Column(Boolean, default=False, nullable=False)
    watched_at = Column(DateTime(timezone=True), nullable=True)
    personal_rating = Column(Float, nullable=True)
    personal_notes = Column(String(1000), nullable=False, default="")

    __table_args__ = (
        UniqueConstraint("watchlist_id", "tmdb_id", name="uq_watchlist_movies_tmdb"),
        CheckConstraint(
            "personal_rating IS NULL OR (personal_rating >= 0.5 AND personal_rating <= 10)",
            name="chk_watchlist_movies_personal_rating",
        ),
    )

    watchlist = relationship("Watchlist", back_populates="entries")
    movie = relationship("Movie")


class WatchlistCollaborator(Base):
    """A user granted view/edit/admin rights on someone else's watchlist."""
    __tablename__ = "watchlist_collaborators"

    watchlist_id = Column(
        Uuid,
        ForeignKey("watchlists.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    permission = Column(
        SAEnum(
            CollaboratorPermissionEnum,
            name="collaborator_permission",
            native_enum=False,
            length=10,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=CollaboratorPermissionEnum.VIEW,
    )
    added_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    watchlist = relationship("Watchlist", back_populates="collaborators")
    user = relationship("User")


class WatchlistLike(Base):
    """One like per user per watchlist."""
    __tablename__ = "watchlist_likes"

    watchlist_id = Column(
        Uuid,
        ForeignKey("watchlists.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    watchlist = relationship("Watchlist", back_populates="likes")
