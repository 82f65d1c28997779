# backend/app/models.py
import datetime
import enum

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Enum, Float, ForeignKey, Integer, String, Text,
    UniqueConstraint,
)

from .database import Base


class Role(str, enum.Enum):
    user = "user"
    admin = "admin"


class SentimentLabel(str, enum.Enum):
    positive = "positive"
    neutral = "neutral"
    negative = "negative"


class ReactionType(str, enum.Enum):
    like = "like"
    dislike = "dislike"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(Role, name="user_role"), nullable=False, default=Role.user)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
    )
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False)
    sentiment_score = Column(Float)
    sentiment_label = Column(Enum(SentimentLabel, name="sentiment_label"))
    is_flagged = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False, index=True)


class Reaction(Base):
    __tablename__ = "review_reactions"
    # one reaction per user per review; the upsert in crud.react relies on it
    __table_args__ = (
        UniqueConstraint("review_id", "user_id", name="uq_review_reactions_review_user"),
    )
    id = Column(Integer, primary_key=True, index=True)
    review_id = Column(Integer, ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reaction_type = Column(Enum(ReactionType, name="reaction_type"), nullable=False)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)

