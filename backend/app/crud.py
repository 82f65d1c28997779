# backend/app/crud.py
import logging

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import auth, inference, models, policy, schemas
from .config import settings
from .errors import Conflict, InvalidInput, NotFound

logger = logging.getLogger(__name__)


# Users

def create_user(db: Session, user_in: schemas.UserCreate, role: models.Role = models.Role.user):
    if get_user_by_email(db, user_in.email):
        raise Conflict("Email already registered")
    hashed = auth.get_password_hash(user_in.password)
    db_user = models.User(name=user_in.name, email=user_in.email, password_hash=hashed, role=role)
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError as e:
        # lost a race against a concurrent registration with the same email
        db.rollback()
        raise Conflict("Email already registered") from e
    db.refresh(db_user)
    logger.info("Registered user %s (%s)", db_user.id, db_user.role.value)
    return db_user


def get_user(db: Session, user_id: int):
    return db.get(models.User, user_id)


def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()


def authenticate_user(db: Session, email: str, password: str):
    user = get_user_by_email(db, email)
    if not user or not auth.verify_password(password, user.password_hash):
        return None
    return user


# Reads

def _reaction_count(reaction_type: models.ReactionType):
    return (
        select(func.count(models.Reaction.id))
        .where(models.Reaction.review_id == models.Review.id, models.Reaction.reaction_type == reaction_type)
        .correlate(models.Review)
        .scalar_subquery()
    )


def _review_query(db: Session):
    return (
        db.query(
            models.Review,
            models.User.name,
            models.User.email,
            _reaction_count(models.ReactionType.like).label("likes"),
            _reaction_count(models.ReactionType.dislike).label("dislikes"),
        )
        .outerjoin(models.User, models.Review.user_id == models.User.id)
    )


def _review_view(row, with_email: bool = False) -> dict:
    review, user_name, user_email, likes, dislikes = row
    view = {
        "id": review.id,
        "user_id": review.user_id,
        "user_name": user_name,
        "rating": review.rating,
        "comment": review.comment,
        "sentiment_score": review.sentiment_score,
        "sentiment_label": review.sentiment_label,
        "is_flagged": review.is_flagged,
        "created_at": review.created_at,
        "likes": likes or 0,
        "dislikes": dislikes or 0,
    }
    if with_email:
        view["user_email"] = user_email
    return view


def check_page(page: int, limit: int):
    if page < 1:
        raise InvalidInput("page must be at least 1")
    if limit < 1 or limit > settings.MAX_PAGE_LIMIT:
        raise InvalidInput(f"limit must be between 1 and {settings.MAX_PAGE_LIMIT}")
    return (page - 1) * limit


def _paginate(db: Session, criteria, page: int, limit: int, with_email: bool = False):
    offset = check_page(page, limit)
    total = db.query(func.count(models.Review.id)).filter(*criteria).scalar()
    rows = (
        _review_query(db)
        .filter(*criteria)
        # id breaks created_at ties so pages stay stable
        .order_by(models.Review.created_at.desc(), models.Review.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return [_review_view(row, with_email) for row in rows], total


def list_reviews(db: Session, user_id: int = None, page: int = 1, limit: int = None):
    limit = settings.DEFAULT_PAGE_LIMIT if limit is None else limit
    criteria = [] if user_id is None else [models.Review.user_id == user_id]
    return _paginate(db, criteria, page, limit)


def search_reviews(db: Session, term: str = "", page: int = 1, limit: int = None):
    limit = settings.ADMIN_PAGE_LIMIT if limit is None else limit
    criteria = [models.Review.comment.icontains(term, autoescape=True)] if term else []
    return _paginate(db, criteria, page, limit, with_email=True)


def get_review_view(db: Session, review_id: int, with_email: bool = False):
    row = _review_query(db).filter(models.Review.id == review_id).first()
    if row is None:
        raise NotFound("Review not found")
    return _review_view(row, with_email)


def reaction_counts(db: Session, review_id: int):
    rows = (
        db.query(models.Reaction.reaction_type, func.count(models.Reaction.id))
        .filter(models.Reaction.review_id == review_id)
        .group_by(models.Reaction.reaction_type)
        .all()
    )
    counts = {kind: cnt for kind, cnt in rows}
    return counts.get(models.ReactionType.like, 0), counts.get(models.ReactionType.dislike, 0)


# Writes

def validate_review(rating, comment):
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise InvalidInput("Rating must be an integer between 1 and 5")
    if not isinstance(comment, str) or not comment.strip():
        raise InvalidInput("Comment is required")


def create_review(db: Session, user_id: int, review_in: schemas.ReviewCreate, classify):
    validate_review(review_in.rating, review_in.comment)
    score, label = inference.classify_bounded(classify, review_in.comment)
    db_review = models.Review(
        user_id=user_id,
        rating=review_in.rating,
        comment=review_in.comment,
        sentiment_score=score,
        sentiment_label=label,
        is_flagged=False,
    )
    db.add(db_review)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise NotFound("User not found") from e
    logger.info("Review %s created by user %s (%s %.2f)", db_review.id, user_id, label.value, score)
    return get_review_view(db, db_review.id)


def delete_review(db: Session, review_id: int, principal):
    review = db.get(models.Review, review_id)
    if review is None:
        raise NotFound("Review not found")
    policy.ensure_can_delete(principal, review)

    # reactions and review go in the same transaction
    db.execute(delete(models.Reaction).where(models.Reaction.review_id == review_id))
    result = db.execute(delete(models.Review).where(models.Review.id == review_id))
    if result.rowcount == 0:
        db.rollback()
        raise NotFound("Review not found")
    db.commit()
    logger.info("Review %s deleted by user %s (%s)", review_id, principal.id, principal.role.value)


def _upsert_reaction(db: Session, review_id: int, user_id: int, reaction_type: models.ReactionType):
    reactions = models.Reaction.__table__
    values = dict(review_id=review_id, user_id=user_id, reaction_type=reaction_type)
    dialect = db.get_bind().dialect.name
    if dialect == "mysql":
        stmt = mysql.insert(reactions).values(**values)
        return stmt.on_duplicate_key_update(reaction_type=stmt.inserted.reaction_type)
    if dialect == "postgresql":
        stmt = postgresql.insert(reactions).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite.insert(reactions).values(**values)
    else:
        raise NotImplementedError(f"No reaction upsert for dialect {dialect!r}")
    return stmt.on_conflict_do_update(
        index_elements=["review_id", "user_id"],
        set_={"reaction_type": stmt.excluded.reaction_type},
    )


def react(db: Session, review_id: int, user_id: int, reaction_type):
    try:
        reaction_type = models.ReactionType(reaction_type)
    except ValueError as e:
        raise InvalidInput("Invalid reaction type") from e
    if db.get(models.Review, review_id) is None:
        raise NotFound("Review not found")

    try:
        db.execute(_upsert_reaction(db, review_id, user_id, reaction_type))
        db.commit()
    except IntegrityError as e:
        # a foreign key failed: the review went away after the lookup, or the reactor's account is gone
        db.rollback()
        if db.query(models.Review.id).filter(models.Review.id == review_id).first() is None:
            raise NotFound("Review not found") from e
        raise NotFound("User not found") from e
    return reaction_counts(db, review_id)


def set_review_flag(db: Session, review_id: int, is_flagged: bool, principal):
    policy.ensure_can_flag(principal)
    review = db.get(models.Review, review_id)
    if review is None:
        raise NotFound("Review not found")
    review.is_flagged = bool(is_flagged)
    db.commit()
    logger.info("Review %s flag set to %s by admin %s", review_id, review.is_flagged, principal.id)
    return review
