"""Reaction upsert: one row per (review, user), counts always recomputed."""

import threading

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from backend.app import crud, models, schemas
from backend.app.database import Base, make_engine
from backend.app.errors import InvalidInput, NotFound
from conftest import make_user, principal_for


@pytest.fixture()
def review(db, alice, classifier):
    return crud.create_review(db, alice.id, schemas.ReviewCreate(rating=5, comment="Great!"), classifier)


def _rows(db, review_id, user_id):
    return (
        db.query(models.Reaction)
        .filter(models.Reaction.review_id == review_id, models.Reaction.user_id == user_id)
        .all()
    )


class TestReact:
    def test_first_like(self, db, review, bob):
        assert crud.react(db, review["id"], bob.id, "like") == (1, 0)

    def test_switch_like_to_dislike(self, db, review, bob):
        crud.react(db, review["id"], bob.id, "like")
        assert crud.react(db, review["id"], bob.id, "dislike") == (0, 1)

    def test_repeat_same_type_is_stable(self, db, review, bob):
        crud.react(db, review["id"], bob.id, "like")
        assert crud.react(db, review["id"], bob.id, "like") == (1, 0)

    def test_single_row_holds_latest_type(self, db, review, bob):
        for kind in ["like", "dislike", "dislike", "like", "dislike"]:
            crud.react(db, review["id"], bob.id, kind)
        rows = _rows(db, review["id"], bob.id)
        assert len(rows) == 1
        assert rows[0].reaction_type is models.ReactionType.dislike

    def test_counts_bounded_by_distinct_reactors(self, db, review):
        users = [make_user(db, f"Reactor{n}") for n in range(4)]
        for n, user in enumerate(users):
            crud.react(db, review["id"], user.id, "like" if n % 2 else "dislike")
            crud.react(db, review["id"], user.id, "like")
        likes, dislikes = crud.reaction_counts(db, review["id"])
        assert likes + dislikes <= len(users)
        assert (likes, dislikes) == (4, 0)

    def test_author_may_react_to_own_review(self, db, review, alice):
        assert crud.react(db, review["id"], alice.id, "like") == (1, 0)

    def test_accepts_enum_member(self, db, review, bob):
        assert crud.react(db, review["id"], bob.id, models.ReactionType.dislike) == (0, 1)

    @pytest.mark.parametrize("kind", ["love", "LIKE", "", None])
    def test_invalid_type(self, db, review, bob, kind):
        with pytest.raises(InvalidInput):
            crud.react(db, review["id"], bob.id, kind)
        assert _rows(db, review["id"], bob.id) == []

    def test_missing_review(self, db, bob):
        with pytest.raises(NotFound):
            crud.react(db, 404, bob.id, "like")

    def test_deleted_review_is_not_found(self, db, review, alice, bob):
        crud.react(db, review["id"], bob.id, "like")
        crud.delete_review(db, review["id"], principal_for(alice))
        with pytest.raises(NotFound):
            crud.react(db, review["id"], bob.id, "like")
        assert db.query(models.Reaction).count() == 0

    def test_unique_constraint_rejects_second_row(self, db, review, bob):
        crud.react(db, review["id"], bob.id, "like")
        db.add(models.Reaction(review_id=review["id"], user_id=bob.id, reaction_type=models.ReactionType.dislike))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()
        assert len(_rows(db, review["id"], bob.id)) == 1

    def test_missing_user(self, db, review):
        with pytest.raises(NotFound, match="User not found"):
            crud.react(db, review["id"], 9999, "like")
        assert db.query(models.Reaction).count() == 0


class TestConcurrentReactions:
    """Many sessions hitting the same (review, user) pair on a file-backed database."""

    @pytest.fixture()
    def file_sessions(self, tmp_path):
        engine = make_engine(
            f"sqlite:///{tmp_path / 'reactions.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(bind=engine)
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
        engine.dispose()

    def test_same_user_racing_leaves_one_row(self, file_sessions):
        setup = file_sessions()
        author = make_user(setup, "Author")
        reactor = make_user(setup, "Reactor")
        review = models.Review(
            user_id=author.id, rating=4, comment="Solid", sentiment_score=0.6, sentiment_label=models.SentimentLabel.neutral
        )
        setup.add(review)
        setup.commit()
        review_id, reactor_id = review.id, reactor.id
        setup.close()

        calls = 20
        barrier = threading.Barrier(calls)
        errors = []

        def worker(n):
            session = file_sessions()
            try:
                barrier.wait()
                crud.react(session, review_id, reactor_id, "like" if n % 2 else "dislike")
            except Exception as e:
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(calls)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        check = file_sessions()
        try:
            rows = _rows(check, review_id, reactor_id)
            assert len(rows) == 1
            assert sum(crud.reaction_counts(check, review_id)) == 1
        finally:
            check.close()
