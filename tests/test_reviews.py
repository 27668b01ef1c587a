"""Tests for reviews and rating aggregation."""

import asyncio
import uuid

import pytest
import pytest_asyncio

from errors import DuplicateReview, SelfReview, Forbidden, ValidationError, NotFound, Conflict
from reviews import ReviewManager
from users import UserManager


@pytest_asyncio.fixture
async def review_manager(db_pool):
    return ReviewManager(db_pool)


async def rating_of(db_pool, user):
    return (await UserManager(db_pool).get_user(user.id))['rating']


@pytest.mark.asyncio
async def test_rating_is_mean_of_current_reviews(db_pool, make_user, review_manager):
    reviewee = await make_user("Rita")
    first, second, third = [await make_user() for _ in range(3)]

    await review_manager.submit(first, reviewee.id, 5, "great")
    assert await rating_of(db_pool, reviewee) == 5
    await review_manager.submit(second, reviewee.id, 2)
    assert await rating_of(db_pool, reviewee) == pytest.approx(3.5)
    review = await review_manager.submit(third, reviewee.id, 4)
    assert await rating_of(db_pool, reviewee) == pytest.approx(11 / 3)

    await review_manager.update(third, review['id'], rating=1)
    assert await rating_of(db_pool, reviewee) == pytest.approx(8 / 3)

    await review_manager.delete(third, review['id'])
    assert await rating_of(db_pool, reviewee) == pytest.approx(3.5)


@pytest.mark.asyncio
async def test_deleting_only_review_resets_rating(db_pool, make_user, review_manager):
    reviewee = await make_user()
    reviewer = await make_user()
    review = await review_manager.submit(reviewer, reviewee.id, 4)

    await review_manager.delete(reviewer, review['id'])

    assert await rating_of(db_pool, reviewee) == 0
    assert await review_manager.list_for_user(reviewee.id) == []


@pytest.mark.asyncio
async def test_second_review_for_pair_conflicts(db_pool, make_user, review_manager):
    reviewee = await make_user()
    reviewer = await make_user()
    await review_manager.submit(reviewer, reviewee.id, 4)

    with pytest.raises(DuplicateReview) as exc_info:
        await review_manager.submit(reviewer, reviewee.id, 1)
    assert isinstance(exc_info.value, Conflict)
    assert await rating_of(db_pool, reviewee) == 4


@pytest.mark.asyncio
async def test_self_review_rejected(make_user, review_manager):
    user = await make_user()
    with pytest.raises(SelfReview):
        await review_manager.submit(user, user.id, 5)


@pytest.mark.asyncio
@pytest.mark.parametrize("rating", [0, 6, 4.5, True])
async def test_rating_out_of_range(make_user, review_manager, rating):
    reviewee = await make_user()
    reviewer = await make_user()
    with pytest.raises(ValidationError):
        await review_manager.submit(reviewer, reviewee.id, rating)


@pytest.mark.asyncio
async def test_only_reviewer_may_change_review(make_user, review_manager):
    reviewee = await make_user()
    reviewer = await make_user()
    review = await review_manager.submit(reviewer, reviewee.id, 3)

    with pytest.raises(Forbidden):
        await review_manager.update(reviewee, review['id'], rating=5)
    with pytest.raises(Forbidden):
        await review_manager.delete(reviewee, review['id'])


@pytest.mark.asyncio
async def test_review_for_unknown_user(make_user, review_manager):
    reviewer = await make_user()
    with pytest.raises(NotFound):
        await review_manager.submit(reviewer, uuid.uuid4(), 3)


@pytest.mark.asyncio
async def test_list_projects_reviewer_newest_first(make_user, review_manager):
    reviewee = await make_user()
    older = await make_user("Older")
    newer = await make_user("Newer")
    await review_manager.submit(older, reviewee.id, 3)
    await review_manager.submit(newer, reviewee.id, 5)

    reviews = await review_manager.list_for_user(reviewee.id)

    assert [r['reviewer'] for r in reviews] == [
        {'id': newer.id, 'name': 'Newer'},
        {'id': older.id, 'name': 'Older'}
    ]


@pytest.mark.asyncio
async def test_concurrent_reviews_keep_rating_consistent(db_pool, make_user, review_manager):
    reviewee = await make_user()
    reviewers = [await make_user() for _ in range(5)]

    await asyncio.gather(*(
        review_manager.submit(reviewer, reviewee.id, rating)
        for reviewer, rating in zip(reviewers, [1, 2, 3, 4, 5])
    ))

    assert await rating_of(db_pool, reviewee) == pytest.approx(3)


@pytest.mark.asyncio
async def test_mutual_reviews_do_not_deadlock(db_pool, make_user, review_manager):
    for _ in range(5):
        alice = await make_user("Alice")
        bob = await make_user("Bob")

        results = await asyncio.gather(
            review_manager.submit(alice, bob.id, 5),
            review_manager.submit(bob, alice.id, 2),
            return_exceptions=True
        )

        assert not any(isinstance(r, Exception) for r in results)
        assert await rating_of(db_pool, bob) == 5
        assert await rating_of(db_pool, alice) == 2
