"""
Tests for the Review Endpoints

Tests the HTTP surface of the review system:
- List reviews for a book
- Create a review (authenticated)
- Get / update / delete a single review
- Like / unlike
- Book rating statistics
- Recent reviews, moderation queue and reviews by user

Business Rules:
- One review per user per book (409 on a second one)
- Only the author or a moderator can edit or delete
- Only moderators change the status
"""

from fastapi import status
from fastapi.testclient import TestClient

from bookreviews.models import Actor, Book, ReviewStatus, Role
from bookreviews.services.security import create_access_token


# =============================================================================
# Helper Functions
# =============================================================================


def get_auth_header(actor: Actor) -> dict:
    """Create authorization header for an actor."""
    token = create_access_token(actor.user_id, actor.role)
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# Create Review
# =============================================================================


class TestCreateReview:
    """Tests for POST /api/v1/books/{book_id}/reviews"""

    def test_create_review_success(
        self, client: TestClient, sample_book: Book, author: Actor, review_payload: dict
    ):
        response = client.post(
            f"/api/v1/books/{sample_book.id}/reviews",
            json=review_payload,
            headers=get_auth_header(author),
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["rating"] == 4
        assert data["title"] == "Great book!"
        assert data["user_id"] == author.user_id
        assert data["status"] == "pending"
        assert data["version"] == 1
        assert data["likes_count"] == 0
        assert response.headers["ETag"] == '"1"'

    def test_create_review_as_moderator_updates_rating(
        self, client: TestClient, sample_book: Book, moderator: Actor, review_payload: dict
    ):
        response = client.post(
            f"/api/v1/books/{sample_book.id}/reviews",
            json={**review_payload, "rating": 5},
            headers=get_auth_header(moderator),
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["status"] == "approved"

        rating = client.get(f"/api/v1/books/{sample_book.id}/rating").json()
        assert rating["average_rating"] == 5.0
        assert rating["ratings_count"] == 1

    def test_create_review_unauthenticated(
        self, client: TestClient, sample_book: Book, review_payload: dict
    ):
        response = client.post(
            f"/api/v1/books/{sample_book.id}/reviews", json=review_payload
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_create_review_invalid_token(
        self, client: TestClient, sample_book: Book, review_payload: dict
    ):
        response = client.post(
            f"/api/v1/books/{sample_book.id}/reviews",
            json=review_payload,
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_create_review_book_not_found(
        self, client: TestClient, author: Actor, review_payload: dict
    ):
        response = client.post(
            "/api/v1/books/99999/reviews",
            json=review_payload,
            headers=get_auth_header(author),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_create_duplicate_review(
        self, client: TestClient, sample_book: Book, author: Actor, review_payload: dict
    ):
        headers = get_auth_header(author)
        client.post(f"/api/v1/books/{sample_book.id}/reviews", json=review_payload, headers=headers)

        response = client.post(
            f"/api/v1/books/{sample_book.id}/reviews", json=review_payload, headers=headers
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert "already reviewed" in response.json()["detail"]

    def test_create_review_invalid_rating(
        self, client: TestClient, sample_book: Book, author: Actor, review_payload: dict
    ):
        response = client.post(
            f"/api/v1/books/{sample_book.id}/reviews",
            json={**review_payload, "rating": 6},
            headers=get_auth_header(author),
        )

        assert response.status_code == 422

    def test_create_review_blank_title(
        self, client: TestClient, sample_book: Book, author: Actor, review_payload: dict
    ):
        response = client.post(
            f"/api/v1/books/{sample_book.id}/reviews",
            json={**review_payload, "title": "   "},
            headers=get_auth_header(author),
        )

        assert response.status_code == 422


# =============================================================================
# List Reviews for Book
# =============================================================================


class TestListBookReviews:
    """Tests for GET /api/v1/books/{book_id}/reviews"""

    def test_list_reviews_empty(self, client: TestClient, sample_book: Book):
        response = client.get(f"/api/v1/books/{sample_book.id}/reviews")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["items"] == []
        assert data["total"] == 0
        assert data["page"] == 1

    def test_list_reviews_hides_unapproved(
        self, client: TestClient, sample_book: Book, make_review
    ):
        make_review(status=ReviewStatus.APPROVED)
        make_review(status=ReviewStatus.PENDING)

        response = client.get(f"/api/v1/books/{sample_book.id}/reviews")

        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["status"] == "approved"

    def test_list_reviews_moderator_status_filter(
        self, client: TestClient, sample_book: Book, make_review, moderator: Actor
    ):
        make_review(status=ReviewStatus.APPROVED)
        make_review(status=ReviewStatus.PENDING)

        response = client.get(
            f"/api/v1/books/{sample_book.id}/reviews?status=pending",
            headers=get_auth_header(moderator),
        )

        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["status"] == "pending"

    def test_list_reviews_book_not_found(self, client: TestClient):
        response = client.get("/api/v1/books/99999/reviews")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_list_reviews_pagination(
        self, client: TestClient, sample_book: Book, make_review
    ):
        for i in range(15):
            make_review(rating=(i % 5) + 1)

        response = client.get(f"/api/v1/books/{sample_book.id}/reviews?per_page=5")
        data = response.json()
        assert data["total"] == 15
        assert len(data["items"]) == 5
        assert data["pages"] == 3

        response = client.get(f"/api/v1/books/{sample_book.id}/reviews?page=2&per_page=5")
        data = response.json()
        assert len(data["items"]) == 5
        assert data["page"] == 2


# =============================================================================
# Get Single Review
# =============================================================================


class TestGetReview:
    """Tests for GET /api/v1/reviews/{review_id}"""

    def test_get_approved_review(self, client: TestClient, make_review):
        review = make_review()

        response = client.get(f"/api/v1/reviews/{review.id}")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["id"] == review.id
        assert response.headers["ETag"] == f'"{review.version}"'

    def test_get_pending_review_as_author(
        self, client: TestClient, make_review, author: Actor
    ):
        review = make_review(status=ReviewStatus.PENDING, user_id=author.user_id)

        response = client.get(f"/api/v1/reviews/{review.id}", headers=get_auth_header(author))

        assert response.status_code == status.HTTP_200_OK

    def test_get_pending_review_anonymous(self, client: TestClient, make_review):
        review = make_review(status=ReviewStatus.PENDING)

        response = client.get(f"/api/v1/reviews/{review.id}")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_get_review_not_found(self, client: TestClient):
        response = client.get("/api/v1/reviews/99999")

        assert response.status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# Update Review
# =============================================================================


class TestUpdateReview:
    """Tests for PUT /api/v1/reviews/{review_id}"""

    def test_update_own_review(self, client: TestClient, make_review, author: Actor):
        review = make_review(user_id=author.user_id)

        response = client.put(
            f"/api/v1/reviews/{review.id}",
            json={"title": "Updated title", "rating": 5},
            headers=get_auth_header(author),
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["title"] == "Updated title"
        assert data["rating"] == 5
        assert data["edited"] is True
        assert data["version"] == 2
        assert response.headers["ETag"] == '"2"'

    def test_update_other_users_review(
        self, client: TestClient, make_review, author: Actor, reader: Actor
    ):
        review = make_review(user_id=author.user_id)

        response = client.put(
            f"/api/v1/reviews/{review.id}",
            json={"title": "Hijacked"},
            headers=get_auth_header(reader),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_empty_update_does_not_reveal_pending_review(
        self, client: TestClient, make_review, author: Actor, reader: Actor
    ):
        review = make_review(
            status=ReviewStatus.PENDING,
            user_id=author.user_id,
            content="secret draft",
        )
        headers = get_auth_header(reader)

        assert client.get(f"/api/v1/reviews/{review.id}", headers=headers).status_code == 404

        response = client.put(f"/api/v1/reviews/{review.id}", json={}, headers=headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert "secret draft" not in response.text
        assert "ETag" not in response.headers

    def test_update_status_as_user(self, client: TestClient, make_review, author: Actor):
        review = make_review(status=ReviewStatus.PENDING, user_id=author.user_id)

        response = client.put(
            f"/api/v1/reviews/{review.id}",
            json={"status": "approved"},
            headers=get_auth_header(author),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_approve_as_moderator(
        self, client: TestClient, sample_book: Book, make_review, moderator: Actor
    ):
        review = make_review(rating=3, status=ReviewStatus.PENDING)

        response = client.put(
            f"/api/v1/reviews/{review.id}",
            json={"status": "approved"},
            headers=get_auth_header(moderator),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "approved"
        assert response.json()["moderated_by"] == moderator.user_id

        rating = client.get(f"/api/v1/books/{sample_book.id}/rating").json()
        assert rating["average_rating"] == 3.0
        assert rating["ratings_count"] == 1

    def test_rejection_reason_on_pending_review(
        self, client: TestClient, make_review, moderator: Actor
    ):
        review = make_review(status=ReviewStatus.PENDING)

        response = client.put(
            f"/api/v1/reviews/{review.id}",
            json={"rejection_reason": "Off-topic"},
            headers=get_auth_header(moderator),
        )

        assert response.status_code == 422
        assert "rejection reason" in response.json()["detail"]

    def test_back_to_pending_rejected(
        self, client: TestClient, make_review, moderator: Actor
    ):
        review = make_review(status=ReviewStatus.APPROVED)

        response = client.put(
            f"/api/v1/reviews/{review.id}",
            json={"status": "pending"},
            headers=get_auth_header(moderator),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_if_match_stale_version(self, client: TestClient, make_review, author: Actor):
        review = make_review(user_id=author.user_id)
        headers = get_auth_header(author)
        client.put(f"/api/v1/reviews/{review.id}", json={"title": "First"}, headers=headers)

        response = client.put(
            f"/api/v1/reviews/{review.id}",
            json={"title": "Second"},
            headers={**headers, "If-Match": '"1"'},
        )

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_if_match_current_version(self, client: TestClient, make_review, author: Actor):
        review = make_review(user_id=author.user_id)

        response = client.put(
            f"/api/v1/reviews/{review.id}",
            json={"title": "Guarded"},
            headers={**get_auth_header(author), "If-Match": 'W/"1"'},
        )

        assert response.status_code == status.HTTP_200_OK

    def test_if_match_garbage(self, client: TestClient, make_review, author: Actor):
        review = make_review(user_id=author.user_id)

        response = client.put(
            f"/api/v1/reviews/{review.id}",
            json={"title": "Guarded"},
            headers={**get_auth_header(author), "If-Match": "*"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_update_review_not_found(self, client: TestClient, author: Actor):
        response = client.put(
            "/api/v1/reviews/99999",
            json={"title": "Nope"},
            headers=get_auth_header(author),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# Delete Review
# =============================================================================


class TestDeleteReview:
    """Tests for DELETE /api/v1/reviews/{review_id}"""

    def test_delete_own_review(
        self, client: TestClient, sample_book: Book, make_review, author: Actor
    ):
        review = make_review(rating=5, user_id=author.user_id)

        response = client.delete(
            f"/api/v1/reviews/{review.id}", headers=get_auth_header(author)
        )

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert client.get(f"/api/v1/reviews/{review.id}").status_code == 404

        rating = client.get(f"/api/v1/books/{sample_book.id}/rating").json()
        assert rating["ratings_count"] == 0

    def test_delete_other_users_review(
        self, client: TestClient, make_review, author: Actor, reader: Actor
    ):
        review = make_review(user_id=author.user_id)

        response = client.delete(
            f"/api/v1/reviews/{review.id}", headers=get_auth_header(reader)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_moderator_deletes_any_review(
        self, client: TestClient, make_review, moderator: Actor
    ):
        review = make_review()

        response = client.delete(
            f"/api/v1/reviews/{review.id}", headers=get_auth_header(moderator)
        )

        assert response.status_code == status.HTTP_204_NO_CONTENT


# =============================================================================
# Likes
# =============================================================================


class TestLikeReview:
    """Tests for PUT /api/v1/reviews/{review_id}/like"""

    def test_like_and_unlike(self, client: TestClient, make_review, reader: Actor):
        review = make_review()
        headers = get_auth_header(reader)

        response = client.put(f"/api/v1/reviews/{review.id}/like", headers=headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "review_id": review.id,
            "action": "liked",
            "likes_count": 1,
            "likes": [reader.user_id],
        }

        response = client.put(f"/api/v1/reviews/{review.id}/like", headers=headers)
        assert response.json()["action"] == "unliked"
        assert response.json()["likes_count"] == 0

    def test_like_own_review(self, client: TestClient, make_review, author: Actor):
        review = make_review(user_id=author.user_id)

        response = client.put(
            f"/api/v1/reviews/{review.id}/like", headers=get_auth_header(author)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_like_pending_review(self, client: TestClient, make_review, reader: Actor):
        review = make_review(status=ReviewStatus.PENDING)

        response = client.put(
            f"/api/v1/reviews/{review.id}/like", headers=get_auth_header(reader)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_like_requires_auth(self, client: TestClient, make_review):
        review = make_review()

        response = client.put(f"/api/v1/reviews/{review.id}/like")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


# =============================================================================
# Book Rating
# =============================================================================


class TestBookRating:
    """Tests for GET /api/v1/books/{book_id}/rating"""

    def test_rating_no_reviews(self, client: TestClient, sample_book: Book):
        response = client.get(f"/api/v1/books/{sample_book.id}/rating")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["book_id"] == sample_book.id
        assert data["average_rating"] == 0
        assert data["ratings_count"] == 0
        assert data["ratings_distribution"] == [
            {"star": star, "count": 0} for star in (5, 4, 3, 2, 1)
        ]

    def test_rating_after_moderation(
        self, client: TestClient, sample_book: Book, moderator: Actor, review_payload: dict
    ):
        for user_id, rating in ((1, 5), (2, 5), (3, 4)):
            client.post(
                f"/api/v1/books/{sample_book.id}/reviews",
                json={**review_payload, "rating": rating},
                headers=get_auth_header(Actor(user_id=user_id, role=Role.MODERATOR)),
            )

        data = client.get(f"/api/v1/books/{sample_book.id}/rating").json()

        assert data["average_rating"] == 4.7
        assert data["ratings_count"] == 3
        assert data["ratings_distribution"][0] == {"star": 5, "count": 2}
        assert data["ratings_distribution"][1] == {"star": 4, "count": 1}

    def test_rating_book_not_found(self, client: TestClient):
        response = client.get("/api/v1/books/99999/rating")

        assert response.status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# Collections
# =============================================================================


class TestRecentAndPending:
    """Tests for GET /api/v1/reviews/recent and /api/v1/reviews/pending"""

    def test_recent_reviews(self, client: TestClient, make_review):
        make_review(status=ReviewStatus.APPROVED)
        make_review(status=ReviewStatus.PENDING)

        response = client.get("/api/v1/reviews/recent")

        assert response.status_code == status.HTTP_200_OK
        assert len(response.json()) == 1

    def test_pending_queue_as_moderator(
        self, client: TestClient, make_review, moderator: Actor
    ):
        make_review(status=ReviewStatus.PENDING)
        make_review(status=ReviewStatus.APPROVED)

        response = client.get("/api/v1/reviews/pending", headers=get_auth_header(moderator))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["total"] == 1

    def test_pending_queue_as_user(self, client: TestClient, reader: Actor):
        response = client.get("/api/v1/reviews/pending", headers=get_auth_header(reader))

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestUserReviews:
    """Tests for GET /api/v1/users/{user_id}/reviews"""

    def test_own_reviews_include_pending(
        self, client: TestClient, make_review, second_book: Book, author: Actor
    ):
        make_review(status=ReviewStatus.APPROVED, user_id=author.user_id)
        make_review(status=ReviewStatus.PENDING, user_id=author.user_id, book=second_book)

        own = client.get(
            f"/api/v1/users/{author.user_id}/reviews", headers=get_auth_header(author)
        )
        public = client.get(f"/api/v1/users/{author.user_id}/reviews")

        assert own.json()["total"] == 2
        assert public.json()["total"] == 1

    def test_pending_filter_forbidden_for_others(
        self, client: TestClient, reader: Actor, author: Actor
    ):
        response = client.get(
            f"/api/v1/users/{author.user_id}/reviews?status=pending",
            headers=get_auth_header(reader),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
