# utils/review_utils.py
import logging

from django.db import IntegrityError, transaction
from django.db.models import Avg, Count

from ..exceptions import ForbiddenError, NotFoundError, ValidationError
from ..models import Book, Review

logger = logging.getLogger(__name__)


def submit_review(book_id, reviewer, rating, comment=""):
    """
    Create a review for a book. A reader can review each book only once.
    """
    try:
        book = Book.objects.get(pk=book_id)
    except (Book.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Book not found")

    if Review.objects.filter(book=book, reviewer=reviewer).exists():
        raise ValidationError("You already reviewed this book")

    try:
        with transaction.atomic():
            review = Review.objects.create(
                book=book,
                reviewer=reviewer,
                rating=rating,
                comment=comment,
            )
    except IntegrityError:
        # Lost a race against a concurrent review by the same reader
        raise ValidationError("You already reviewed this book")

    logger.info(f"User {reviewer.pk} reviewed book {book.pk} ({rating}★)")
    return review


def delete_review(review_id, requester):
    try:
        review = Review.objects.get(pk=review_id)
    except (Review.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Review not found")

    if review.reviewer_id != requester.pk:
        raise ForbiddenError("Not authorized")

    review.delete()
    logger.info(f"Review {review_id} deleted by user {requester.pk}")


def get_all_reviews():
    return Review.objects.select_related("reviewer", "book").order_by("-created_at", "-id")


def get_reviews_for_book(book_id):
    return (
        Review.objects.select_related("reviewer", "book")
        .filter(book_id=book_id)
        .order_by("-created_at", "-id")
    )


def get_book_review_stats(book):
    """
    Get rating statistics for a book
    """
    stats = book.reviews.aggregate(avg_rating=Avg("rating"), total=Count("id"))

    distribution = {5: 0, 4: 0, 3: 0, 2: 0, 1: 0}
    for item in book.reviews.values("rating").annotate(count=Count("id")):
        distribution[item["rating"]] = item["count"]

    return {
        "averageRating": round(stats["avg_rating"] or 0, 2),
        "totalReviews": stats["total"],
        "distribution": distribution,
    }
