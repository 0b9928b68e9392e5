# utils/listing_utils.py
"""
Listing lifecycle: the single source of truth for whether a book can be bought.

A book is offered to buyers only while it is approved and available. Purchases
reserve it (available -> False) and a completed transaction releases it again.
"""
import logging

from django.utils import timezone

from ..exceptions import ConflictError, ListingUnavailableError, NotFoundError, SelfPurchaseError
from ..models import Book

logger = logging.getLogger(__name__)


def get_listing(book_id, for_update=False):
    """
    Load a book by id. Raises NotFoundError if it does not exist.
    """
    qs = Book.objects.select_related("owner")
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=book_id)
    except (Book.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Book not found")


def is_purchasable(book):
    return book.is_approved and book.available


def reserve(book, requester):
    """
    Mark a purchasable book unavailable for ``requester``.

    The flip is a single conditional UPDATE, so when several buyers race for
    the same book exactly one of them gets it; the rest see ConflictError.
    """
    if book.owner_id == requester.pk:
        raise SelfPurchaseError("Cannot buy your own book")

    if not is_purchasable(book):
        raise ListingUnavailableError("Book not available")

    reserved = Book.objects.filter(
        pk=book.pk, available=True, is_approved=True
    ).update(available=False, updated_at=timezone.now())

    if not reserved:
        try:
            book.refresh_from_db(fields=["available", "is_approved", "updated_at"])
        except Book.DoesNotExist:
            logger.warning(f"Book {book.pk} was deleted before user {requester.pk} could reserve it")
            raise NotFoundError("Book not found")
        logger.warning(f"Reservation of book {book.pk} by user {requester.pk} lost the race")
        raise ListingUnavailableError("Book not available")

    book.available = False
    logger.info(f"Book {book.pk} reserved by user {requester.pk}")
    return book


def release(book):
    """
    Make a book available again. Releasing an available book is a no-op.
    """
    if not Book.objects.filter(pk=book.pk).exists():
        raise NotFoundError("Book not found")

    Book.objects.filter(pk=book.pk, available=False).update(
        available=True, updated_at=timezone.now()
    )
    book.available = True
    logger.info(f"Book {book.pk} released")
    return book


def approve(book, admin):
    if book.approval_status == Book.ApprovalStatus.APPROVED:
        raise ConflictError("Book is already approved")

    book.approval_status = Book.ApprovalStatus.APPROVED
    book.approved_by = admin
    book.approved_at = timezone.now()
    book.rejection_reason = ""
    book.save()
    logger.info(f"Book {book.pk} approved by {admin}")
    return book


def reject(book, admin, reason=""):
    book.approval_status = Book.ApprovalStatus.REJECTED
    book.approved_by = admin
    book.approved_at = None
    book.rejection_reason = reason
    book.save()
    logger.info(f"Book {book.pk} rejected by {admin}: {reason or 'no reason given'}")
    return book
