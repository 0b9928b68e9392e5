# utils/transaction_utils.py
"""
Settlement protocol for book purchases.

    Pending --(seller: Completed)--> Completed   (book is released)
    Pending --(seller: Cancelled)--> Cancelled   (book stays unavailable)

Completed and Cancelled are terminal.
"""
import logging

from django.db import transaction as db_transaction
from django.db.models import Q
from django.utils import timezone

from ..exceptions import (
    ConflictError,
    ForbiddenError,
    ListingUnavailableError,
    NotFoundError,
    SelfPurchaseError,
    ValidationError,
)
from ..models import Transaction
from . import listing_utils, notifications

logger = logging.getLogger(__name__)


def _with_parties(qs):
    return qs.select_related("book", "buyer", "seller")


def _notify_seller(transaction):
    seller = transaction.seller
    notifications.send(
        seller.email,
        "transactionCreated",
        {
            "sellerName": seller.first_name or seller.username,
            "buyerName": transaction.buyer.first_name or transaction.buyer.username,
            "bookTitle": transaction.book.title,
            "transactionType": "Purchase",
            "price": transaction.price,
        },
    )


def create_transaction(book_id, buyer):
    """
    Buy a book: reserve it and open a Pending transaction for ``buyer``.

    Reservation and ledger entry commit together; the seller email goes out
    only after the commit and its failure never affects the purchase.
    """
    book = listing_utils.get_listing(book_id)

    if not book.available:
        raise ListingUnavailableError("Book not available")

    if book.owner_id == buyer.pk:
        raise SelfPurchaseError("Cannot buy your own book")

    with db_transaction.atomic():
        listing_utils.reserve(book, buyer)
        transaction = Transaction.objects.create(
            book=book,
            buyer=buyer,
            seller=book.owner,
            price=book.price,
        )
        db_transaction.on_commit(lambda: _notify_seller(transaction))

    logger.info(
        f"Transaction {transaction.pk} created: book {book.pk} "
        f"sold by user {book.owner_id} to user {buyer.pk} for {book.price}"
    )
    return _with_parties(Transaction.objects).get(pk=transaction.pk)


def update_status(transaction_id, requester, new_status):
    """
    Move a Pending transaction to Completed or Cancelled. Seller only.
    """
    try:
        transaction = Transaction.objects.select_related("book").get(pk=transaction_id)
    except (Transaction.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Transaction not found")

    if transaction.seller_id != requester.pk:
        raise ForbiddenError("Not authorized")

    if transaction.is_terminal:
        raise ConflictError(f"Transaction is already {transaction.status}")

    if new_status not in Transaction.TERMINAL_STATUSES:
        raise ValidationError(
            "Status must be one of: " + ", ".join(Transaction.TERMINAL_STATUSES),
            errors=[{"field": "status", "message": f"'{new_status}' is not a valid transition"}],
        )

    with db_transaction.atomic():
        # Conditional update so two concurrent updates cannot both win
        updated = Transaction.objects.filter(
            pk=transaction.pk, status=Transaction.Status.PENDING
        ).update(status=new_status, updated_at=timezone.now())
        if not updated:
            raise ConflictError("Transaction is no longer pending")

        if new_status == Transaction.Status.COMPLETED:
            listing_utils.release(transaction.book)

    logger.info(
        f"Transaction {transaction.pk} moved to {new_status} by user {requester.pk}"
    )
    return _with_parties(Transaction.objects).get(pk=transaction.pk)


def get_for_user(user):
    """All transactions where ``user`` is buyer or seller, newest first."""
    return _with_parties(
        Transaction.objects.filter(Q(buyer=user) | Q(seller=user))
    ).order_by("-created_at", "-id")


def get_by_id(transaction_id, requester):
    try:
        transaction = _with_parties(Transaction.objects).get(pk=transaction_id)
    except (Transaction.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Transaction not found")

    if not transaction.involves(requester):
        raise ForbiddenError("Not authorized")

    return transaction
