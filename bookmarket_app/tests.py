from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.contrib import admin, messages
from django.contrib.auth.models import User
from django.core import mail
from django.core.management import call_command
from django.test import Client, RequestFactory, TestCase
from django.urls import reverse

from .admin import BookAdmin
from .exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from .models import Book, Review, Transaction
from .utils import geo, listing_utils, transaction_utils

MADRID = (40.4168, -3.7038)
BARCELONA = (41.3874, 2.1686)


def create_reader(email, password="testpass123", name="Reader"):
    """Helper function to create a reader account"""
    return User.objects.create_user(
        username=email, email=email, password=password, first_name=name
    )


def create_book(owner, title="Dune", price="20.00", approved=True, location=MADRID, **extra):
    """Helper function to create a book listing"""
    fields = {
        "author": "Frank Herbert",
        "price": Decimal(price),
        "latitude": location[0],
        "longitude": location[1],
        "approval_status": (
            Book.ApprovalStatus.APPROVED if approved else Book.ApprovalStatus.PENDING
        ),
    }
    fields.update(extra)
    return Book.objects.create(title=title, owner=owner, **fields)


class BookModelTests(TestCase):
    """Tests for the approval flags kept on Book"""

    def setUp(self):
        self.owner = create_reader("owner@example.com")

    def test_new_book_defaults(self):
        """Test that a new listing starts pending, unapproved and available"""
        book = create_book(self.owner, approved=False)

        self.assertEqual(book.approval_status, Book.ApprovalStatus.PENDING)
        self.assertFalse(book.is_approved)
        self.assertTrue(book.available)
        self.assertFalse(book.is_featured)
        self.assertEqual(book.category, Book.Category.OTHER)
        self.assertEqual(book.condition, Book.Condition.USED)

    def test_is_approved_follows_approval_status(self):
        """Test that is_approved cannot drift from approval_status"""
        book = create_book(self.owner, approved=False)
        book.is_approved = True
        book.save()
        book.refresh_from_db()
        self.assertFalse(book.is_approved)

        book.approval_status = Book.ApprovalStatus.APPROVED
        book.save(update_fields=["approval_status"])
        book.refresh_from_db()
        self.assertTrue(book.is_approved)

    def test_profile_created_with_user(self):
        """Test that every new user gets a reader profile"""
        self.assertIsNotNone(self.owner.profile)
        self.assertEqual(self.owner.profile.latitude, 0.0)


class ListingLifecycleTests(TestCase):
    """Tests for reserve / release / approval of listings"""

    def setUp(self):
        self.owner = create_reader("owner@example.com")
        self.buyer = create_reader("buyer@example.com")
        self.other_buyer = create_reader("other@example.com")
        self.admin = User.objects.create_user(
            username="admin", email="admin@example.com", password="adminpass", is_staff=True
        )

    def test_is_purchasable(self):
        """Test that only approved and available books are purchasable"""
        approved = create_book(self.owner, title="Approved")
        pending = create_book(self.owner, title="Pending", approved=False)
        sold = create_book(self.owner, title="Sold", available=False)

        self.assertTrue(listing_utils.is_purchasable(approved))
        self.assertFalse(listing_utils.is_purchasable(pending))
        self.assertFalse(listing_utils.is_purchasable(sold))

    def test_reserve_marks_book_unavailable(self):
        """Test that reserving flips available to False in memory and in the DB"""
        book = create_book(self.owner)

        listing_utils.reserve(book, self.buyer)

        self.assertFalse(book.available)
        book.refresh_from_db()
        self.assertFalse(book.available)

    def test_reserve_own_book_forbidden(self):
        """Test that the owner cannot reserve their own listing"""
        book = create_book(self.owner)

        with self.assertRaises(ForbiddenError):
            listing_utils.reserve(book, self.owner)

        book.refresh_from_db()
        self.assertTrue(book.available)

    def test_reserve_unapproved_book_conflicts(self):
        """Test that an unapproved listing cannot be reserved"""
        book = create_book(self.owner, approved=False)

        with self.assertRaises(ConflictError):
            listing_utils.reserve(book, self.buyer)

    def test_reserve_with_stale_copy_loses(self):
        """Test that two buyers holding the same available copy cannot both reserve it"""
        first_copy = Book.objects.get(pk=create_book(self.owner).pk)
        second_copy = Book.objects.get(pk=first_copy.pk)

        listing_utils.reserve(first_copy, self.buyer)

        # second_copy still believes the book is available
        self.assertTrue(second_copy.available)
        with self.assertRaises(ConflictError):
            listing_utils.reserve(second_copy, self.other_buyer)
        self.assertFalse(second_copy.available)

    def test_reserve_deleted_book(self):
        """Test that reserving a book deleted after it was loaded raises NotFoundError"""
        stale = Book.objects.get(pk=create_book(self.owner).pk)
        Book.objects.filter(pk=stale.pk).delete()

        with self.assertRaises(NotFoundError):
            listing_utils.reserve(stale, self.buyer)

    def test_release_is_idempotent(self):
        """Test that releasing an available book is a no-op success"""
        book = create_book(self.owner, available=False)

        listing_utils.release(book)
        listing_utils.release(book)

        book.refresh_from_db()
        self.assertTrue(book.available)

    def test_release_missing_book(self):
        """Test that releasing a deleted book raises NotFoundError"""
        book = create_book(self.owner)
        Book.objects.filter(pk=book.pk).delete()

        with self.assertRaises(NotFoundError):
            listing_utils.release(book)

    def test_get_listing_missing(self):
        """Test that loading an unknown book raises NotFoundError"""
        with self.assertRaises(NotFoundError):
            listing_utils.get_listing(99999)

    def test_approve_and_reject(self):
        """Test that approve/reject keep status, flag and audit fields consistent"""
        book = create_book(self.owner, approved=False)

        listing_utils.approve(book, self.admin)
        book.refresh_from_db()
        self.assertTrue(book.is_approved)
        self.assertEqual(book.approval_status, Book.ApprovalStatus.APPROVED)
        self.assertEqual(book.approved_by, self.admin)
        self.assertIsNotNone(book.approved_at)

        with self.assertRaises(ConflictError):
            listing_utils.approve(book, self.admin)

        listing_utils.reject(book, self.admin, reason="Wrong category")
        book.refresh_from_db()
        self.assertFalse(book.is_approved)
        self.assertEqual(book.approval_status, Book.ApprovalStatus.REJECTED)
        self.assertEqual(book.rejection_reason, "Wrong category")


class SettlementTests(TestCase):
    """Tests for the purchase transaction state machine"""

    def setUp(self):
        self.seller = create_reader("seller@example.com", name="Sam Seller")
        self.buyer = create_reader("buyer@example.com", name="Bea Buyer")
        self.other = create_reader("other@example.com", name="Otto Other")
        self.book = create_book(self.seller, price="20.00")

    def test_create_transaction(self):
        """Test that a purchase creates one Pending transaction and reserves the book"""
        transaction = transaction_utils.create_transaction(self.book.pk, self.buyer)

        self.assertEqual(transaction.status, Transaction.Status.PENDING)
        self.assertEqual(transaction.buyer, self.buyer)
        self.assertEqual(transaction.seller, self.seller)
        self.assertEqual(transaction.price, Decimal("20.00"))

        self.book.refresh_from_db()
        self.assertFalse(self.book.available)
        self.assertEqual(
            Transaction.objects.filter(book=self.book, status=Transaction.Status.PENDING).count(), 1
        )

    def test_price_is_snapshot(self):
        """Test that changing the book price later does not change the transaction"""
        transaction = transaction_utils.create_transaction(self.book.pk, self.buyer)

        Book.objects.filter(pk=self.book.pk).update(price=Decimal("99.00"))

        transaction.refresh_from_db()
        self.assertEqual(transaction.price, Decimal("20.00"))

    def test_create_transaction_missing_book(self):
        """Test that buying an unknown book raises NotFoundError"""
        with self.assertRaises(NotFoundError):
            transaction_utils.create_transaction(99999, self.buyer)

    def test_create_transaction_unavailable_book(self):
        """Test that buying an unavailable book raises ConflictError"""
        Book.objects.filter(pk=self.book.pk).update(available=False)

        with self.assertRaises(ConflictError):
            transaction_utils.create_transaction(self.book.pk, self.buyer)
        self.assertEqual(Transaction.objects.count(), 0)

    def test_create_transaction_unapproved_book(self):
        """Test that an available but unapproved book cannot be bought"""
        pending = create_book(self.seller, title="Pending", approved=False)

        with self.assertRaises(ConflictError):
            transaction_utils.create_transaction(pending.pk, self.buyer)
        self.assertEqual(Transaction.objects.count(), 0)

    def test_create_transaction_own_book(self):
        """Test that the owner cannot buy their own book"""
        with self.assertRaises(ForbiddenError):
            transaction_utils.create_transaction(self.book.pk, self.seller)

        self.book.refresh_from_db()
        self.assertTrue(self.book.available)
        self.assertEqual(Transaction.objects.count(), 0)

    def test_second_purchase_conflicts(self):
        """Test that a sold book cannot be bought again"""
        transaction_utils.create_transaction(self.book.pk, self.buyer)

        with self.assertRaises(ConflictError):
            transaction_utils.create_transaction(self.book.pk, self.other)
        self.assertEqual(Transaction.objects.count(), 1)

    def test_concurrent_purchase_only_one_wins(self):
        """Test that a buyer who loaded the book before it was reserved still loses"""
        stale = Book.objects.get(pk=self.book.pk)
        transaction_utils.create_transaction(self.book.pk, self.buyer)

        with patch.object(listing_utils, "get_listing", return_value=stale):
            with self.assertRaises(ConflictError):
                transaction_utils.create_transaction(self.book.pk, self.other)

        self.assertEqual(Transaction.objects.filter(book=self.book).count(), 1)
        self.assertEqual(Transaction.objects.get(book=self.book).buyer, self.buyer)

    def test_seller_notified_after_commit(self):
        """Test that the seller gets an email once the purchase commits"""
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            transaction_utils.create_transaction(self.book.pk, self.buyer)

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["seller@example.com"])
        self.assertIn("Dune", mail.outbox[0].subject)
        self.assertIn("Bea Buyer", mail.outbox[0].body)

    def test_notification_failure_keeps_purchase(self):
        """Test that an email failure is logged and does not undo the purchase"""
        with patch(
            "bookmarket_app.utils.notifications.EmailMessage.send",
            side_effect=ConnectionError("smtp down"),
        ):
            with self.assertLogs("bookmarket_app.utils.notifications", level="WARNING") as logs:
                with self.captureOnCommitCallbacks(execute=True):
                    transaction = transaction_utils.create_transaction(self.book.pk, self.buyer)

        self.assertTrue(any("smtp down" in line for line in logs.output))
        self.assertTrue(Transaction.objects.filter(pk=transaction.pk).exists())
        self.book.refresh_from_db()
        self.assertFalse(self.book.available)

    def test_complete_releases_book(self):
        """Test that completing a transaction makes the book available again"""
        transaction = transaction_utils.create_transaction(self.book.pk, self.buyer)

        updated = transaction_utils.update_status(
            transaction.pk, self.seller, Transaction.Status.COMPLETED
        )

        self.assertEqual(updated.status, Transaction.Status.COMPLETED)
        self.book.refresh_from_db()
        self.assertTrue(self.book.available)

    def test_cancel_keeps_book_unavailable(self):
        """Test that cancelling has no effect on the listing"""
        transaction = transaction_utils.create_transaction(self.book.pk, self.buyer)

        updated = transaction_utils.update_status(
            transaction.pk, self.seller, Transaction.Status.CANCELLED
        )

        self.assertEqual(updated.status, Transaction.Status.CANCELLED)
        self.book.refresh_from_db()
        self.assertFalse(self.book.available)

    def test_terminal_status_not_repeatable(self):
        """Test that a second status update on a terminal transaction conflicts"""
        transaction = transaction_utils.create_transaction(self.book.pk, self.buyer)
        transaction_utils.update_status(transaction.pk, self.seller, Transaction.Status.COMPLETED)

        with self.assertRaises(ConflictError):
            transaction_utils.update_status(transaction.pk, self.seller, Transaction.Status.COMPLETED)
        with self.assertRaises(ConflictError):
            transaction_utils.update_status(transaction.pk, self.seller, Transaction.Status.CANCELLED)

    def test_only_seller_updates_status(self):
        """Test that buyer and strangers cannot move the transaction"""
        transaction = transaction_utils.create_transaction(self.book.pk, self.buyer)

        for user in (self.buyer, self.other):
            with self.assertRaises(ForbiddenError):
                transaction_utils.update_status(transaction.pk, user, Transaction.Status.COMPLETED)

        transaction.refresh_from_db()
        self.assertEqual(transaction.status, Transaction.Status.PENDING)

    def test_update_to_pending_rejected(self):
        """Test that Pending is not a valid target status"""
        transaction = transaction_utils.create_transaction(self.book.pk, self.buyer)

        with self.assertRaises(ValidationError):
            transaction_utils.update_status(transaction.pk, self.seller, Transaction.Status.PENDING)

    def test_update_missing_transaction(self):
        """Test that updating an unknown transaction raises NotFoundError"""
        with self.assertRaises(NotFoundError):
            transaction_utils.update_status(99999, self.seller, Transaction.Status.COMPLETED)

    def test_get_for_user_newest_first(self):
        """Test that a reader sees purchases and sales, newest first"""
        second_book = create_book(self.buyer, title="Watchmen")
        first = transaction_utils.create_transaction(self.book.pk, self.buyer)
        second = transaction_utils.create_transaction(second_book.pk, self.seller)

        self.assertEqual(list(transaction_utils.get_for_user(self.buyer)), [second, first])
        self.assertEqual(list(transaction_utils.get_for_user(self.other)), [])

    def test_get_by_id_parties_only(self):
        """Test that only buyer and seller can read a transaction"""
        transaction = transaction_utils.create_transaction(self.book.pk, self.buyer)

        self.assertEqual(transaction_utils.get_by_id(transaction.pk, self.buyer), transaction)
        self.assertEqual(transaction_utils.get_by_id(transaction.pk, self.seller), transaction)
        with self.assertRaises(ForbiddenError):
            transaction_utils.get_by_id(transaction.pk, self.other)
        with self.assertRaises(NotFoundError):
            transaction_utils.get_by_id(99999, self.buyer)


class TransactionApiTests(TestCase):
    """Tests for the /api/transactions/ endpoints"""

    def setUp(self):
        self.client = Client()
        self.seller = create_reader("u1@example.com", name="U1")
        self.buyer = create_reader("u2@example.com", name="U2")
        self.other = create_reader("u3@example.com", name="U3")
        self.book = create_book(self.seller, price="20")
        self.url = reverse("bookmarket_app:transactions")

    def _buy(self, book_id):
        return self.client.post(self.url, {"bookId": book_id}, content_type="application/json")

    def _set_status(self, transaction_id, status):
        return self.client.put(
            reverse("bookmarket_app:transaction_status", args=[transaction_id]),
            {"status": status},
            content_type="application/json",
        )

    def test_requires_login(self):
        """Test that anonymous requests get 401 JSON instead of a redirect"""
        response = self._buy(self.book.pk)

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["kind"], "AuthenticationError")
        self.assertEqual(self.client.get(self.url).status_code, 401)

    def test_purchase_and_complete_scenario(self):
        """Test the full buy -> complete flow over HTTP"""
        self.client.login(username="u2@example.com", password="testpass123")
        response = self._buy(self.book.pk)

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["transaction"]["status"], "Pending")
        self.assertEqual(Decimal(body["transaction"]["price"]), Decimal("20"))
        self.assertEqual(body["transaction"]["buyer"]["name"], "U2")
        self.assertEqual(body["transaction"]["book"]["title"], "Dune")
        self.book.refresh_from_db()
        self.assertFalse(self.book.available)

        self.client.logout()
        self.client.login(username="u1@example.com", password="testpass123")
        response = self._set_status(body["transaction"]["_id"], "Completed")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["transaction"]["status"], "Completed")
        self.book.refresh_from_db()
        self.assertTrue(self.book.available)

    def test_missing_book_returns_404(self):
        """Test that buying an unknown book returns 404"""
        self.client.login(username="u2@example.com", password="testpass123")

        response = self._buy(99999)

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Book not found")

    def test_unavailable_book_returns_400(self):
        """Test that buying an unavailable book returns 400"""
        Book.objects.filter(pk=self.book.pk).update(available=False)
        self.client.login(username="u2@example.com", password="testpass123")

        response = self._buy(self.book.pk)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Book not available")
        self.assertEqual(response.json()["kind"], "ConflictError")

    def test_self_purchase_returns_400(self):
        """Test that buying your own book returns 400"""
        self.client.login(username="u1@example.com", password="testpass123")

        response = self._buy(self.book.pk)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Cannot buy your own book")
        self.assertEqual(response.json()["kind"], "ForbiddenError")

    def test_missing_book_id_returns_400(self):
        """Test that a body without bookId is rejected"""
        self.client.login(username="u2@example.com", password="testpass123")

        response = self.client.post(self.url, {}, content_type="application/json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["errors"][0]["field"], "bookId")

    def test_malformed_json_returns_400(self):
        """Test that an unparseable body is a validation error"""
        self.client.login(username="u2@example.com", password="testpass123")

        response = self.client.post(self.url, "{not json", content_type="application/json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["kind"], "ValidationError")

    def test_list_user_transactions(self):
        """Test that the list contains only the reader's transactions"""
        self.client.login(username="u2@example.com", password="testpass123")
        self._buy(self.book.pk)

        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 1)

        self.client.logout()
        self.client.login(username="u3@example.com", password="testpass123")
        self.assertEqual(self.client.get(self.url).json(), [])

    def test_get_transaction_by_id(self):
        """Test that parties can read a transaction and others get 403"""
        transaction = transaction_utils.create_transaction(self.book.pk, self.buyer)
        url = reverse("bookmarket_app:transaction_detail", args=[transaction.pk])

        self.client.login(username="u1@example.com", password="testpass123")
        response = self.client.get(url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["seller"]["email"], "u1@example.com")

        self.client.logout()
        self.client.login(username="u3@example.com", password="testpass123")
        self.assertEqual(self.client.get(url).status_code, 403)

        missing = reverse("bookmarket_app:transaction_detail", args=[99999])
        self.assertEqual(self.client.get(missing).status_code, 404)

    def test_status_update_by_buyer_forbidden(self):
        """Test that the buyer cannot change the status"""
        transaction = transaction_utils.create_transaction(self.book.pk, self.buyer)
        self.client.login(username="u2@example.com", password="testpass123")

        response = self._set_status(transaction.pk, "Completed")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["message"], "Not authorized")

    def test_repeated_status_update_conflicts(self):
        """Test that updating a terminal transaction returns 409"""
        transaction = transaction_utils.create_transaction(self.book.pk, self.buyer)
        self.client.login(username="u1@example.com", password="testpass123")

        self.assertEqual(self._set_status(transaction.pk, "Cancelled").status_code, 200)
        response = self._set_status(transaction.pk, "Completed")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["kind"], "ConflictError")
        self.book.refresh_from_db()
        self.assertFalse(self.book.available)

    def test_unknown_status_rejected(self):
        """Test that a status outside the enum is a 400"""
        transaction = transaction_utils.create_transaction(self.book.pk, self.buyer)
        self.client.login(username="u1@example.com", password="testpass123")

        response = self._set_status(transaction.pk, "Shipped")

        self.assertEqual(response.status_code, 400)
        transaction.refresh_from_db()
        self.assertEqual(transaction.status, Transaction.Status.PENDING)


class BookApiTests(TestCase):
    """Tests for book CRUD endpoints"""

    def setUp(self):
        self.client = Client()
        self.owner = create_reader("owner@example.com", name="Olivia")
        self.other = create_reader("other@example.com")
        self.url = reverse("bookmarket_app:books")
        self.payload = {
            "title": "The Hobbit",
            "author": "J. R. R. Tolkien",
            "category": "Fiction",
            "condition": "Good",
            "price": 15.5,
            "location": {"type": "Point", "coordinates": [MADRID[1], MADRID[0]]},
            "description": "Hardcover",
        }

    def test_create_requires_login(self):
        """Test that anonymous users cannot list books"""
        response = self.client.post(self.url, self.payload, content_type="application/json")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(Book.objects.count(), 0)

    def test_create_book(self):
        """Test that a listing is created pending, available and owned by the requester"""
        self.client.login(username="owner@example.com", password="testpass123")

        response = self.client.post(self.url, self.payload, content_type="application/json")

        self.assertEqual(response.status_code, 201)
        book = Book.objects.get()
        self.assertEqual(book.owner, self.owner)
        self.assertEqual(book.price, Decimal("15.50"))
        self.assertEqual(book.latitude, MADRID[0])
        self.assertEqual(book.longitude, MADRID[1])
        self.assertFalse(book.is_approved)
        self.assertTrue(book.available)
        self.assertEqual(response.json()["location"]["coordinates"], [MADRID[1], MADRID[0]])

    def test_create_ignores_lifecycle_flags(self):
        """Test that clients cannot self-approve or feature a listing"""
        self.client.login(username="owner@example.com", password="testpass123")
        payload = dict(self.payload, isApproved=True, approvalStatus="approved", isFeatured=True)

        self.client.post(self.url, payload, content_type="application/json")

        book = Book.objects.get()
        self.assertFalse(book.is_approved)
        self.assertEqual(book.approval_status, Book.ApprovalStatus.PENDING)
        self.assertFalse(book.is_featured)

    def test_create_defaults_category_and_condition(self):
        """Test that category and condition fall back to Other / Used"""
        self.client.login(username="owner@example.com", password="testpass123")
        payload = {k: v for k, v in self.payload.items() if k not in ("category", "condition")}

        self.client.post(self.url, payload, content_type="application/json")

        book = Book.objects.get()
        self.assertEqual(book.category, "Other")
        self.assertEqual(book.condition, "Used")

    def test_duplicate_title_rejected(self):
        """Test that titles are unique"""
        create_book(self.other, title="The Hobbit")
        self.client.login(username="owner@example.com", password="testpass123")

        response = self.client.post(self.url, self.payload, content_type="application/json")

        self.assertEqual(response.status_code, 400)
        self.assertIn(
            {"field": "title", "message": "title already taken"}, response.json()["errors"]
        )

    def test_negative_price_rejected(self):
        """Test that negative prices are rejected"""
        self.client.login(username="owner@example.com", password="testpass123")

        response = self.client.post(
            self.url, dict(self.payload, price=-1), content_type="application/json"
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(Book.objects.count(), 0)
        fields = [error["field"] for error in response.json()["errors"]]
        self.assertIn("price", fields)

    def test_invalid_category_and_missing_location_rejected(self):
        """Test that enum and required fields are validated"""
        self.client.login(username="owner@example.com", password="testpass123")
        payload = dict(self.payload, category="Cookbooks")
        del payload["location"]

        response = self.client.post(self.url, payload, content_type="application/json")

        self.assertEqual(response.status_code, 400)
        fields = {error["field"] for error in response.json()["errors"]}
        self.assertTrue({"category", "latitude", "longitude"} <= fields)

    def test_get_book_increments_views(self):
        """Test that each detail read bumps the view counter"""
        book = create_book(self.owner)
        url = reverse("bookmarket_app:book_detail", args=[book.pk])

        self.client.get(url)
        response = self.client.get(url)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["views"], 2)
        self.assertEqual(response.json()["owner"]["name"], "Olivia")
        self.assertEqual(response.json()["reviewStats"]["totalReviews"], 0)

    def test_get_missing_book(self):
        """Test that an unknown book id returns 404"""
        response = self.client.get(reverse("bookmarket_app:book_detail", args=[99999]))

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Book not found")

    def test_owner_updates_book(self):
        """Test that the owner can partially update a listing"""
        book = create_book(self.owner)
        self.client.login(username="owner@example.com", password="testpass123")

        response = self.client.put(
            reverse("bookmarket_app:book_detail", args=[book.pk]),
            {"price": 12, "available": False},
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 200)
        book.refresh_from_db()
        self.assertEqual(book.price, Decimal("12.00"))
        self.assertEqual(book.title, "Dune")
        # Availability is owned by the purchase flow
        self.assertTrue(book.available)

    def test_non_owner_cannot_update_or_delete(self):
        """Test that other readers get 403"""
        book = create_book(self.owner)
        url = reverse("bookmarket_app:book_detail", args=[book.pk])
        self.client.login(username="other@example.com", password="testpass123")

        self.assertEqual(
            self.client.put(url, {"price": 1}, content_type="application/json").status_code, 403
        )
        self.assertEqual(self.client.delete(url).status_code, 403)
        self.assertTrue(Book.objects.filter(pk=book.pk).exists())

    def test_delete_book(self):
        """Test that the owner can delete a listing without transactions"""
        book = create_book(self.owner)
        self.client.login(username="owner@example.com", password="testpass123")

        response = self.client.delete(reverse("bookmarket_app:book_detail", args=[book.pk]))

        self.assertEqual(response.status_code, 200)
        self.assertFalse(Book.objects.filter(pk=book.pk).exists())

    def test_delete_book_with_transactions_conflicts(self):
        """Test that sold books stay in the catalog for the ledger"""
        book = create_book(self.owner)
        transaction_utils.create_transaction(book.pk, self.other)
        self.client.login(username="owner@example.com", password="testpass123")

        response = self.client.delete(reverse("bookmarket_app:book_detail", args=[book.pk]))

        self.assertEqual(response.status_code, 409)
        self.assertTrue(Book.objects.filter(pk=book.pk).exists())


class BookSearchTests(TestCase):
    """Tests for listing, filtering, sorting and pagination"""

    def setUp(self):
        self.client = Client()
        self.owner = create_reader("owner@example.com")
        self.dune = create_book(
            self.owner, title="Dune", price="20.00", category="Fiction", condition="Good"
        )
        self.calculus = create_book(
            self.owner,
            title="Calculus",
            author="James Stewart",
            price="45.00",
            category="Education",
            condition="Used",
            location=BARCELONA,
        )
        self.watchmen = create_book(
            self.owner,
            title="Watchmen",
            author="Alan Moore",
            price="10.00",
            category="Comics",
            condition="New",
            is_featured=True,
        )
        self.pending = create_book(self.owner, title="Pending Book", approved=False)
        self.url = reverse("bookmarket_app:books")

    def _titles(self, response):
        return [book["title"] for book in response.json()["data"]]

    def test_only_approved_by_default(self):
        """Test that unapproved listings are hidden unless asked for"""
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 200)
        self.assertNotIn("Pending Book", self._titles(response))
        self.assertEqual(response.json()["pagination"]["total"], 3)

        response = self.client.get(self.url, {"isApproved": "false"})
        self.assertEqual(self._titles(response), ["Pending Book"])

    def test_search_matches_title_author_description(self):
        """Test that search is case-insensitive over several fields"""
        response = self.client.get(self.url, {"search": "stewart"})

        self.assertEqual(self._titles(response), ["Calculus"])
        self.assertEqual(response.json()["filters"]["search"], "stewart")

    def test_price_range_and_sort(self):
        """Test price bounds combined with an ascending price sort"""
        response = self.client.get(
            self.url, {"minPrice": "10", "maxPrice": "20", "sort": "price"}
        )

        self.assertEqual(self._titles(response), ["Watchmen", "Dune"])
        self.assertEqual(
            response.json()["filters"]["priceRange"], {"minPrice": "10", "maxPrice": "20"}
        )

    def test_multi_field_sort_descending(self):
        """Test that '-price' sorts most expensive first"""
        response = self.client.get(self.url, {"sort": "-price,title"})

        self.assertEqual(self._titles(response), ["Calculus", "Dune", "Watchmen"])

    def test_unknown_sort_field_rejected(self):
        """Test that sorting by an unknown field is a 400"""
        response = self.client.get(self.url, {"sort": "password"})

        self.assertEqual(response.status_code, 400)

    def test_boolean_and_enum_filters(self):
        """Test available, featured, category and condition filters"""
        Book.objects.filter(pk=self.dune.pk).update(available=False)

        self.assertEqual(self._titles(self.client.get(self.url, {"available": "false"})), ["Dune"])
        self.assertEqual(self._titles(self.client.get(self.url, {"isFeatured": "true"})), ["Watchmen"])
        self.assertEqual(self._titles(self.client.get(self.url, {"category": "Education"})), ["Calculus"])
        self.assertEqual(self._titles(self.client.get(self.url, {"condition": "New"})), ["Watchmen"])

    def test_owner_filter(self):
        """Test filtering by owner id"""
        someone = create_reader("someone@example.com")
        create_book(someone, title="Emma")

        response = self.client.get(self.url, {"owner": someone.pk})
        self.assertEqual(self._titles(response), ["Emma"])
        self.assertEqual(self.client.get(self.url, {"owner": "abc"}).status_code, 400)

    def test_pagination(self):
        """Test page envelope arithmetic"""
        response = self.client.get(self.url, {"limit": 2, "page": 2, "sort": "title"})

        self.assertEqual(self._titles(response), ["Watchmen"])
        self.assertEqual(
            response.json()["pagination"],
            {
                "total": 3,
                "page": 2,
                "limit": 2,
                "totalPages": 2,
                "hasNextPage": False,
                "hasPrevPage": True,
            },
        )

    def test_page_past_the_end_is_empty(self):
        """Test that an out-of-range page returns no data instead of an error"""
        response = self.client.get(self.url, {"page": 10})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"], [])

    def test_invalid_page_rejected(self):
        """Test that non-numeric paging values are a 400"""
        self.assertEqual(self.client.get(self.url, {"page": "first"}).status_code, 400)
        self.assertEqual(self.client.get(self.url, {"limit": "0"}).status_code, 400)

    def test_radius_filter(self):
        """Test that lat/lng/radius keeps books inside the circle only"""
        response = self.client.get(
            self.url, {"lat": MADRID[0], "lng": MADRID[1], "radius": 50, "sort": "title"}
        )

        self.assertEqual(self._titles(response), ["Dune", "Watchmen"])
        self.assertEqual(response.json()["filters"]["location"]["radius"], 50.0)

    def test_nearby_requires_coordinates(self):
        """Test that nearby search needs lat and lng"""
        response = self.client.get(reverse("bookmarket_app:books_nearby"), {"lat": 1})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Latitude and longitude are required")

    def test_nearby_orders_by_distance(self):
        """Test that nearby returns purchasable books closest first"""
        close_by = create_book(self.owner, title="Close", location=(40.42, -3.70))
        Book.objects.filter(pk=self.watchmen.pk).update(available=False)

        response = self.client.get(
            reverse("bookmarket_app:books_nearby"),
            {"lat": close_by.latitude, "lng": close_by.longitude},
        )

        body = response.json()
        self.assertEqual(body["count"], 2)
        self.assertEqual([book["title"] for book in body["data"]], ["Close", "Dune"])

    def test_featured_and_available(self):
        """Test the featured and available shortcuts"""
        Book.objects.filter(pk=self.dune.pk).update(available=False)

        featured = self.client.get(reverse("bookmarket_app:featured_books"))
        self.assertEqual(self._titles(featured), ["Watchmen"])

        available = self.client.get(reverse("bookmarket_app:available_books"))
        self.assertEqual(sorted(self._titles(available)), ["Calculus", "Watchmen"])

    def test_advanced_search(self):
        """Test comma-separated filters and named sort orders"""
        response = self.client.get(
            reverse("bookmarket_app:advanced_search"),
            {"categories": "Fiction,Comics", "sortBy": "price-desc"},
        )

        self.assertEqual(self._titles(response), ["Dune", "Watchmen"])
        self.assertEqual(response.json()["appliedFilters"]["categories"], ["Fiction", "Comics"])
        self.assertEqual(response.json()["appliedFilters"]["sortBy"], "price-desc")

        response = self.client.get(
            reverse("bookmarket_app:advanced_search"), {"q": "dune", "conditions": "Good"}
        )
        self.assertEqual(self._titles(response), ["Dune"])
        self.assertEqual(response.json()["searchQuery"], "dune")

    def test_advanced_search_unknown_sort(self):
        """Test that an unknown sortBy is a 400"""
        response = self.client.get(reverse("bookmarket_app:advanced_search"), {"sortBy": "random"})

        self.assertEqual(response.status_code, 400)

    def test_books_by_category(self):
        """Test the category route and its genre alias"""
        response = self.client.get(reverse("bookmarket_app:books_by_category", args=["comics"]))
        self.assertEqual(self._titles(response), ["Watchmen"])

        response = self.client.get(reverse("bookmarket_app:books_by_genre", args=["fiction"]))
        self.assertEqual(sorted(self._titles(response)), ["Dune"])

    def test_books_by_empty_category(self):
        """Test that a category without books returns 404"""
        response = self.client.get(reverse("bookmarket_app:books_by_category", args=["Poetry"]))

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "No books found in category: Poetry")


class GeoTests(TestCase):
    """Tests for distance helpers"""

    def test_haversine_known_distance(self):
        """Test Madrid-Barcelona is roughly 505 km"""
        distance = geo.haversine_km(*MADRID, *BARCELONA)

        self.assertAlmostEqual(distance, 505, delta=5)

    def test_bounding_box_contains_point(self):
        """Test that the bounding box encloses its centre"""
        min_lat, max_lat, min_lng, max_lng = geo.bounding_box(*MADRID, 10)

        self.assertLess(min_lat, MADRID[0])
        self.assertGreater(max_lat, MADRID[0])
        self.assertLess(min_lng, MADRID[1])
        self.assertGreater(max_lng, MADRID[1])

    def test_within_radius_across_antimeridian(self):
        """Test that a search circle crossing 180° still finds nearby books"""
        owner = create_reader("fiji@example.com")
        book = create_book(owner, title="Fiji", location=(-17.0, -179.9))

        hits = geo.within_radius(Book.objects.all(), -17.0, 179.9, 50)

        self.assertEqual([b for _, b in hits], [book])


class ReviewTests(TestCase):
    """Tests for book reviews"""

    def setUp(self):
        self.client = Client()
        self.owner = create_reader("owner@example.com")
        self.reviewer = create_reader("reviewer@example.com", name="Rita")
        self.other = create_reader("other@example.com")
        self.book = create_book(self.owner)
        self.url = reverse("bookmarket_app:book_reviews", args=[self.book.pk])

    def _review(self, rating=5, comment="Great read"):
        return self.client.post(
            self.url, {"rating": rating, "comment": comment}, content_type="application/json"
        )

    def test_create_review(self):
        """Test that a logged-in reader can review a book"""
        self.client.login(username="reviewer@example.com", password="testpass123")

        response = self._review()

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["review"]["reviewer"]["name"], "Rita")
        self.assertEqual(Review.objects.count(), 1)

    def test_review_requires_login(self):
        """Test that anonymous users cannot review"""
        self.assertEqual(self._review().status_code, 401)

    def test_duplicate_review_rejected(self):
        """Test that each reader reviews a book once"""
        self.client.login(username="reviewer@example.com", password="testpass123")
        self._review()

        response = self._review(rating=1)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "You already reviewed this book")
        self.assertEqual(Review.objects.count(), 1)

    def test_review_missing_book(self):
        """Test that reviewing an unknown book returns 404"""
        self.client.login(username="reviewer@example.com", password="testpass123")

        response = self.client.post(
            reverse("bookmarket_app:book_reviews", args=[99999]),
            {"rating": 4},
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 404)

    def test_rating_out_of_range(self):
        """Test that ratings must be between 1 and 5"""
        self.client.login(username="reviewer@example.com", password="testpass123")

        self.assertEqual(self._review(rating=6).status_code, 400)
        self.assertEqual(self._review(rating=0).status_code, 400)
        self.assertEqual(Review.objects.count(), 0)

    def test_list_reviews(self):
        """Test listing all reviews and reviews of one book"""
        other_book = create_book(self.owner, title="Emma")
        Review.objects.create(book=self.book, reviewer=self.reviewer, rating=4)
        Review.objects.create(book=other_book, reviewer=self.reviewer, rating=2)

        self.assertEqual(len(self.client.get(reverse("bookmarket_app:reviews")).json()), 2)
        reviews = self.client.get(self.url).json()
        self.assertEqual(len(reviews), 1)
        self.assertEqual(reviews[0]["rating"], 4)

    def test_delete_review(self):
        """Test that only the author can delete a review"""
        review = Review.objects.create(book=self.book, reviewer=self.reviewer, rating=4)
        url = reverse("bookmarket_app:delete_review", args=[review.pk])

        self.client.login(username="other@example.com", password="testpass123")
        self.assertEqual(self.client.delete(url).status_code, 403)

        self.client.logout()
        self.client.login(username="reviewer@example.com", password="testpass123")
        self.assertEqual(self.client.delete(url).status_code, 200)
        self.assertFalse(Review.objects.exists())
        self.assertEqual(self.client.delete(url).status_code, 404)

    def test_review_stats_on_book_detail(self):
        """Test that the book detail includes average and distribution"""
        Review.objects.create(book=self.book, reviewer=self.reviewer, rating=4)
        Review.objects.create(book=self.book, reviewer=self.other, rating=5)

        stats = self.client.get(
            reverse("bookmarket_app:book_detail", args=[self.book.pk])
        ).json()["reviewStats"]

        self.assertEqual(stats["averageRating"], 4.5)
        self.assertEqual(stats["totalReviews"], 2)
        self.assertEqual(stats["distribution"]["5"], 1)


class ReaderApiTests(TestCase):
    """Tests for registration, login and profile endpoints"""

    def setUp(self):
        self.client = Client()
        self.register_url = reverse("bookmarket_app:register")
        self.login_url = reverse("bookmarket_app:login")
        self.profile_url = reverse("bookmarket_app:profile")

    def _register(self, **overrides):
        payload = {
            "name": "Ana Reader",
            "email": "Ana@Example.com",
            "password": "secret123",
            "location": {"type": "Point", "coordinates": [MADRID[1], MADRID[0]]},
        }
        payload.update(overrides)
        return self.client.post(self.register_url, payload, content_type="application/json")

    def test_register(self):
        """Test registration creates the account, logs in and sends a welcome email"""
        response = self._register()

        self.assertEqual(response.status_code, 201)
        user = User.objects.get(email="ana@example.com")
        self.assertEqual(user.first_name, "Ana Reader")
        self.assertEqual(user.profile.latitude, MADRID[0])
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["ana@example.com"])
        # Session is active right away
        self.assertEqual(self.client.get(self.profile_url).status_code, 200)

    def test_register_duplicate_email(self):
        """Test that an email can only register once"""
        self._register()
        self.client.logout()

        response = self._register(email="ana@example.com")

        self.assertEqual(response.status_code, 400)
        self.assertIn(
            {"field": "email", "message": "Email already exists"}, response.json()["errors"]
        )

    def test_register_short_password(self):
        """Test that passwords need at least 6 characters"""
        response = self._register(password="abc")

        self.assertEqual(response.status_code, 400)
        self.assertFalse(User.objects.exists())

    def test_register_password_too_similar_to_email(self):
        """Test that the configured password validators run on registration"""
        response = self._register(email="bookworm@example.com", password="bookworm")

        self.assertEqual(response.status_code, 400)
        fields = [error["field"] for error in response.json()["errors"]]
        self.assertIn("password", fields)
        self.assertFalse(User.objects.exists())

    def test_update_profile_password_too_similar(self):
        """Test that a new password is checked by the password validators"""
        create_reader("bob@example.com", name="Bob")
        self.client.login(username="bob@example.com", password="testpass123")

        response = self.client.put(
            self.profile_url, {"password": "bob@example.com"}, content_type="application/json"
        )

        self.assertEqual(response.status_code, 400)
        self.assertTrue(User.objects.get(email="bob@example.com").check_password("testpass123"))

    def test_register_survives_email_failure(self):
        """Test that a failed welcome email does not block registration"""
        with patch(
            "bookmarket_app.utils.notifications.EmailMessage.send",
            side_effect=OSError("no route"),
        ):
            response = self._register()

        self.assertEqual(response.status_code, 201)
        self.assertTrue(User.objects.filter(email="ana@example.com").exists())

    def test_login_and_logout(self):
        """Test email login, invalid credentials and logout"""
        create_reader("bob@example.com", name="Bob")

        bad = self.client.post(
            self.login_url,
            {"email": "bob@example.com", "password": "wrong"},
            content_type="application/json",
        )
        self.assertEqual(bad.status_code, 401)
        self.assertEqual(bad.json()["message"], "Invalid credentials")

        unknown = self.client.post(
            self.login_url,
            {"email": "nobody@example.com", "password": "testpass123"},
            content_type="application/json",
        )
        self.assertEqual(unknown.status_code, 401)

        good = self.client.post(
            self.login_url,
            {"email": "BOB@example.com", "password": "testpass123"},
            content_type="application/json",
        )
        self.assertEqual(good.status_code, 200)
        self.assertEqual(good.json()["name"], "Bob")

        response = self.client.post(reverse("bookmarket_app:logout"))
        self.assertEqual(response.status_code, 200)
        self.assertIsNotNone(User.objects.get(email="bob@example.com").profile.last_logout_at)
        self.assertEqual(self.client.get(self.profile_url).status_code, 401)

    def test_update_profile(self):
        """Test updating name, bio, location and password"""
        create_reader("bob@example.com", name="Bob")
        self.client.login(username="bob@example.com", password="testpass123")

        response = self.client.put(
            self.profile_url,
            {
                "name": "Robert",
                "bio": "Sci-fi collector",
                "password": "newsecret",
                "location": {"type": "Point", "coordinates": [2.0, 41.0]},
            },
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["name"], "Robert")
        self.assertEqual(response.json()["location"]["coordinates"], [2.0, 41.0])
        user = User.objects.get(email="bob@example.com")
        self.assertTrue(user.check_password("newsecret"))
        self.assertEqual(user.profile.bio, "Sci-fi collector")
        # Still logged in after changing the password
        self.assertEqual(self.client.get(self.profile_url).status_code, 200)

    def test_update_profile_email_taken(self):
        """Test that switching to another reader's email is rejected"""
        create_reader("bob@example.com")
        create_reader("carol@example.com")
        self.client.login(username="bob@example.com", password="testpass123")

        response = self.client.put(
            self.profile_url, {"email": "carol@example.com"}, content_type="application/json"
        )

        self.assertEqual(response.status_code, 400)

    def test_list_readers_hides_passwords(self):
        """Test that the readers list never exposes password hashes"""
        create_reader("bob@example.com")

        response = self.client.get(reverse("bookmarket_app:readers"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 1)
        self.assertNotIn("password", response.json()[0])


class ErrorHandlingTests(TestCase):
    """Tests for JSON error responses"""

    def test_unknown_api_path_returns_json_404(self):
        """Test that unknown routes answer with a JSON body"""
        response = self.client.get("/api/does-not-exist/")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["kind"], "NotFoundError")

    def test_wrong_method_not_allowed(self):
        """Test that unsupported methods return 405"""
        response = self.client.delete(reverse("bookmarket_app:books"))

        self.assertEqual(response.status_code, 405)

    def test_unexpected_error_returns_json_500(self):
        """Test that unhandled exceptions are logged and answered with JSON"""
        client = Client(raise_request_exception=False)
        with patch(
            "bookmarket_app.views.review_utils.get_all_reviews",
            side_effect=RuntimeError("boom"),
        ):
            with self.assertLogs("bookmarket_app.middleware", level="ERROR"):
                response = client.get(reverse("bookmarket_app:reviews"))

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["message"], "Internal Server Error")


class BookAdminTests(TestCase):
    """Tests for the moderation actions in the Django admin"""

    def setUp(self):
        self.owner = create_reader("owner@example.com")
        self.admin = User.objects.create_user(
            username="admin", email="admin@example.com", password="adminpass", is_staff=True
        )
        self.model_admin = BookAdmin(Book, admin.site)
        self.request = RequestFactory().post("/admin/bookmarket_app/book/")
        self.request.user = self.admin

    def test_reject_action_reports_rejected_count(self):
        """Test that rejecting from a pending-only changelist reports every rejected book"""
        create_book(self.owner, title="Neuromancer", approved=False)
        create_book(self.owner, title="Emma", approved=False)
        pending = Book.objects.filter(approval_status=Book.ApprovalStatus.PENDING)

        with patch.object(self.model_admin, "message_user") as message_user:
            self.model_admin.reject_books(self.request, pending)

        message_user.assert_called_once_with(
            self.request, "Rejected 2 book(s).", messages.SUCCESS
        )
        self.assertEqual(
            Book.objects.filter(approval_status=Book.ApprovalStatus.REJECTED).count(), 2
        )

    def test_approve_action_skips_approved_books(self):
        """Test that approving an already approved book warns instead of failing"""
        create_book(self.owner, title="Neuromancer", approved=False)
        create_book(self.owner, title="Emma")

        with patch.object(self.model_admin, "message_user") as message_user:
            self.model_admin.approve_books(self.request, Book.objects.all())

        message_user.assert_called_with(self.request, "Approved 1 book(s).", messages.SUCCESS)
        self.assertTrue(all(book.is_approved for book in Book.objects.all()))


class ModerateBooksCommandTests(TestCase):
    """Tests for the moderate_books management command"""

    def setUp(self):
        self.owner = create_reader("owner@example.com")
        self.admin = User.objects.create_user(
            username="admin", email="admin@example.com", password="adminpass", is_staff=True
        )
        self.book = create_book(self.owner, title="Neuromancer", approved=False)

    def test_lists_pending_books(self):
        """Test that running without arguments lists pending listings"""
        out = StringIO()
        call_command("moderate_books", stdout=out)

        self.assertIn("Neuromancer", out.getvalue())

    def test_approve_and_reject(self):
        """Test approving and rejecting books from the command line"""
        other = create_book(self.owner, title="Emma", approved=False)
        out = StringIO()

        call_command(
            "moderate_books",
            "--approve", str(self.book.pk),
            "--reject", str(other.pk),
            "--reason", "Blurry photos",
            "--moderator", "admin@example.com",
            stdout=out,
        )

        self.book.refresh_from_db()
        other.refresh_from_db()
        self.assertTrue(self.book.is_approved)
        self.assertEqual(self.book.approved_by, self.admin)
        self.assertEqual(other.approval_status, Book.ApprovalStatus.REJECTED)
        self.assertEqual(other.rejection_reason, "Blurry photos")

    def test_dry_run_changes_nothing(self):
        """Test that --dry-run leaves listings untouched"""
        out = StringIO()
        call_command(
            "moderate_books",
            "--approve", str(self.book.pk),
            "--moderator", "admin@example.com",
            "--dry-run",
            stdout=out,
        )

        self.book.refresh_from_db()
        self.assertFalse(self.book.is_approved)
        self.assertIn("Would approve", out.getvalue())

    def test_seed_books(self):
        """Test that seed_books creates approved demo listings once"""
        call_command("seed_books", stdout=StringIO())
        call_command("seed_books", stdout=StringIO())

        seeded = Book.objects.filter(owner__email="seller@example.com")
        self.assertEqual(seeded.count(), 4)
        self.assertTrue(all(book.is_approved for book in seeded))

    def test_seed_books_reports_taken_titles(self):
        """Test that seed_books skips demo titles another reader already listed"""
        create_book(self.owner, title="Dune")
        out = StringIO()

        call_command("seed_books", stdout=out)

        self.assertIn("Skipped 'Dune': already listed by owner@example.com", out.getvalue())
        self.assertIn("Seeded 3 book(s)", out.getvalue())
        self.assertEqual(Book.objects.get(title="Dune").owner, self.owner)
