"""
Review pending book listings from the command line.
Usage: python manage.py moderate_books
       python manage.py moderate_books --approve 3 4 --moderator admin@example.com
       python manage.py moderate_books --reject 5 --reason "Blurry photos" --moderator admin@example.com
"""
from django.contrib.auth.models import User
from django.core.management.base import BaseCommand, CommandError

from bookmarket_app.exceptions import ConflictError
from bookmarket_app.models import Book
from bookmarket_app.utils import listing_utils


PAST_TENSE = {"approve": "Approved", "reject": "Rejected"}


class Command(BaseCommand):
    help = "List books awaiting approval and approve or reject them."

    def add_arguments(self, parser):
        parser.add_argument("--approve", nargs="+", type=int, default=[], help="Book ids to approve.")
        parser.add_argument("--reject", nargs="+", type=int, default=[], help="Book ids to reject.")
        parser.add_argument("--reason", default="", help="Rejection reason shown to the owner.")
        parser.add_argument(
            "--moderator",
            help="Email of the staff account recorded as approver (required with --approve/--reject).",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would change without saving anything.",
        )
        parser.add_argument(
            "--limit",
            type=int,
            default=50,
            help="Max pending books to list (default: 50).",
        )

    def handle(self, *args, **options):
        if not options["approve"] and not options["reject"]:
            self._list_pending(options["limit"])
            return

        moderator = self._get_moderator(options["moderator"])

        for book_id, action in [(i, "approve") for i in options["approve"]] + [
            (i, "reject") for i in options["reject"]
        ]:
            book = Book.objects.filter(pk=book_id).first()
            if book is None:
                self.stdout.write(self.style.ERROR(f"Book {book_id} not found"))
                continue

            if options["dry_run"]:
                self.stdout.write(f"Would {action} '{book.title}' (id={book.pk})")
                continue

            try:
                if action == "approve":
                    listing_utils.approve(book, moderator)
                else:
                    listing_utils.reject(book, moderator, reason=options["reason"])
            except ConflictError as e:
                self.stdout.write(self.style.WARNING(f"'{book.title}': {e.message}"))
                continue
            self.stdout.write(self.style.SUCCESS(f"{PAST_TENSE[action]} '{book.title}' (id={book.pk})"))

        if options["dry_run"]:
            self.stdout.write(self.style.WARNING("Dry run enabled; nothing saved."))

    def _get_moderator(self, email):
        if not email:
            raise CommandError("--moderator is required when approving or rejecting books")
        moderator = User.objects.filter(email=email.lower(), is_staff=True).first()
        if moderator is None:
            raise CommandError(f"No staff account with email {email}")
        return moderator

    def _list_pending(self, limit):
        qs = Book.objects.select_related("owner").filter(
            approval_status=Book.ApprovalStatus.PENDING
        ).order_by("created_at")[:limit]

        if not qs:
            self.stdout.write(self.style.SUCCESS("No books awaiting approval."))
            return

        self.stdout.write(f"Found {len(qs)} book(s) awaiting approval.")
        for book in qs:
            self.stdout.write(
                f"- [{book.pk}] {book.title} by {book.author} (owner: {book.owner.email}, price: {book.price})"
            )
