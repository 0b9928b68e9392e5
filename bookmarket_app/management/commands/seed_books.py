from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from bookmarket_app.models import Book

DEMO_BOOKS = [
    ("Dune", "Frank Herbert", Book.Category.FICTION, Book.Condition.GOOD, "12.50"),
    ("A Brief History of Time", "Stephen Hawking", Book.Category.NON_FICTION, Book.Condition.USED, "8.00"),
    ("Calculus: Early Transcendentals", "James Stewart", Book.Category.EDUCATION, Book.Condition.GOOD, "45.00"),
    ("Watchmen", "Alan Moore", Book.Category.COMICS, Book.Condition.NEW, "20.00"),
]


class Command(BaseCommand):
    help = "Create a demo seller with a few approved books."

    def handle(self, *args, **kwargs):
        U = get_user_model()
        seller, created = U.objects.get_or_create(
            username="seller@example.com",
            defaults={"email": "seller@example.com", "first_name": "Demo Seller"},
        )
        if created:
            seller.set_password("seller123")
            seller.save()

        added = 0
        for title, author, category, condition, price in DEMO_BOOKS:
            book, was_created = Book.objects.get_or_create(
                title=title,
                defaults={
                    "author": author,
                    "category": category,
                    "condition": condition,
                    "price": Decimal(price),
                    "latitude": 40.4168,
                    "longitude": -3.7038,
                    "owner": seller,
                    "approval_status": Book.ApprovalStatus.APPROVED,
                },
            )
            # Titles are unique, so a book listed by someone else blocks the demo copy
            if not was_created and book.owner_id != seller.pk:
                self.stdout.write(
                    self.style.WARNING(f"Skipped '{title}': already listed by {book.owner.email}")
                )
            added += was_created
        self.stdout.write(self.style.SUCCESS(f"Seeded {added} book(s)"))
