from decimal import Decimal

from django.contrib.auth.models import User
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone


class ReaderProfile(models.Model):
    # Link to Django's built-in User (for authentication)
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="profile")

    # Point stored as plain coordinates (GeoJSON order is [lng, lat])
    latitude = models.FloatField(default=0.0)
    longitude = models.FloatField(default=0.0)
    bio = models.TextField(max_length=500, blank=True, default="")
    avatar = models.CharField(max_length=500, blank=True, default="")

    last_logout_at = models.DateTimeField(blank=True, null=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user.email} Profile"

    @property
    def display_name(self):
        return self.user.first_name or self.user.username

    def mark_logged_out(self):
        self.last_logout_at = timezone.now()
        self.save(update_fields=["last_logout_at", "updated_at"])


class Book(models.Model):
    class Category(models.TextChoices):
        FICTION = "Fiction"
        NON_FICTION = "Non-fiction"
        EDUCATION = "Education"
        COMICS = "Comics"
        OTHER = "Other"

    class Condition(models.TextChoices):
        NEW = "New"
        GOOD = "Good"
        USED = "Used"

    class ApprovalStatus(models.TextChoices):
        PENDING = "pending"
        APPROVED = "approved"
        REJECTED = "rejected"

    title = models.CharField(
        max_length=200,
        unique=True,
        error_messages={"unique": "title already taken"},
    )
    author = models.CharField(max_length=200)
    category = models.CharField(
        max_length=20, choices=Category.choices, default=Category.OTHER
    )
    condition = models.CharField(
        max_length=10, choices=Condition.choices, default=Condition.USED
    )
    price = models.DecimalField(
        decimal_places=2,
        max_digits=10,
        validators=[MinValueValidator(Decimal("0.00"), message="Price cannot be negative")],
    )
    latitude = models.FloatField()
    longitude = models.FloatField()
    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name="books")
    image = models.CharField(max_length=500, blank=True, default="")
    description = models.TextField(blank=True, default="")
    views = models.PositiveIntegerField(default=0)

    # Lifecycle flags
    available = models.BooleanField(default=True)
    is_approved = models.BooleanField(default=False)
    approval_status = models.CharField(
        max_length=10, choices=ApprovalStatus.choices, default=ApprovalStatus.PENDING
    )
    approved_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_books",
    )
    approved_at = models.DateTimeField(blank=True, null=True)
    rejection_reason = models.TextField(blank=True, default="")
    is_featured = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["is_approved"], name="book_is_approved_idx"),
            models.Index(fields=["approval_status"], name="book_approval_status_idx"),
            models.Index(fields=["is_featured"], name="book_is_featured_idx"),
            models.Index(fields=["latitude", "longitude"], name="book_location_idx"),
        ]

    def __str__(self):
        return self.title

    @property
    def is_purchasable(self):
        return self.is_approved and self.available

    def save(self, *args, **kwargs):
        # approval_status is authoritative; is_approved mirrors it
        self.is_approved = self.approval_status == self.ApprovalStatus.APPROVED
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "approval_status" in update_fields:
            kwargs["update_fields"] = set(update_fields) | {"is_approved"}
        super().save(*args, **kwargs)


class Transaction(models.Model):
    class Status(models.TextChoices):
        PENDING = "Pending"
        COMPLETED = "Completed"
        CANCELLED = "Cancelled"

    TERMINAL_STATUSES = (Status.COMPLETED, Status.CANCELLED)

    book = models.ForeignKey(Book, on_delete=models.PROTECT, related_name="transactions")
    buyer = models.ForeignKey(User, on_delete=models.CASCADE, related_name="purchases")
    seller = models.ForeignKey(User, on_delete=models.CASCADE, related_name="sales")
    # Snapshot of the book price when the purchase was made
    price = models.DecimalField(decimal_places=2, max_digits=10)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["buyer", "-created_at"], name="txn_buyer_created_idx"),
            models.Index(fields=["seller", "-created_at"], name="txn_seller_created_idx"),
            models.Index(fields=["book", "status"], name="txn_book_status_idx"),
        ]

    def __str__(self):
        return f"{self.book} bought by {self.buyer} ({self.status})"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def involves(self, user):
        return user.pk in (self.buyer_id, self.seller_id)


class Review(models.Model):
    book = models.ForeignKey(Book, on_delete=models.CASCADE, related_name="reviews")
    reviewer = models.ForeignKey(User, on_delete=models.CASCADE, related_name="reviews_given")
    rating = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    comment = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        # One review per reader per book
        unique_together = ["book", "reviewer"]
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.reviewer.email} - {self.rating}★ for {self.book.title}"
