from django.contrib import admin, messages

from .exceptions import ConflictError
from .models import Book, ReaderProfile, Review, Transaction
from .utils import listing_utils


@admin.register(Book)
class BookAdmin(admin.ModelAdmin):
    list_display = [
        "title",
        "author",
        "owner",
        "price",
        "approval_status",
        "available",
        "is_featured",
        "views",
        "created_at",
    ]
    search_fields = ["title", "author", "owner__email"]
    list_filter = ["approval_status", "available", "is_featured", "category", "condition"]
    readonly_fields = ["is_approved", "approved_by", "approved_at", "views", "created_at", "updated_at"]
    actions = ["approve_books", "reject_books", "feature_books"]

    @admin.action(description="Approve selected books")
    def approve_books(self, request, queryset):
        approved = 0
        for book in queryset:
            try:
                listing_utils.approve(book, request.user)
                approved += 1
            except ConflictError as e:
                self.message_user(request, f"{book}: {e.message}", messages.WARNING)
        self.message_user(request, f"Approved {approved} book(s).", messages.SUCCESS)

    @admin.action(description="Reject selected books")
    def reject_books(self, request, queryset):
        rejected = 0
        for book in queryset:
            listing_utils.reject(book, request.user, reason="Rejected by an administrator")
            rejected += 1
        self.message_user(request, f"Rejected {rejected} book(s).", messages.SUCCESS)

    @admin.action(description="Feature selected books")
    def feature_books(self, request, queryset):
        updated = queryset.update(is_featured=True)
        self.message_user(request, f"Featured {updated} book(s).", messages.SUCCESS)


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ["id", "book", "buyer", "seller", "price", "status", "created_at"]
    list_filter = ["status", "created_at"]
    search_fields = ["book__title", "buyer__email", "seller__email"]
    # Status changes go through the seller-facing API so the listing stays in sync
    readonly_fields = ["book", "buyer", "seller", "price", "status", "created_at", "updated_at"]


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ["id", "book", "reviewer", "rating", "comment_preview", "created_at"]
    list_filter = ["rating", "created_at"]
    search_fields = ["book__title", "reviewer__email", "comment"]

    def comment_preview(self, obj):
        return obj.comment[:50] + "..." if len(obj.comment) > 50 else obj.comment
    comment_preview.short_description = "Comment"


admin.site.register(ReaderProfile)

admin.site.site_header = "Book Market Admin"
admin.site.site_title = "Book Market Admin Portal"
admin.site.index_title = "Welcome to Book Market Admin Portal"
