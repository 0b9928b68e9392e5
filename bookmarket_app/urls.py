from django.urls import path

from . import views

app_name = "bookmarket_app"

urlpatterns = [
    path("", views.root, name="root"),
    # Readers
    path("api/readers/", views.get_all_readers, name="readers"),
    path("api/readers/register/", views.register_reader, name="register"),
    path("api/readers/login/", views.login_reader, name="login"),
    path("api/readers/logout/", views.logout_reader, name="logout"),
    path("api/readers/profile/", views.ProfileView.as_view(), name="profile"),
    # Books: search & filter (before the detail route)
    path("api/books/search/advanced/", views.advanced_search, name="advanced_search"),
    path("api/books/search/nearby/", views.books_near_location, name="books_nearby"),
    path("api/books/featured/", views.featured_books, name="featured_books"),
    path("api/books/available/", views.available_books, name="available_books"),
    path("api/books/category/<str:category>/", views.books_by_category, name="books_by_category"),
    # Kept for older clients
    path("api/books/genre/<str:category>/", views.books_by_category, name="books_by_genre"),
    # Books: CRUD
    path("api/books/", views.BookCollectionView.as_view(), name="books"),
    path("api/books/<int:pk>/", views.BookDetailView.as_view(), name="book_detail"),
    # Reviews
    path("api/reviews/", views.get_all_reviews, name="reviews"),
    path("api/reviews/<int:book_id>/", views.BookReviewsView.as_view(), name="book_reviews"),
    path("api/reviews/review/<int:pk>/", views.delete_review, name="delete_review"),
    # Transactions
    path("api/transactions/", views.TransactionCollectionView.as_view(), name="transactions"),
    path("api/transactions/<int:pk>/", views.get_transaction, name="transaction_detail"),
    path(
        "api/transactions/<int:pk>/status/",
        views.update_transaction_status,
        name="transaction_status",
    ),
]
