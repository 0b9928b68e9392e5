# bookmarket_app/views.py
import logging

from django.contrib.auth import authenticate, login, logout, update_session_auth_hash
from django.db.models import F, Q
from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt, ensure_csrf_cookie
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from .decorators import api_login_required, parse_json_body
from .exceptions import AuthenticationError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from .forms import (
    BookForm,
    LoginForm,
    ProfileUpdateForm,
    ReaderRegistrationForm,
    ReviewForm,
    TransactionCreateForm,
    TransactionStatusForm,
    flatten_location,
)
from .models import Book, User
from .serializers import book_to_dict, reader_to_dict, review_to_dict, transaction_to_dict
from .utils import geo, notifications, review_utils, transaction_utils
from .utils.pagination import paginate, parse_page_params

logger = logging.getLogger(__name__)

# Public sort keys -> model fields
SORT_FIELDS = {
    "price": "price",
    "title": "title",
    "author": "author",
    "views": "views",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

ADVANCED_SORTS = {
    "relevance": ["-created_at"],
    "newest": ["-created_at"],
    "oldest": ["created_at"],
    "price-asc": ["price"],
    "price-desc": ["-price"],
    "title": ["title"],
}


def root(request):
    return JsonResponse({"message": "Book Market API running"})


def api_not_found(request, exception=None):
    return JsonResponse(
        {"success": False, "kind": "NotFoundError", "message": f"Not Found - {request.path}"},
        status=404,
    )


def api_server_error(request):
    return JsonResponse(
        {"success": False, "kind": "Error", "message": "Internal Server Error"},
        status=500,
    )


# ==================== QUERY PARAMETER HELPERS ====================


def _parse_float(params, name):
    value = params.get(name)
    if value in (None, ""):
        return None
    try:
        return float(value)
    except ValueError:
        raise ValidationError(f"{name} must be a number")


def _parse_bool(params, name):
    value = params.get(name)
    if value is None:
        return None
    return value == "true"


def _split(value):
    return [item.strip() for item in value.split(",") if item.strip()] if value else None


def _price_filter(qs, params):
    min_price = _parse_float(params, "minPrice")
    max_price = _parse_float(params, "maxPrice")
    if min_price is not None:
        qs = qs.filter(price__gte=min_price)
    if max_price is not None:
        qs = qs.filter(price__lte=max_price)
    return qs


def _search_filter(qs, term):
    if term:
        qs = qs.filter(
            Q(title__icontains=term) | Q(author__icontains=term) | Q(description__icontains=term)
        )
    return qs


def _parse_sort(sort):
    """
    "-price,title" -> ["-price", "title"]. Unknown fields are rejected.
    """
    ordering = []
    for field in _split(sort) or []:
        descending = field.startswith("-")
        name = field[1:] if descending else field
        if name not in SORT_FIELDS:
            raise ValidationError(
                f"Cannot sort by '{name}'",
                errors=[{"field": "sort", "message": f"Allowed: {', '.join(SORT_FIELDS)}"}],
            )
        ordering.append(("-" if descending else "") + SORT_FIELDS[name])
    return ordering or ["-created_at"]


def _books():
    return Book.objects.select_related("owner")


def _owned_book(pk, user):
    try:
        book = _books().get(pk=pk)
    except Book.DoesNotExist:
        raise NotFoundError("Book not found")
    if book.owner_id != user.pk:
        raise ForbiddenError("Not authorized")
    return book


# ==================== READERS ====================


@csrf_exempt
@ensure_csrf_cookie
@require_POST
def register_reader(request):
    payload = flatten_location(parse_json_body(request))
    form = ReaderRegistrationForm(payload)
    if not form.is_valid():
        raise ValidationError.from_form(form, "Registration failed")

    cd = form.cleaned_data
    user = User.objects.create_user(
        username=cd["email"],
        email=cd["email"],
        password=cd["password"],
        first_name=cd["name"],
    )
    # The ReaderProfile is created by the post_save signal
    profile = user.profile
    if cd.get("latitude") is not None and cd.get("longitude") is not None:
        profile.latitude = cd["latitude"]
        profile.longitude = cd["longitude"]
        profile.save()

    login(request, user, backend="django.contrib.auth.backends.ModelBackend")
    logger.info(f"Registered reader {user.pk} ({user.email})")

    notifications.send(
        user.email, "welcomeEmail", {"userName": user.first_name, "userEmail": user.email}
    )

    data = reader_to_dict(user)
    data["message"] = "Registration successful!"
    return JsonResponse(data, status=201)


@csrf_exempt
@ensure_csrf_cookie
@require_POST
def login_reader(request):
    form = LoginForm(parse_json_body(request))
    if not form.is_valid():
        raise ValidationError.from_form(form, "Please provide both email and password.")

    email = form.cleaned_data["email"]
    user = User.objects.filter(email=email).first()
    authenticated_user = None
    if user is not None:
        authenticated_user = authenticate(
            request, username=user.username, password=form.cleaned_data["password"]
        )

    if authenticated_user is None:
        # Don't reveal whether the email exists
        logger.warning(f"Failed login attempt for {email}")
        raise AuthenticationError("Invalid credentials")

    login(request, authenticated_user)
    return JsonResponse(reader_to_dict(authenticated_user))


@require_POST
@api_login_required
def logout_reader(request):
    request.user.profile.mark_logged_out()
    logout(request)
    return JsonResponse({"success": True, "message": "Logged out successfully"})


@require_GET
def get_all_readers(request):
    readers = User.objects.select_related("profile").filter(is_active=True).order_by("id")
    return JsonResponse([reader_to_dict(u) for u in readers], safe=False)


@method_decorator(api_login_required, name="dispatch")
class ProfileView(View):
    http_method_names = ["get", "put"]

    def get(self, request):
        return JsonResponse(reader_to_dict(request.user))

    def put(self, request):
        user = request.user
        payload = flatten_location(parse_json_body(request))
        form = ProfileUpdateForm(payload, user=user)
        if not form.is_valid():
            raise ValidationError.from_form(form, "Profile update failed")

        cd = form.cleaned_data
        profile = user.profile
        if cd.get("name"):
            user.first_name = cd["name"]
        if cd.get("email"):
            user.email = cd["email"]
            user.username = cd["email"]
        if cd.get("password"):
            user.set_password(cd["password"])
        user.save()
        if cd.get("password"):
            # Keep the current session valid after a password change
            update_session_auth_hash(request, user)

        for field in ("bio", "avatar"):
            if field in payload:
                setattr(profile, field, cd[field])
        if cd.get("latitude") is not None and cd.get("longitude") is not None:
            profile.latitude = cd["latitude"]
            profile.longitude = cd["longitude"]
        profile.save()

        return JsonResponse(reader_to_dict(user))


# ==================== BOOKS: SEARCH & FILTER ====================


class BookCollectionView(View):
    http_method_names = ["get", "post"]

    def get(self, request):
        """
        All books with search, filters, sorting, pagination and an optional
        radius (km) around lat/lng.
        """
        params = request.GET
        page, limit = parse_page_params(params)

        qs = _search_filter(_books(), params.get("search"))
        if params.get("category"):
            qs = qs.filter(category=params["category"])
        if params.get("condition"):
            qs = qs.filter(condition=params["condition"])
        qs = _price_filter(qs, params)

        available = _parse_bool(params, "available")
        if available is not None:
            qs = qs.filter(available=available)

        is_approved = _parse_bool(params, "isApproved")
        qs = qs.filter(is_approved=True if is_approved is None else is_approved)

        is_featured = _parse_bool(params, "isFeatured")
        if is_featured is not None:
            qs = qs.filter(is_featured=is_featured)

        if params.get("owner"):
            if not params["owner"].isdigit():
                raise ValidationError("owner must be a reader id")
            qs = qs.filter(owner_id=int(params["owner"]))

        qs = qs.order_by(*_parse_sort(params.get("sort")))

        lat = _parse_float(params, "lat")
        lng = _parse_float(params, "lng")
        radius = _parse_float(params, "radius")
        has_location = lat is not None and lng is not None and radius is not None
        if has_location:
            # Keep the requested ordering, drop books outside the circle
            ids = {book.pk for _, book in geo.within_radius(qs, lat, lng, radius)}
            qs = qs.filter(pk__in=ids)

        response = paginate(qs, page, limit, book_to_dict)
        min_price, max_price = params.get("minPrice"), params.get("maxPrice")
        response["filters"] = {
            "search": params.get("search"),
            "category": params.get("category"),
            "condition": params.get("condition"),
            "priceRange": {"minPrice": min_price, "maxPrice": max_price} if min_price or max_price else None,
            "location": {"lat": lat, "lng": lng, "radius": radius} if has_location else None,
        }
        return JsonResponse(response)

    @method_decorator(api_login_required)
    def post(self, request):
        form = BookForm(flatten_location(parse_json_body(request)))
        if not form.is_valid():
            raise ValidationError.from_form(form, "Invalid book")

        book = form.save(commit=False)
        book.owner = request.user
        book.save()
        logger.info(f"Book {book.pk} '{book.title}' listed by user {request.user.pk}")
        return JsonResponse(book_to_dict(book), status=201)


@require_GET
def books_near_location(request):
    params = request.GET
    lat = _parse_float(params, "lat")
    lng = _parse_float(params, "lng")
    if lat is None or lng is None:
        raise ValidationError("Latitude and longitude are required")

    max_distance_m = _parse_float(params, "maxDistance")
    if max_distance_m is None:
        max_distance_m = 10000

    qs = _books().filter(is_approved=True, available=True)
    hits = geo.within_radius(qs, lat, lng, max_distance_m / 1000)[:20]
    return JsonResponse(
        {
            "success": True,
            "count": len(hits),
            "data": [book_to_dict(book, distance_km=distance) for distance, book in hits],
        }
    )


@require_GET
def featured_books(request):
    page, limit = parse_page_params(request.GET)
    qs = _books().filter(is_featured=True, is_approved=True, available=True).order_by("-created_at")
    return JsonResponse(paginate(qs, page, limit, book_to_dict))


@require_GET
def available_books(request):
    page, limit = parse_page_params(request.GET)
    qs = _books().filter(is_approved=True, available=True).order_by("-created_at")
    return JsonResponse(paginate(qs, page, limit, book_to_dict))


@require_GET
def advanced_search(request):
    params = request.GET
    page, limit = parse_page_params(params)
    sort_by = params.get("sortBy") or "relevance"
    if sort_by not in ADVANCED_SORTS:
        raise ValidationError(f"Unknown sortBy '{sort_by}'")

    qs = _search_filter(_books().filter(is_approved=True), params.get("q"))

    categories = _split(params.get("categories"))
    if categories:
        qs = qs.filter(category__in=categories)
    conditions = _split(params.get("conditions"))
    if conditions:
        qs = qs.filter(condition__in=conditions)
    qs = _price_filter(qs, params).order_by(*ADVANCED_SORTS[sort_by])

    response = paginate(qs, page, limit, book_to_dict)
    response["searchQuery"] = params.get("q")
    response["appliedFilters"] = {
        "categories": categories,
        "conditions": conditions,
        "priceRange": {"minPrice": params.get("minPrice"), "maxPrice": params.get("maxPrice")},
        "sortBy": sort_by,
    }
    return JsonResponse(response)


@require_GET
def books_by_category(request, category):
    params = request.GET
    page, limit = parse_page_params(params)

    qs = _books().filter(category__icontains=category, is_approved=True)
    qs = _price_filter(qs, params).order_by(*_parse_sort(params.get("sort")))

    if not qs.exists():
        raise NotFoundError(f"No books found in category: {category}")
    return JsonResponse(paginate(qs, page, limit, book_to_dict))


# ==================== BOOKS: CRUD ====================


class BookDetailView(View):
    http_method_names = ["get", "put", "delete"]

    def get(self, request, pk):
        if not Book.objects.filter(pk=pk).update(views=F("views") + 1):
            raise NotFoundError("Book not found")
        book = _books().get(pk=pk)
        data = book_to_dict(book)
        data["reviewStats"] = review_utils.get_book_review_stats(book)
        return JsonResponse(data)

    @method_decorator(api_login_required)
    def put(self, request, pk):
        book = _owned_book(pk, request.user)
        form = BookForm.for_update(book, flatten_location(parse_json_body(request)))
        if not form.is_valid():
            raise ValidationError.from_form(form, "Invalid book")

        book = form.save()
        logger.info(f"Book {book.pk} updated by user {request.user.pk}")
        return JsonResponse(book_to_dict(book))

    @method_decorator(api_login_required)
    def delete(self, request, pk):
        book = _owned_book(pk, request.user)
        if book.transactions.exists():
            raise ConflictError("Book has transactions and cannot be deleted")

        book.delete()
        logger.info(f"Book {pk} deleted by user {request.user.pk}")
        return JsonResponse({"message": "Book deleted successfully"})


# ==================== REVIEWS ====================


@require_GET
def get_all_reviews(request):
    reviews = review_utils.get_all_reviews()
    return JsonResponse([review_to_dict(r) for r in reviews], safe=False)


class BookReviewsView(View):
    http_method_names = ["get", "post"]

    def get(self, request, book_id):
        reviews = review_utils.get_reviews_for_book(book_id)
        return JsonResponse([review_to_dict(r) for r in reviews], safe=False)

    @method_decorator(api_login_required)
    def post(self, request, book_id):
        form = ReviewForm(parse_json_body(request))
        if not form.is_valid():
            raise ValidationError.from_form(form, "Invalid review")

        review = review_utils.submit_review(
            book_id,
            request.user,
            form.cleaned_data["rating"],
            form.cleaned_data.get("comment") or "",
        )
        return JsonResponse(
            {"message": "Review added successfully", "review": review_to_dict(review)},
            status=201,
        )


@require_http_methods(["DELETE"])
@api_login_required
def delete_review(request, pk):
    review_utils.delete_review(pk, request.user)
    return JsonResponse({"message": "Review deleted successfully"})


# ==================== TRANSACTIONS ====================


@method_decorator(api_login_required, name="dispatch")
class TransactionCollectionView(View):
    http_method_names = ["get", "post"]

    def get(self, request):
        transactions = transaction_utils.get_for_user(request.user)
        return JsonResponse([transaction_to_dict(t) for t in transactions], safe=False)

    def post(self, request):
        form = TransactionCreateForm(parse_json_body(request))
        if not form.is_valid():
            raise ValidationError.from_form(form, "bookId is required")

        transaction = transaction_utils.create_transaction(form.cleaned_data["bookId"], request.user)
        return JsonResponse(
            {
                "message": "Transaction created successfully. Seller has been notified.",
                "transaction": transaction_to_dict(transaction),
            },
            status=201,
        )


@require_GET
@api_login_required
def get_transaction(request, pk):
    transaction = transaction_utils.get_by_id(pk, request.user)
    return JsonResponse(transaction_to_dict(transaction))


@require_http_methods(["PUT", "PATCH"])
@api_login_required
def update_transaction_status(request, pk):
    form = TransactionStatusForm(parse_json_body(request))
    if not form.is_valid():
        raise ValidationError.from_form(form, "Invalid status")

    transaction = transaction_utils.update_status(pk, request.user, form.cleaned_data["status"])
    return JsonResponse(
        {
            "message": "Transaction status updated successfully",
            "transaction": transaction_to_dict(transaction),
        }
    )
