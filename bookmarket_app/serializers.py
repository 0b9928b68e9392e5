"""
Plain dict shapes for the JSON API.
"""


def _iso(value):
    return value.isoformat() if value else None


def point(latitude, longitude):
    return {"type": "Point", "coordinates": [longitude, latitude]}


def reader_summary(user):
    if user is None:
        return None
    return {"_id": user.pk, "name": user.first_name or user.username, "email": user.email}


def reader_to_dict(user):
    profile = user.profile
    data = reader_summary(user)
    data.update(
        {
            "location": point(profile.latitude, profile.longitude),
            "bio": profile.bio,
            "avatar": profile.avatar,
            "createdAt": _iso(profile.created_at),
        }
    )
    return data


def book_to_dict(book, distance_km=None):
    data = {
        "_id": book.pk,
        "title": book.title,
        "author": book.author,
        "category": book.category,
        "condition": book.condition,
        "price": str(book.price),
        "location": point(book.latitude, book.longitude),
        "owner": reader_summary(book.owner),
        "image": book.image,
        "description": book.description,
        "available": book.available,
        "isApproved": book.is_approved,
        "approvalStatus": book.approval_status,
        "approvedBy": book.approved_by_id,
        "approvedAt": _iso(book.approved_at),
        "rejectionReason": book.rejection_reason,
        "isFeatured": book.is_featured,
        "views": book.views,
        "createdAt": _iso(book.created_at),
        "updatedAt": _iso(book.updated_at),
    }
    if distance_km is not None:
        data["distanceKm"] = round(distance_km, 3)
    return data


def transaction_to_dict(transaction):
    book = transaction.book
    return {
        "_id": transaction.pk,
        "book": {
            "_id": book.pk,
            "title": book.title,
            "author": book.author,
            "price": str(book.price),
        },
        "buyer": reader_summary(transaction.buyer),
        "seller": reader_summary(transaction.seller),
        "price": str(transaction.price),
        "status": transaction.status,
        "createdAt": _iso(transaction.created_at),
        "updatedAt": _iso(transaction.updated_at),
    }


def review_to_dict(review):
    return {
        "_id": review.pk,
        "book": {"_id": review.book_id, "title": review.book.title},
        "reviewer": reader_summary(review.reviewer),
        "rating": review.rating,
        "comment": review.comment,
        "createdAt": _iso(review.created_at),
    }
