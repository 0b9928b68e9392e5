# utils/geo.py
import math

# Same spherical earth radius the radius filter has always used
EARTH_RADIUS_KM = 6378.1


def haversine_km(lat1, lng1, lat2, lng2):
    """Great-circle distance between two points in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def bounding_box(lat, lng, radius_km):
    """
    (min_lat, max_lat, min_lng, max_lng) enclosing a circle of ``radius_km``.
    Used as a cheap database prefilter before the exact haversine check.
    """
    dlat = math.degrees(radius_km / EARTH_RADIUS_KM)
    cos_lat = math.cos(math.radians(lat))
    if cos_lat < 1e-12 or dlat >= 90:
        dlng = 180.0
    else:
        dlng = min(180.0, math.degrees(radius_km / (EARTH_RADIUS_KM * cos_lat)))
    return (max(-90.0, lat - dlat), min(90.0, lat + dlat), lng - dlng, lng + dlng)


def within_radius(queryset, lat, lng, radius_km):
    """
    Books from ``queryset`` whose location lies within ``radius_km`` of the
    point, as a list of (distance_km, book) ordered nearest first.
    """
    min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, radius_km)
    candidates = queryset.filter(latitude__gte=min_lat, latitude__lte=max_lat)
    if max_lng - min_lng < 360:
        candidates = _filter_longitude(candidates, min_lng, max_lng)

    hits = []
    for book in candidates:
        distance = haversine_km(lat, lng, book.latitude, book.longitude)
        if distance <= radius_km:
            hits.append((distance, book))
    hits.sort(key=lambda hit: hit[0])
    return hits


def _filter_longitude(queryset, min_lng, max_lng):
    # The box may wrap around the antimeridian
    if min_lng < -180:
        return queryset.filter(longitude__gte=min_lng + 360) | queryset.filter(longitude__lte=max_lng)
    if max_lng > 180:
        return queryset.filter(longitude__gte=min_lng) | queryset.filter(longitude__lte=max_lng - 360)
    return queryset.filter(longitude__gte=min_lng, longitude__lte=max_lng)
