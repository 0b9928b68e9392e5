import json
from functools import wraps

from .exceptions import AuthenticationError, ValidationError


def api_login_required(view_func):
    """
    Like ``login_required`` but answers 401 JSON instead of redirecting.
    Wrap View methods with ``method_decorator``.
    """

    @wraps(view_func)
    def _wrapped(request, *args, **kwargs):
        if not request.user.is_authenticated:
            raise AuthenticationError("Not authorized, please log in")
        return view_func(request, *args, **kwargs)

    return _wrapped


def parse_json_body(request):
    """Decode a JSON object request body; an empty body is an empty dict."""
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Malformed JSON body")
    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object")
    return data
