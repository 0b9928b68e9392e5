from django import forms
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.forms.models import model_to_dict

from .models import Book, Review, Transaction, User

BOOK_FIELDS = [
    "title",
    "author",
    "category",
    "condition",
    "price",
    "latitude",
    "longitude",
    "image",
    "description",
]


def flatten_location(payload):
    """
    Turn a GeoJSON ``location`` ({"type": "Point", "coordinates": [lng, lat]})
    into the ``latitude``/``longitude`` keys the forms expect.
    """
    data = dict(payload)
    location = data.pop("location", None)
    if location is None:
        return data

    coordinates = location.get("coordinates") if isinstance(location, dict) else None
    if not isinstance(coordinates, (list, tuple)) or len(coordinates) != 2:
        # Leave the point unset so the form reports which field is missing
        data.setdefault("latitude", "")
        data.setdefault("longitude", "")
        return data

    data["longitude"], data["latitude"] = coordinates
    return data


class BookForm(forms.ModelForm):
    category = forms.ChoiceField(choices=Book.Category.choices, required=False)
    condition = forms.ChoiceField(choices=Book.Condition.choices, required=False)
    latitude = forms.FloatField(min_value=-90, max_value=90)
    longitude = forms.FloatField(min_value=-180, max_value=180)

    class Meta:
        model = Book
        fields = BOOK_FIELDS

    @classmethod
    def for_update(cls, book, payload):
        # Partial update: unspecified fields keep their current value
        data = model_to_dict(book, fields=BOOK_FIELDS)
        data.update(payload)
        return cls(data, instance=book)

    def clean_title(self):
        return self.cleaned_data["title"].strip()

    def clean_category(self):
        return self.cleaned_data.get("category") or Book.Category.OTHER

    def clean_condition(self):
        return self.cleaned_data.get("condition") or Book.Condition.USED


class ReaderRegistrationForm(forms.Form):
    name = forms.CharField(max_length=150)
    email = forms.EmailField(max_length=150)
    password = forms.CharField(min_length=6, widget=forms.PasswordInput)
    latitude = forms.FloatField(required=False, min_value=-90, max_value=90)
    longitude = forms.FloatField(required=False, min_value=-180, max_value=180)

    def clean_email(self):
        email = self.cleaned_data["email"].strip().lower()
        if User.objects.filter(email=email).exists():
            raise ValidationError("Email already exists")
        return email

    def clean_name(self):
        return self.cleaned_data["name"].strip()

    def clean(self):
        cleaned_data = super().clean()
        password = cleaned_data.get("password")
        if password:
            # Unsaved user so the similarity check sees the new account's details
            candidate = User(
                username=cleaned_data.get("email", ""),
                email=cleaned_data.get("email", ""),
                first_name=cleaned_data.get("name", ""),
            )
            try:
                validate_password(password, candidate)
            except ValidationError as e:
                self.add_error("password", e)
        return cleaned_data


class LoginForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField(widget=forms.PasswordInput)

    def clean_email(self):
        return self.cleaned_data["email"].strip().lower()


class ProfileUpdateForm(forms.Form):
    name = forms.CharField(max_length=150, required=False)
    email = forms.EmailField(max_length=150, required=False)
    password = forms.CharField(min_length=6, required=False, widget=forms.PasswordInput)
    bio = forms.CharField(max_length=500, required=False)
    avatar = forms.CharField(max_length=500, required=False)
    latitude = forms.FloatField(required=False, min_value=-90, max_value=90)
    longitude = forms.FloatField(required=False, min_value=-180, max_value=180)

    def __init__(self, *args, user=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = user

    def clean_email(self):
        email = (self.cleaned_data.get("email") or "").strip().lower()
        if email and User.objects.filter(email=email).exclude(pk=self.user.pk).exists():
            raise ValidationError("Email already exists")
        return email

    def clean_password(self):
        password = self.cleaned_data.get("password")
        if password:
            validate_password(password, self.user)
        return password


class ReviewForm(forms.ModelForm):
    class Meta:
        model = Review
        fields = ["rating", "comment"]


class TransactionCreateForm(forms.Form):
    bookId = forms.IntegerField()


class TransactionStatusForm(forms.Form):
    status = forms.ChoiceField(choices=Transaction.Status.choices)
