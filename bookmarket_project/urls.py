from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("", include("bookmarket_app.urls")),
]

handler404 = "bookmarket_app.views.api_not_found"
handler500 = "bookmarket_app.views.api_server_error"
