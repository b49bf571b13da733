from django.contrib import admin
from django.urls import include, path

from . import views

urlpatterns = [
    path("", views.health_view, name="health"),
    path("admin/", admin.site.urls),
    path("", include("catalog.urls")),
    path("", include("orders.urls")),
]

handler404 = "storefront.views.error_404_view"
handler500 = "storefront.views.error_500_view"
