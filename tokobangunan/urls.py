"""
URL configuration for the tokobangunan project.
"""

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path(
        "api/",
        include(
            [
                # Authentication, profile, address book, customers and team
                path("auth/", include("users.urls")),
                # Catalog and shopping
                path("products/", include("products.urls")),
                path("cart/", include("cart.urls")),
                path("vouchers/", include("vouchers.urls")),
                path("shipping/", include("shipping.urls")),
                path("orders/", include("orders.urls")),
                path("payments/", include("payments.urls")),
                path("returns/", include("returns.urls")),
                # Back office
                path("inventory/", include("inventory.urls")),
                path("notifications/", include("notifications.urls")),
                path("reports/", include("reports.urls")),
            ]
        ),
    ),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
