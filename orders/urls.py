from django.urls import path
from . import views

urlpatterns = [
    # ==================== BACK-OFFICE ====================
    path("admin/", views.admin_orders, name="admin-orders"),
    path("admin/stats/", views.admin_order_stats, name="admin-order-stats"),
    path("admin/<str:order_number>/", views.admin_order_detail, name="admin-order-detail"),
    path(
        "admin/<str:order_number>/<str:action>/",
        views.admin_order_action,
        name="admin-order-action",
    ),
    # ==================== CUSTOMER ====================
    path("", views.orders, name="orders"),
    path("<str:order_number>/", views.order_detail, name="order-detail"),
    path("<str:order_number>/cancel/", views.cancel_order, name="order-cancel"),
    path(
        "<str:order_number>/confirm-received/",
        views.confirm_received,
        name="order-confirm-received",
    ),
    path("<str:order_number>/expiry/", views.order_expiry, name="order-expiry"),
]
