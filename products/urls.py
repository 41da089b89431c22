"""
products/urls.py
"""

from django.urls import path
from . import views

urlpatterns = [
    # ==================== PUBLIC ENDPOINTS ====================
    path("", views.product_list, name="product-list"),
    path("featured/", views.featured_products, name="product-featured"),
    path("by-ids/", views.products_by_ids, name="product-by-ids"),
    path("categories/", views.category_list, name="category-list"),
    path("categories/<slug:slug>/", views.category_detail, name="category-detail"),
    path("id/<uuid:product_id>/", views.product_by_id, name="product-by-id"),
    path("id/<uuid:product_id>/convert/", views.convert_units, name="product-convert-units"),
    # ==================== ADMIN ENDPOINTS ====================
    path("admin/dashboard/", views.dashboard_stats, name="admin-dashboard-stats"),
    path("admin/products/", views.admin_product_create, name="admin-product-create"),
    path(
        "admin/products/<uuid:product_id>/",
        views.admin_product_detail,
        name="admin-product-detail",
    ),
    path(
        "admin/products/<uuid:product_id>/toggle/",
        views.admin_product_toggle,
        name="admin-product-toggle",
    ),
    path("admin/categories/", views.admin_categories, name="admin-categories"),
    path(
        "admin/categories/<uuid:category_id>/",
        views.admin_category_detail,
        name="admin-category-detail",
    ),
    path(
        "admin/categories/<uuid:category_id>/toggle/",
        views.admin_category_toggle,
        name="admin-category-toggle",
    ),
    path("<slug:slug>/", views.product_detail, name="product-detail"),
]
