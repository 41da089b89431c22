from django.urls import path
from . import views

urlpatterns = [
    path("movements/", views.movements, name="stock-movements"),
    path("movements/summary/", views.movement_summary, name="stock-movement-summary"),
    path(
        "products/<uuid:product_id>/movements/",
        views.product_movements,
        name="product-stock-movements",
    ),
]
