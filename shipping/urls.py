from django.urls import path
from . import views

urlpatterns = [
    path("provinces/", views.provinces, name="shipping-provinces"),
    path("destinations/", views.destinations, name="shipping-destinations"),
    path("international/", views.check_international, name="shipping-international"),
    path("couriers/", views.couriers, name="shipping-couriers"),
    path("quote/", views.cart_quote, name="shipping-cart-quote"),
    path("store-config/", views.store_config, name="store-config"),
]
