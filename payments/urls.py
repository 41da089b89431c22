from django.urls import path
from . import views

urlpatterns = [
    path("midtrans/notification/", views.midtrans_notification, name="midtrans-notification"),
    path("<str:order_number>/snap-token/", views.snap_token, name="payment-snap-token"),
    path("<str:order_number>/sync/", views.sync_payment_status, name="payment-sync"),
    path("<str:order_number>/simulate/", views.simulate_payment, name="payment-simulate"),
]
