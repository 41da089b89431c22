from django.urls import path
from . import views

urlpatterns = [
    path("sales/", views.periodic_sales, name="report-sales"),
    path("categories/", views.category_sales, name="report-categories"),
    path("payment-methods/", views.payment_methods, name="report-payment-methods"),
    path("best-sellers/", views.best_sellers, name="report-best-sellers"),
    path("low-stock/", views.low_stock, name="report-low-stock"),
    path("slow-moving/", views.slow_moving, name="report-slow-moving"),
    path("returns/", views.returns, name="report-returns"),
    path("top-customers/", views.top_customers, name="report-top-customers"),
    path("new-customers/", views.new_customers, name="report-new-customers"),
    path("order-status/", views.order_status, name="report-order-status"),
]
