from django.urls import path
from . import views

urlpatterns = [
    path("validate/", views.validate_voucher, name="voucher-validate"),
    # Back-office
    path("admin/", views.voucher_list, name="admin-voucher-list"),
    path("admin/stats/", views.voucher_stats, name="admin-voucher-stats"),
    path("admin/<uuid:voucher_id>/", views.voucher_detail, name="admin-voucher-detail"),
    path("admin/<uuid:voucher_id>/toggle/", views.toggle_voucher, name="admin-voucher-toggle"),
]
