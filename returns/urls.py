from django.urls import path
from . import views

urlpatterns = [
    path("", views.returns, name="returns"),
    path("order/<str:order_number>/", views.check_return, name="return-check"),
    path("admin/", views.admin_returns, name="admin-returns"),
    path(
        "admin/<str:return_number>/<str:action>/",
        views.admin_return_action,
        name="admin-return-action",
    ),
]
