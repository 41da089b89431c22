from django.urls import path
from . import views

urlpatterns = [
    # ==================== AUTHENTICATION ====================
    path("register/", views.register_customer, name="register-customer"),
    path("login/", views.login, name="login"),
    path("logout/", views.logout, name="logout"),
    path("refresh-token/", views.refresh_token, name="refresh-token"),
    # ==================== PROFILE ====================
    path("profile/", views.profile, name="profile"),
    path("profile/change-password/", views.change_password, name="change-password"),
    # ==================== ADDRESS BOOK ====================
    path("addresses/", views.addresses, name="addresses"),
    path("addresses/<uuid:address_id>/", views.address_detail, name="address-detail"),
    path(
        "addresses/<uuid:address_id>/default/",
        views.set_default_address,
        name="address-set-default",
    ),
    # ==================== ADMIN: CUSTOMERS ====================
    path("admin/customers/", views.customer_list, name="customer-list"),
    path("admin/customers/stats/", views.customer_stats, name="customer-stats"),
    path(
        "admin/customers/<uuid:customer_id>/",
        views.customer_detail,
        name="customer-detail",
    ),
    path(
        "admin/customers/<uuid:customer_id>/orders/stats/",
        views.customer_order_stats,
        name="customer-order-stats",
    ),
    path(
        "admin/customers/<uuid:customer_id>/suspend/",
        views.suspend_customer,
        name="customer-suspend",
    ),
    path(
        "admin/customers/<uuid:customer_id>/reactivate/",
        views.reactivate_customer,
        name="customer-reactivate",
    ),
    # ==================== ADMIN: TEAM ====================
    path("admin/team/", views.team_list, name="team-list"),
    path("admin/team/create/", views.register_team_member, name="team-create"),
    path(
        "admin/team/<uuid:member_id>/status/",
        views.team_member_status,
        name="team-member-status",
    ),
]
