from django.urls import path
from . import views

urlpatterns = [
    path("", views.notification_list, name="notification-list"),
    path("unread-count/", views.unread_count, name="notification-unread-count"),
    path("read-all/", views.mark_all_as_read, name="notification-read-all"),
    path("<uuid:notification_id>/read/", views.mark_as_read, name="notification-read"),
    path("<uuid:notification_id>/", views.delete_notification, name="notification-delete"),
    # Back-office
    path("admin/", views.admin_notification_list, name="admin-notification-list"),
    path("admin/create/", views.create_notification, name="admin-notification-create"),
]
