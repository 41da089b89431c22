# users/admin.py - ONLY register and configure admin
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from .models.address import Address
from .models.user import User


@admin.register(User)
class TokoUserAdmin(UserAdmin):
    list_display = ["email", "full_name", "role", "is_active", "created_at"]
    list_filter = ["role", "is_active"]
    search_fields = ["email", "first_name", "last_name", "phone"]
    ordering = ["-created_at"]
    readonly_fields = ["created_at", "updated_at", "last_login", "suspended_at"]
    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Profile", {"fields": ("username", "first_name", "last_name", "phone")}),
        (
            "Access",
            {"fields": ("role", "is_active", "is_staff", "is_superuser")},
        ),
        ("Suspension", {"fields": ("suspended_at", "suspension_reason")}),
        ("Dates", {"fields": ("last_login", "created_at", "updated_at")}),
    )
    add_fieldsets = (
        (None, {"classes": ("wide",), "fields": ("email", "password1", "password2", "role")}),
    )


@admin.register(Address)
class AddressAdmin(admin.ModelAdmin):
    list_display = ["label", "recipient_name", "user", "city", "province", "is_default"]
    list_filter = ["province", "is_default"]
    search_fields = ["recipient_name", "user__email", "city"]
