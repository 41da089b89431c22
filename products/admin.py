from django.contrib import admin

from .models import Category, Product


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "order", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["name", "slug"]
    prepopulated_fields = {"slug": ("name",)}
    ordering = ["order"]


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "category",
        "unit",
        "price",
        "stock",
        "min_stock",
        "sold",
        "is_active",
        "is_featured",
    ]
    list_filter = ["category", "is_active", "is_featured"]
    search_fields = ["name", "slug", "brand"]
    prepopulated_fields = {"slug": ("name",)}
    readonly_fields = ["stock", "sold", "views", "rating_average", "rating_count"]
