from django.contrib import admin

from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ["product", "product_name", "price", "quantity", "unit"]


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = [
        "order_number",
        "user",
        "recipient_name",
        "total",
        "payment_status",
        "status",
        "created_at",
    ]
    list_filter = ["status", "payment_status", "return_status", "courier"]
    search_fields = ["order_number", "recipient_name", "user__email", "tracking_number"]
    readonly_fields = ["order_number", "paid_at", "transaction_id", "snap_token"]
    inlines = [OrderItemInline]
