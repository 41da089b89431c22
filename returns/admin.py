from django.contrib import admin

from .models import ReturnItem, ReturnRequest


class ReturnItemInline(admin.TabularInline):
    model = ReturnItem
    extra = 0


@admin.register(ReturnRequest)
class ReturnRequestAdmin(admin.ModelAdmin):
    list_display = ["return_number", "order", "customer_name", "total_amount", "status", "requested_at"]
    list_filter = ["status"]
    search_fields = ["return_number", "order__order_number", "customer_name", "customer_email"]
    inlines = [ReturnItemInline]
