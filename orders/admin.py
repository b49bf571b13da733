from django.contrib import admin

from .models import Order, PaymentStatusEvent


class PaymentStatusEventInline(admin.TabularInline):
    model = PaymentStatusEvent
    extra = 0
    can_delete = False
    readonly_fields = ("reported_code", "previous_status", "target_status", "resulting_status", "outcome", "source", "created_at")
    fields = readonly_fields


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "payment_status", "gross_amount", "quantity", "buyer_name", "email", "created_at", "updated_at")
    search_fields = ("id", "gateway_token", "buyer_name", "email")
    list_filter = ("payment_status", "created_at")
    # Payment status is only ever changed by notifications.
    readonly_fields = ("gross_amount", "gateway_token", "redirect_url", "payment_status", "last_notification", "created_at", "updated_at")
    inlines = [PaymentStatusEventInline]


@admin.register(PaymentStatusEvent)
class PaymentStatusEventAdmin(admin.ModelAdmin):
    list_display = ("order", "reported_code", "previous_status", "resulting_status", "outcome", "source", "created_at")
    search_fields = ("order__id", "reported_code")
    list_filter = ("outcome", "source", "created_at")
    readonly_fields = ("payload", "created_at")
