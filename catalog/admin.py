from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "price", "created_at")
    search_fields = ("id", "name")
    readonly_fields = ("created_at",)
    ordering = ("-created_at",)
