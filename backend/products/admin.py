from django.contrib import admin
from .models import Category, Product, Package, PackageItem


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "destination", "stock_policy", "order", "is_active")
    list_filter = ("destination", "stock_policy", "is_active")
    search_fields = ("name",)


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "price", "vip_price", "track_inventory", "is_active")
    list_filter = ("category", "track_inventory", "is_active")
    search_fields = ("name", "sku")


class PackageItemInline(admin.TabularInline):
    model = PackageItem
    extra = 1


@admin.register(Package)
class PackageAdmin(admin.ModelAdmin):
    list_display = ("name", "price", "vip_price", "is_active")
    inlines = [PackageItemInline]
