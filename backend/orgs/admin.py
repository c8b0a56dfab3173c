from django.contrib import admin

from .models import Restaurant, Tenant


class RestaurantInline(admin.TabularInline):
    model = Restaurant
    extra = 0


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "contact_email", "stripe_connect_account")
    search_fields = ("name", "slug", "contact_email")
    inlines = [RestaurantInline]


@admin.register(Restaurant)
class RestaurantAdmin(admin.ModelAdmin):
    list_display = ("name", "tenant", "contact_email", "phone")
    list_filter = ("tenant",)
    search_fields = ("name", "tenant__name")
