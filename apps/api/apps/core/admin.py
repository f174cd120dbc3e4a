from django.contrib import admin
from .models import Clinic


@admin.register(Clinic)
class ClinicAdmin(admin.ModelAdmin):
    list_display = ['name', 'user', 'created_at']
    search_fields = ['name', 'address']
    list_select_related = ['user']
    readonly_fields = ['created_at', 'updated_at']
