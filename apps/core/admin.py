"""
Django admin configuration for core app.
"""
from django.contrib import admin


# Customize admin site header and title
admin.site.site_header = "Atrium Administration"
admin.site.site_title = "Atrium Admin"
admin.site.index_title = "Roles, permissions and content access"
