"""Global Django admin customizations."""
from django.contrib import admin

admin.site.site_header = "RAVITO - Administration generale"
admin.site.site_title = "RAVITO Admin"
admin.site.index_title = "Controle de la plateforme"
