"""
URL configuration for Newsdesk project.
"""

from django.contrib import admin
from django.urls import path, include

from apps.core.urls import auth_urlpatterns

urlpatterns = [
    path('admin/', admin.site.urls),
    # Auth endpoints (JWT login/refresh, current user)
    path('api/auth/', include((auth_urlpatterns, 'auth'))),
    # Editorial workflow API
    path('api/', include('apps.articles.urls')),
]

# Customize admin site
admin.site.site_header = "Newsdesk Administration"
admin.site.site_title = "Newsdesk Admin Portal"
admin.site.index_title = "Welcome to Newsdesk Administration"
