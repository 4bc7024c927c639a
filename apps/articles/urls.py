"""
Article workflow API URLs.
"""

from django.urls import path, include
from config.routers import SafeDefaultRouter
from .views import ArticleViewSet

app_name = 'articles'

router = SafeDefaultRouter()
router.register(r'articles', ArticleViewSet, basename='article')

urlpatterns = [
    # Router URLs (includes the workflow actions)
    path('', include(router.urls)),
]
