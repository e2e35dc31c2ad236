"""
URL configuration for signflow project.
"""

from django.urls import path, include

urlpatterns = [
    path('api/signing/', include('signing.urls')),
]
