"""
backend/signing/urls.py

"""

# ----------------------------
# Django imports
# ----------------------------
from django.urls import path

# ----------------------------
# Local view imports
# ----------------------------
from .views import SigningViewSet

# App namespace for reverse() lookups
app_name = 'signing'

# ----------------------------
# Signing routes
# ----------------------------
urlpatterns = [
    path('stamp/', SigningViewSet.as_view({
        'post': 'stamp'
    }), name='signing-stamp'),
    # Burn all signed fields of a document into its PDF.
    # Add ?download=1 to receive the PDF itself instead of base64 JSON.

    path('capture/', SigningViewSet.as_view({
        'post': 'capture'
    }), name='signing-capture'),
    # Rasterize a drawn or typed signature into a fixed-size PNG.
]
