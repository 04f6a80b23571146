"""
URL configuration for the screening service.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Staff authentication (simplejwt)
        token/                     - Obtain access/refresh token pair
        token/refresh/             - Refresh an access token
    /api/v1/screening/             - Screening endpoints
        webhooks/rail/             - Payment rail webhook endpoint (POST)
        webhooks/                  - Webhook history
        pending-payments/          - Review queue
        pending-payments/decision/ - APPROVE / REJECT
        block-list/                - List / add block list entries
        block-list/{id}/deactivate/ - Deactivate an entry
        block-list/check/          - Screen a name
        blocked-payments/          - Blocked payments
        blocked-payments/stats/    - Blocked payment stats

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    # Authentication (simplejwt)
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    # Screening
    path("screening/", include("screening.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Payment Screening Admin"
admin.site.site_title = "Screening Admin"
admin.site.index_title = "Payment screening and review"
