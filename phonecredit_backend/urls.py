from django.contrib import admin
from django.urls import path, include
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from django.conf import settings
from django.conf.urls.static import static

from rest_framework import permissions
from drf_yasg.views import get_schema_view
from drf_yasg import openapi


# Swagger Configuration
schema_view = get_schema_view(
    openapi.Info(
        title="Phone Financing Platform API",
        default_version='v1',
        description="""
        # Phone Financing & Collections API

        Financed phone sales are tied to a managed device. When a client falls
        behind on installments the device is locked through the device
        management backend, and unlocked again once the account catches up.

        ## Features
        - Automatic lock/unlock reconciliation cycle
        - Manual lock/unlock overrides per sale
        - At-risk and overdue reports
        - Device linking for financed sales

        ## Authentication
        This API uses JWT (JSON Web Tokens) for authentication.

        ### Login Flow:
        1. Call /api/token/ with email and password
        2. Receive access and refresh tokens
        3. Use access token in Authorization header: Bearer <token>

        ## User Roles
        - *Salesperson / Collector*: Read at-risk and overdue reports
        - *Store Manager*: Run passes and manual actions for their store
        - *Global / Financial Manager*: Same, across every store
        - *Admin*: Full cycle runs and lockout configuration
        """,
        contact=openapi.Contact(email="support@phonecredit.example"),
        license=openapi.License(name="Proprietary"),
    ),
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # API Documentation
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
    path('swagger.json', schema_view.without_ui(cache_timeout=0), name='schema-json'),

    # Auth
    path('api/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # API v1
    path('api/v1/devices/', include('customer_device.urls')),
]


if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)
