"""
URL configuration for the hospital project.

The Django admin sits at ``/admin/``, the clinic API under ``/api``,
Prometheus metrics at ``/metrics`` and the OpenAPI documentation at
``/swagger/`` and ``/redoc/``.
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path, include

from rest_framework import permissions
from drf_yasg.views import get_schema_view
from drf_yasg import openapi

api_info = openapi.Info(
    title="Hospital Administration API",
    default_version='v1',
    description="Patients, appointments, prescriptions, inventory and billing for a single clinic.",
)

schema_view = get_schema_view(
    api_info,
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', include('clinic.routers')),
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
]

# uploaded medication images; only served by Django while developing
urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
