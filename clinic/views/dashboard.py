"""
Dashboard endpoints.

``dashboard`` returns the overview counters and the latest prescriptions;
``dashboard/live`` returns the figures the front page polls (or receives
over the ``ws/dashboard/`` socket).
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.permissions import resource_permission
from clinic.services import dashboard

ReportsPermission = resource_permission('reports', 'read')


@api_view(['GET'])
@permission_classes([IsAuthenticated, ReportsPermission])
def dashboard_view(request):
    return Response({'ok': True, 'data': dashboard.summary()})


@api_view(['GET'])
@permission_classes([IsAuthenticated, ReportsPermission])
def dashboard_live(request):
    return Response({'ok': True, 'data': dashboard.live()})
