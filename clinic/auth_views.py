"""
Authentication views.

Login hands out three credentials at once so that every kind of client
can talk to the API:

* a legacy ``Token`` key (``Authorization: Token <key>``), which expires
  after ``TOKEN_TTL_HOURS``;
* a JWT access/refresh pair (``Authorization: Bearer <access>``);
* a Django session cookie for browser clients.

Logout revokes all three.  The authentication class itself lives in
``clinic.authentication`` so that REST framework can import it at
start-up without loading any views.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate, login, logout
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.views import TokenRefreshView
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle

from clinic.authentication import token_expired
from clinic.models import User
from clinic.serializers.auth import LoginSerializer, LogoutSerializer
from clinic.services.accounts import serialize_user
from clinic.services.audit import log_action, request_ip

logger = logging.getLogger(__name__)


def _user_payload(user: User) -> dict:
    payload = serialize_user(user)
    payload['role'] = user.role.name if user.role_id else None
    payload['isAdmin'] = user.is_admin
    return payload


class LoginRateThrottle(AnonRateThrottle):
    scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def login_view(request):
    """Email/password login; also accepts ``username`` as the login field."""
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    match = User.objects.filter(email__iexact=vd['login']).only('username').first()
    user = authenticate(request, username=match.username if match else vd['login'], password=vd['password'])
    if not user:
        logger.info('failed login for %s from %s', vd['login'], request_ip(request))
        log_action(user=None, action='login', object_type='user', object_id=None,
                   detail={'result': 'fail', 'email': vd['login'], 'ip': request_ip(request)})
        return Response({'ok': False, 'detail': 'Invalid email or password'}, status=400)

    # session cookie for browser clients
    login(request._request, user)
    log_action(user=user, action='login', object_type='user', object_id=user.id,
               detail={'result': 'ok', 'ip': request_ip(request)})

    token_obj, _ = Token.objects.get_or_create(user=user)
    if token_expired(token_obj):
        token_obj.delete()
        token_obj = Token.objects.create(user=user)
    refresh = RefreshToken.for_user(user)

    return Response({
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role.name if user.role_id else None,
        'permissions': user.permission_map(),
        'user': _user_payload(user),
    }, status=200)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    """Blacklist refresh tokens, drop the legacy token and end the session."""
    s = LogoutSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    refresh = s.validated_data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError as e:
            return Response({'ok': False, 'detail': str(e)}, status=400)
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    Token.objects.filter(user=request.user).delete()
    log_action(user=request.user, action='logout', object_type='user', object_id=request.user.id,
               detail={'blacklisted': count})
    logout(request._request)
    return Response({'ok': True, 'blacklisted': count})


@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Exchange ``{"refresh": ...}`` for a fresh ``jwt_access`` (and a rotated refresh)."""
    view = TokenRefreshView.as_view()
    resp = view(request._request)
    if isinstance(resp, Response):
        data = dict(resp.data)
        if 'access' in data and 'jwt_access' not in data:
            data['jwt_access'] = data.pop('access')
        return Response(data, status=resp.status_code)
    return resp


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_role_view(request):
    user: User = request.user
    return Response({
        'ok': True,
        'role': user.role.name if user.role_id else None,
        'permissions': user.permission_map(),
        'user': _user_payload(user),
    })
