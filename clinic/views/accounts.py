"""
User and role administration.

Only callers whose role grants the ``users`` / ``roles`` resource may use
these endpoints.  Deleting users and roles is guarded so that the system
always keeps at least one active Admin.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from clinic.models import Role, User
from clinic.permissions import resource_permission
from clinic.serializers.accounts import PasswordSerializer, RoleSerializer, UserCreateSerializer, UserUpdateSerializer
from clinic.services import accounts
from clinic.services.audit import log_action

UsersPermission = resource_permission('users')
RolesPermission = resource_permission('roles')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, UsersPermission])
def users_list(request):
    if request.method == 'GET':
        qs = User.objects.select_related('role').order_by('name', 'email')
        return Response({'ok': True, 'data': [accounts.serialize_user(u) for u in qs]})
    s = UserCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    user = accounts.create_user(
        name=vd['name'],
        email=vd['email'],
        password=vd['password'],
        role=vd.get('roleId'),
        active=vd['active'],
        actor=request.user,
    )
    return Response({'ok': True, 'data': accounts.serialize_user(user)}, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, UsersPermission])
def user_detail(request, pk: int):
    user = get_object_or_404(User.objects.select_related('role'), pk=pk)
    if request.method == 'GET':
        return Response({'ok': True, 'data': accounts.serialize_user(user)})
    if request.method == 'PUT':
        s = UserUpdateSerializer(data=request.data, partial=True, context={'instance': user})
        s.is_valid(raise_exception=True)
        user = accounts.update_user(user, s.to_service(), actor=request.user)
        return Response({'ok': True, 'data': accounts.serialize_user(user)})
    accounts.delete_user(user, actor=request.user)
    return Response({'ok': True, 'message': 'User deleted successfully'})


@api_view(['PUT'])
@permission_classes([IsAuthenticated, resource_permission('users', 'update')])
def user_password(request, pk: int):
    user = get_object_or_404(User, pk=pk)
    s = PasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    accounts.set_password(user, s.validated_data['password'], actor=request.user)
    return Response({'ok': True, 'message': 'Password updated successfully'})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, RolesPermission])
def roles_list(request):
    if request.method == 'GET':
        return Response({'ok': True, 'data': [accounts.serialize_role(r) for r in accounts.list_roles()]})
    s = RoleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    role = Role.objects.create(
        name=vd['name'],
        description=vd.get('description', ''),
        permissions=vd.get('permissions') or {},
        is_active=vd.get('isActive', True),
    )
    log_action(user=request.user, action='role_create', object_type='role', object_id=role.id,
               detail={'name': role.name})
    return Response({'ok': True, 'data': accounts.serialize_role(role)}, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, RolesPermission])
def role_detail(request, pk: int):
    role = get_object_or_404(Role, pk=pk)
    if request.method == 'GET':
        return Response({'ok': True, 'data': accounts.serialize_role(role)})
    if request.method == 'PUT':
        s = RoleSerializer(data=request.data, partial=True, context={'instance': role})
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        if 'name' in vd and role.name == Role.ADMIN and vd['name'] != Role.ADMIN:
            return Response({'ok': False, 'detail': 'The Admin role cannot be renamed'}, status=400)
        for api_name, field in (('name', 'name'), ('description', 'description'),
                                ('permissions', 'permissions'), ('isActive', 'is_active')):
            if api_name in vd:
                setattr(role, field, vd[api_name])
        role.save()
        log_action(user=request.user, action='role_update', object_type='role', object_id=role.id,
                   detail={'fields': sorted(vd.keys())})
        return Response({'ok': True, 'data': accounts.serialize_role(role)})
    accounts.delete_role(role, actor=request.user)
    return Response({'ok': True, 'message': 'Role deleted successfully'})
