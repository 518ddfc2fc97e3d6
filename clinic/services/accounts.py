import logging
from typing import Optional

from django.db import transaction
from django.db.models import Count
from rest_framework.authtoken.models import Token

from clinic.exceptions import BusinessRuleError
from clinic.models import Role, User
from clinic.services.audit import log_action

logger = logging.getLogger(__name__)


def email_taken(email: str, exclude_id: Optional[int] = None) -> bool:
    qs = User.objects.filter(email__iexact=email)
    if exclude_id:
        qs = qs.exclude(id=exclude_id)
    return qs.exists()


def create_user(*, name: str, email: str, password: str, role: Optional[Role] = None,
                active: bool = True, actor=None) -> User:
    user = User.objects.create_user(email=email, password=password, name=name, role=role, is_active=active)
    log_action(user=actor, action='user_create', object_type='user', object_id=user.id,
               detail={'email': user.email, 'role': role.name if role else None})
    return user


def update_user(user: User, data: dict, actor=None) -> User:
    was_admin = _is_active_admin(user)
    if 'name' in data:
        user.name = data['name']
    if 'email' in data:
        user.email = User.objects.normalize_email(data['email'])
        user.username = user.email
    if 'role' in data:
        user.role = data['role']
    if 'active' in data:
        user.is_active = data['active']
    if user.pk == getattr(actor, 'pk', None) and not user.is_active:
        raise BusinessRuleError('You cannot deactivate your own account')
    with transaction.atomic():
        user.save()
        if was_admin:
            _ensure_admin_remains()
        if not user.is_active:
            Token.objects.filter(user=user).delete()
    log_action(user=actor, action='user_update', object_type='user', object_id=user.id,
               detail={'fields': sorted(data.keys())})
    return user


def set_password(user: User, password: str, actor=None) -> None:
    user.set_password(password)
    user.save(update_fields=['password'])
    # force a new login everywhere
    Token.objects.filter(user=user).delete()
    log_action(user=actor, action='user_password', object_type='user', object_id=user.id)


def active_admin_count() -> int:
    return User.objects.filter(is_active=True, role__name=Role.ADMIN, role__is_active=True).count()


def _is_active_admin(user: User) -> bool:
    return bool(user.is_active and user.role_id and user.role.name == Role.ADMIN and user.role.is_active)


def _ensure_admin_remains() -> None:
    if active_admin_count() == 0:
        raise BusinessRuleError('At least one active Admin user must remain')


def delete_user(user: User, actor=None) -> None:
    if user.pk == getattr(actor, 'pk', None):
        raise BusinessRuleError('You cannot delete your own account')
    was_admin = _is_active_admin(user)
    with transaction.atomic():
        email = user.email
        user.delete()
        if was_admin:
            _ensure_admin_remains()
    log_action(user=actor, action='user_delete', object_type='user', object_id=None, detail={'email': email})


def list_roles():
    return Role.objects.annotate(user_count=Count('users')).order_by('name')


def delete_role(role: Role, actor=None) -> None:
    if role.name == Role.ADMIN:
        raise BusinessRuleError('The Admin role cannot be deleted')
    if role.users.exists():
        raise BusinessRuleError('Cannot delete role that is assigned to users', userCount=role.users.count())
    log_action(user=actor, action='role_delete', object_type='role', object_id=role.id, detail={'name': role.name})
    role.delete()


def serialize_role(r: Role) -> dict:
    count = getattr(r, 'user_count', None)
    return {
        'id': r.id,
        'name': r.name,
        'description': r.description,
        'permissions': r.permissions or {},
        'isActive': r.is_active,
        'userCount': count if count is not None else r.users.count(),
        'createdAt': r.created_at.isoformat() if r.created_at else None,
    }


def serialize_user(u: User) -> dict:
    return {
        'id': u.id,
        'name': u.display_name,
        'email': u.email,
        'roleId': u.role_id,
        'role': {'id': u.role.id, 'name': u.role.name} if u.role_id else None,
        'active': u.is_active,
        'lastLogin': u.last_login.isoformat() if u.last_login else None,
        'createdAt': u.date_joined.isoformat() if u.date_joined else None,
    }
