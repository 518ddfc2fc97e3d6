"""
Role based permission classes.

Each staff user holds a :class:`~clinic.models.Role` whose permission map
lists, per resource, the actions the role may perform.  Views declare
the resource they belong to with :func:`resource_permission`; the HTTP
method decides the action unless the view pins one explicitly.
"""
from rest_framework.permissions import BasePermission

RESOURCES = (
    'patients',
    'appointments',
    'prescriptions',
    'inventory',
    'billing',
    'users',
    'roles',
    'settings',
    'reports',
)

ACTIONS = ('create', 'read', 'update', 'delete')

METHOD_ACTIONS = {
    'GET': 'read',
    'HEAD': 'read',
    'OPTIONS': 'read',
    'POST': 'create',
    'PUT': 'update',
    'PATCH': 'update',
    'DELETE': 'delete',
}


class HasResourcePermission(BasePermission):
    """Check the caller's role against ``resource`` and the request action."""
    resource: str = ''
    action: str | None = None
    message = 'Insufficient permissions'

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, 'user', None)
        if not (user and user.is_authenticated):
            return False
        action = self.action or METHOD_ACTIONS.get(request.method, 'read')
        return user.has_resource_permission(self.resource, action)


def resource_permission(resource: str, action: str | None = None) -> type[HasResourcePermission]:
    """Build a permission class bound to ``resource`` (and optionally a fixed action)."""
    if resource not in RESOURCES:
        raise ValueError(f'unknown resource: {resource}')
    suffix = action.title() if action else ''
    return type(
        f'{resource.title()}{suffix}Permission',
        (HasResourcePermission,),
        {'resource': resource, 'action': action},
    )


class IsAdminRole(BasePermission):
    """Allow access only to superusers and members of the Admin role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, 'user', None)
        return bool(user and user.is_authenticated and user.is_admin)


def validate_permission_map(value) -> dict:
    """Return a cleaned permission map or raise ``ValueError``."""
    if not isinstance(value, dict):
        raise ValueError('permissions must be an object of resource -> actions')
    cleaned: dict[str, list[str]] = {}
    for resource, actions in value.items():
        if resource not in RESOURCES:
            raise ValueError(f'unknown resource: {resource}')
        if not isinstance(actions, (list, tuple)):
            raise ValueError(f'actions for {resource} must be a list')
        bad = [a for a in actions if a not in ACTIONS]
        if bad:
            raise ValueError(f'unknown action(s) for {resource}: {", ".join(map(str, bad))}')
        cleaned[resource] = [a for a in ACTIONS if a in actions]
    return cleaned
