"""
Token authentication with expiry.

Legacy ``Authorization: Token <key>`` tokens are issued at login next to
the JWT pair.  Unlike DRF's stock class these tokens expire after
``settings.TOKEN_TTL_HOURS``; an expired token is deleted so the client
has to log in again.  Kept in its own module so that REST framework can
import it from settings without pulling in any views.
"""
from __future__ import annotations

import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone
from rest_framework import authentication, exceptions

logger = logging.getLogger(__name__)


class TokenAuthentication(authentication.TokenAuthentication):
    keyword = 'Token'

    def authenticate_credentials(self, key):
        user, token = super().authenticate_credentials(key)
        if token_expired(token):
            logger.info('expired token for user %s', user.pk)
            token.delete()
            raise exceptions.AuthenticationFailed('Token has expired.')
        return user, token


def token_expired(token) -> bool:
    ttl = int(getattr(settings, 'TOKEN_TTL_HOURS', 0) or 0)
    return bool(ttl and token.created < timezone.now() - timedelta(hours=ttl))
