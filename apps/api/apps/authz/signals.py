"""
Account change notifications.

profile_updated is the push channel for "account row updated" events. It is
sent after every save of a User so that open practice sessions can replace
their cached profile (plan or subscription changes) without a reload.
"""
import logging

from django.db.models.signals import post_save
from django.dispatch import Signal, receiver

from apps.authz.models import User

logger = logging.getLogger(__name__)

# Sent with: user_id (UUID), profile (User instance)
profile_updated = Signal()


@receiver(post_save, sender=User)
def broadcast_profile_update(sender, instance, created, **kwargs):
    """Relay account saves onto the profile_updated channel."""
    if created:
        return
    logger.debug(
        'Profile updated',
        extra={'event': 'profile_updated', 'account_id': str(instance.id)}
    )
    profile_updated.send(sender=User, user_id=instance.id, profile=instance)
