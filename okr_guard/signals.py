"""
Signal handlers keeping cached assignment reads in sync with the database.
"""

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import RoleAssignment
from .store.database import bump_principal_cache_version


@receiver(post_save, sender=RoleAssignment, dispatch_uid="okr_guard.assignment_saved")
@receiver(post_delete, sender=RoleAssignment, dispatch_uid="okr_guard.assignment_deleted")
def invalidate_assignment_cache(sender, instance, **kwargs):
    bump_principal_cache_version(instance.user_id)
