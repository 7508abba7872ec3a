from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from catalog.accounts import unique_naju_id
from catalog.models import Profile


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_profile(sender, instance, created, **kwargs):
    """
    Every account gets a profile the moment the user row exists.
    """
    if created:
        Profile.objects.get_or_create(user=instance, defaults={"naju_id": unique_naju_id(instance.username)})
