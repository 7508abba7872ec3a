import logging
import re
import time
from uuid import uuid4

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from . import s3
from .exceptions import ValidationError
from .models import PaymentReceipt, Profile

logger = logging.getLogger(__name__)

NAJU_ID_RE = re.compile(r"[^a-z0-9_]+")


def unique_naju_id(username: str) -> str:
    """Derive a free public handle from a username ("Jane Doe" -> "jane_doe", "jane_doe_2", ...)."""
    base = NAJU_ID_RE.sub("_", (username or "").lower()).strip("_")[:48] or f"user_{uuid4().hex[:8]}"
    candidate, n = base, 1
    while Profile.objects.filter(naju_id=candidate).exists():
        n += 1
        candidate = f"{base}_{n}"
    return candidate


def session_context(user) -> dict:
    """Everything the UI needs about the signed-in account, in one object."""
    if not user or not user.is_authenticated:
        return {"authenticated": False, "user": None, "profile": None}
    profile = user.profile
    return {
        "authenticated": True,
        "user": {"id": user.pk, "username": user.get_username(), "email": user.email},
        "profile": {
            "naju_id": profile.naju_id,
            "roles": profile.roles,
            "is_admin": profile.is_admin,
            "preferences": profile.preferences,
            "avatar_url": profile.avatar_url,
        },
        "subscription": {
            "status": profile.subscription_status,
            "expires_at": profile.subscription_expires_at,
            "active": profile.has_active_subscription,
        },
    }


def extend_subscription(user_id, days_to_add) -> Profile:
    try:
        days = int(days_to_add)
    except (TypeError, ValueError) as e:
        raise ValidationError("days_to_add must be a whole number of days.") from e
    if days <= 0:
        raise ValidationError("days_to_add must be positive.")

    try:
        profile = Profile.objects.get(user_id=user_id)
    except Profile.DoesNotExist as e:
        raise ValidationError(f"No profile for user {user_id}.", details={"user_id": user_id}) from e

    profile.extend_subscription(days)
    logger.info("Subscription for user %s extended by %d days to %s", user_id, days, profile.subscription_expires_at)
    return profile


# -----------------------------------------------------
# Payment receipts
# -----------------------------------------------------
def receipt_key(profile: Profile, filename: str) -> str:
    return f"{profile.user_id}/{int(time.time() * 1000)}-{s3.safe_filename(filename)}"


def review_receipt(receipt: PaymentReceipt, status: str, days_to_add=None) -> PaymentReceipt:
    if receipt.status != PaymentReceipt.Status.PENDING:
        raise ValidationError("Receipt has already been reviewed.", details={"status": receipt.status})
    if status not in (PaymentReceipt.Status.APPROVED, PaymentReceipt.Status.REJECTED):
        raise ValidationError("Status must be 'approved' or 'rejected'.")

    with transaction.atomic():
        receipt.status = status
        receipt.reviewed_at = timezone.now()
        receipt.save(update_fields=["status", "reviewed_at"])
        if status == PaymentReceipt.Status.APPROVED and days_to_add:
            extend_subscription(receipt.profile.user_id, days_to_add)
    return receipt


def delete_receipt(receipt: PaymentReceipt):
    if receipt.status != PaymentReceipt.Status.PENDING:
        raise ValidationError("Only pending receipts can be deleted.")
    s3.delete_keys(settings.S3_RECEIPTS_BUCKET, [receipt.receipt_key])
    receipt.delete()


def delete_account(user):
    """Remove the user's stored receipts, then the user (profile and rows cascade)."""
    keys = list(user.profile.receipts.values_list("receipt_key", flat=True))
    s3.delete_keys(settings.S3_RECEIPTS_BUCKET, keys)
    logger.info("Deleting account %s (%d receipts)", user.pk, len(keys))
    user.delete()
