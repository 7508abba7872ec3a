from rest_framework.permissions import BasePermission


def _profile(request):
    user = request.user
    if not user or not user.is_authenticated:
        return None
    return getattr(user, "profile", None)


class IsAdminProfile(BasePermission):
    """Back-office access: the profile carries the 'admin' role."""

    message = "User is not an admin."

    def has_permission(self, request, view):
        profile = _profile(request)
        return bool(profile and profile.is_admin)


class HasActiveSubscription(BasePermission):
    message = "An active subscription is required to watch or read this content."

    def has_permission(self, request, view):
        profile = _profile(request)
        return bool(profile and (profile.has_active_subscription or profile.is_admin))
