from django.contrib.auth.models import User
from django.contrib.auth.backends import ModelBackend

class EmailBackend(ModelBackend):
    """
    Signs users in with their email address, matched case-insensitively.

    Listed before ModelBackend in AUTHENTICATION_BACKENDS: when the login
    value is not a known email (or matches several accounts) this backend
    returns None and Django falls through to the username lookup.
    """
    def authenticate(self, request, username=None, password=None, **kwargs):
        email = username if username is not None else kwargs.get(User.USERNAME_FIELD)
        if not email or '@' not in email:
            return None

        try:
            user = User.objects.get(email__iexact=email)
        except (User.DoesNotExist, User.MultipleObjectsReturned):
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
