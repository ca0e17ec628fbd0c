from .models import UserProfile


def user_preferences(request):
    """
    Exposes the theme and unit of the signed in user to every template.
    """
    if not request.user.is_authenticated:
        return {}
    try:
        profile = request.user.profile
    except UserProfile.DoesNotExist:
        return {}
    return {
        'theme': profile.theme,
        'measurement_unit': profile.measurement_unit,
    }
