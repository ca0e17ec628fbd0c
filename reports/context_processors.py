from .models import Alert

def unread_alerts(request):
    """
    Adds the unread alerts to every template.
    """
    if not request.user.is_authenticated:
        return {}

    unread = Alert.objects.filter(user=request.user, read=False).order_by('-timestamp')
    return {
        'unread_alerts': unread[:10],
        'unread_alert_count': unread.count(),
    }
