from django import template

register = template.Library()

PPM_PER_PERCENT = 10000


@register.filter
def reading(value, unit='percent'):
    """Formats a percentage reading in the user's measurement unit."""
    if value is None:
        return "-"
    if unit == 'ppm':
        return f"{value * PPM_PER_PERCENT:.0f} ppm"
    return f"{value:.1f}%"
