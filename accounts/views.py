import logging

from django.shortcuts import render, redirect
from django.contrib.auth import login
from django.contrib.auth.decorators import login_required
from django.contrib import messages
from django.db import DatabaseError

from devices.exceptions import ThresholdError
from devices.forms import ThresholdForm
from devices.repository import DeviceRepository, AUTO, MANUAL
from .forms import SignUpForm, ProfileForm
from .models import UserProfile

logger = logging.getLogger(__name__)


def index(request):
    if request.user.is_authenticated:
        return redirect('dashboard')
    return render(request, 'index.html')


def sign_up(request):
    if request.user.is_authenticated:
        return redirect('dashboard')

    if request.method == 'POST':
        form = SignUpForm(request.POST)
        if form.is_valid():
            user = form.save()
            login(request, user, backend='django.contrib.auth.backends.ModelBackend')
            return redirect('dashboard')
    else:
        form = SignUpForm()
    return render(request, 'registration/sign_up.html', {'form': form})


@login_required
def profile_view(request):
    """
    Profile preferences and the user's global alert thresholds.
    Each form posts its own submit button.
    """
    profile, _ = UserProfile.objects.get_or_create(user=request.user)
    repository = DeviceRepository()
    profile_form = ProfileForm(instance=profile)
    threshold_form = ThresholdForm(thresholds=repository.get_thresholds(request.user.id))

    if request.method == 'POST':
        if 'submit_profile' in request.POST:
            profile_form = ProfileForm(request.POST, instance=profile)
            if profile_form.is_valid():
                try:
                    profile = profile_form.save()
                    repository.set_gate_mode(request.user.id, AUTO if profile.gate_auto_control else MANUAL)
                except DatabaseError:
                    logger.exception("Saving profile of %s failed", request.user.id)
                    messages.error(request, "Failed to save profile settings")
                else:
                    messages.success(request, "Profile settings saved")
                    return redirect('profile')

        elif 'submit_thresholds' in request.POST:
            threshold_form = ThresholdForm(request.POST)
            if threshold_form.is_valid():
                try:
                    repository.save_thresholds(request.user.id, threshold_form.to_thresholds())
                except (ThresholdError, DatabaseError) as e:
                    logger.warning("Saving thresholds of %s failed: %s", request.user.id, e)
                    messages.error(request, "Failed to save threshold settings")
                else:
                    messages.success(request, "Threshold settings saved")
                    return redirect('profile')

        elif 'reset_thresholds' in request.POST:
            try:
                repository.reset_thresholds(request.user.id)
            except (ThresholdError, DatabaseError) as e:
                logger.warning("Resetting thresholds of %s failed: %s", request.user.id, e)
                messages.error(request, "Failed to reset threshold settings")
            else:
                messages.success(request, "Threshold settings reset to defaults")
            return redirect('profile')

    context = {
        'profile_form': profile_form,
        'threshold_form': threshold_form,
    }
    return render(request, 'accounts/profile.html', context)
