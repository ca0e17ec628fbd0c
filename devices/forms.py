from django import forms

from .models import NUTRIENTS, DEFAULT_GROUPS, UNCATEGORIZED
from .repository import GATE_MODES

GROUP_CHOICES = [(group, group) for group in DEFAULT_GROUPS] + [(UNCATEGORIZED, UNCATEGORIZED)]


class PairDeviceForm(forms.Form):
    name = forms.CharField(label="Device Name", max_length=100)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['name'].widget.attrs.update({'class': 'form-control', 'placeholder': 'E.g. North field sensor'})

    def clean_name(self):
        name = self.cleaned_data['name'].strip()
        if not name:
            raise forms.ValidationError("Please enter a device name.")
        return name


class DeviceGroupForm(forms.Form):
    group = forms.ChoiceField(choices=GROUP_CHOICES)


class GateModeForm(forms.Form):
    mode = forms.ChoiceField(choices=[(mode, f"{mode.capitalize()} Gate Control") for mode in GATE_MODES])


class ThresholdForm(forms.Form):
    """
    Minimum and maximum percentage for each nutrient.
    Built from and turned back into the nested threshold dict.
    """
    nitrogen_min = forms.FloatField(label="Nitrogen minimum (%)", min_value=0, max_value=100)
    nitrogen_max = forms.FloatField(label="Nitrogen maximum (%)", min_value=0, max_value=100)
    phosphorus_min = forms.FloatField(label="Phosphorus minimum (%)", min_value=0, max_value=100)
    phosphorus_max = forms.FloatField(label="Phosphorus maximum (%)", min_value=0, max_value=100)
    potassium_min = forms.FloatField(label="Potassium minimum (%)", min_value=0, max_value=100)
    potassium_max = forms.FloatField(label="Potassium maximum (%)", min_value=0, max_value=100)

    def __init__(self, *args, thresholds=None, **kwargs):
        if thresholds is not None and 'initial' not in kwargs:
            kwargs['initial'] = {
                f'{nutrient}_{bound}': thresholds[nutrient][bound]
                for nutrient in NUTRIENTS
                for bound in ('min', 'max')
            }
        super().__init__(*args, **kwargs)
        for field in self.fields.values():
            field.widget.attrs.update({'class': 'form-control', 'step': 'any'})

    def clean(self):
        cleaned_data = super().clean()
        for nutrient in NUTRIENTS:
            minimum = cleaned_data.get(f'{nutrient}_min')
            maximum = cleaned_data.get(f'{nutrient}_max')
            if minimum is not None and maximum is not None and minimum > maximum:
                self.add_error(f'{nutrient}_max', f"{nutrient.capitalize()} maximum must not be lower than its minimum.")
        return cleaned_data

    def to_thresholds(self):
        return {
            nutrient: {
                'min': self.cleaned_data[f'{nutrient}_min'],
                'max': self.cleaned_data[f'{nutrient}_max'],
            }
            for nutrient in NUTRIENTS
        }
