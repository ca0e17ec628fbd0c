import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def percentage():
    return [django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Device',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=100)),
                ('status', models.CharField(choices=[('online', 'Online'), ('offline', 'Offline')], default='online', max_length=10)),
                ('nitrogen_gate', models.CharField(blank=True, choices=[('open', 'Open'), ('closed', 'Closed')], default='closed', max_length=10, null=True)),
                ('nitrogen_timer', models.PositiveIntegerField(blank=True, default=24, help_text='Release timer in hours', null=True)),
                ('group_name', models.CharField(blank=True, default='Uncategorized', max_length=100)),
                ('nitrogen', models.FloatField(default=0, validators=percentage())),
                ('phosphorus', models.FloatField(default=0, validators=percentage())),
                ('potassium', models.FloatField(default=0, validators=percentage())),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('last_connected_at', models.DateTimeField(blank=True, null=True)),
                ('updated_at', models.DateTimeField(blank=True, null=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='devices', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='NutrientReading',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('nitrogen', models.FloatField(validators=percentage())),
                ('phosphorus', models.FloatField(validators=percentage())),
                ('potassium', models.FloatField(validators=percentage())),
                ('timestamp', models.DateTimeField(auto_now_add=True)),
                ('device', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='nutrient_readings', to='devices.device')),
            ],
            options={
                'ordering': ['-timestamp'],
            },
        ),
        migrations.CreateModel(
            name='ThresholdSetting',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('nitrogen_min', models.FloatField(default=30, validators=percentage())),
                ('nitrogen_max', models.FloatField(default=80, validators=percentage())),
                ('phosphorus_min', models.FloatField(default=20, validators=percentage())),
                ('phosphorus_max', models.FloatField(default=70, validators=percentage())),
                ('potassium_min', models.FloatField(default=40, validators=percentage())),
                ('potassium_max', models.FloatField(default=90, validators=percentage())),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('device', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='threshold', to='devices.device')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='thresholds', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'constraints': [models.UniqueConstraint(condition=models.Q(('device__isnull', True)), fields=('user',), name='unique_global_threshold_per_user')],
            },
        ),
    ]
