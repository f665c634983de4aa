import django.core.validators
import django.db.models.deletion
import emergencies.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('donors', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='EmergencyRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('abo_type', models.CharField(choices=[('A', 'A'), ('B', 'B'), ('AB', 'AB'), ('O', 'O')], max_length=2)),
                ('rh', models.CharField(choices=[('+', 'Positive'), ('-', 'Negative')], max_length=1)),
                ('urgency', models.CharField(choices=[('LOW', 'Low'), ('MEDIUM', 'Medium'), ('HIGH', 'High'), ('CRITICAL', 'Critical - Life Threatening')], default='MEDIUM', max_length=10)),
                ('units_needed', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('latitude', models.FloatField(validators=[django.core.validators.MinValueValidator(-90), django.core.validators.MaxValueValidator(90)])),
                ('longitude', models.FloatField(validators=[django.core.validators.MinValueValidator(-180), django.core.validators.MaxValueValidator(180)])),
                ('radius_km', models.FloatField(default=emergencies.models.default_radius, validators=[django.core.validators.MinValueValidator(0)])),
                ('patient_name', models.CharField(blank=True, max_length=200)),
                ('patient_age', models.PositiveIntegerField(blank=True, null=True)),
                ('hospital', models.CharField(blank=True, max_length=200)),
                ('contact', models.CharField(blank=True, max_length=50)),
                ('status', models.CharField(choices=[('OPEN', 'Open'), ('MATCHED', 'Matched'), ('FULFILLED', 'Fulfilled'), ('CANCELED', 'Canceled'), ('EXPIRED', 'Expired')], db_index=True, default='OPEN', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('expires_at', models.DateTimeField(db_index=True, default=emergencies.models.default_expiry)),
                ('matched_at', models.DateTimeField(blank=True, null=True)),
                ('closed_at', models.DateTimeField(blank=True, null=True)),
                ('requester', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='emergency_requests', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Emergency Request',
                'verbose_name_plural': 'Emergency Requests',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['status', 'expires_at'], name='request_status_expiry_idx')],
            },
        ),
        migrations.CreateModel(
            name='RequestMatch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('distance_km', models.FloatField(blank=True, null=True)),
                ('score', models.FloatField(blank=True, null=True)),
                ('rank', models.PositiveIntegerField(blank=True, null=True)),
                ('status', models.CharField(choices=[('NOTIFIED', 'Notified'), ('ACCEPTED', 'Accepted'), ('DECLINED', 'Declined'), ('EN_ROUTE', 'En Route'), ('ARRIVED', 'Arrived')], default='NOTIFIED', max_length=10)),
                ('notified_at', models.DateTimeField(blank=True, null=True)),
                ('responded_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('donor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='matches', to='donors.donorprofile')),
                ('emergency_request', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='matches', to='emergencies.emergencyrequest')),
            ],
            options={
                'ordering': ['rank', 'created_at'],
                'indexes': [
                    models.Index(fields=['emergency_request', 'status'], name='match_request_status_idx'),
                    models.Index(fields=['donor', 'status'], name='match_donor_status_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('emergency_request', 'donor'), name='unique_match_per_request_donor'),
                    models.UniqueConstraint(condition=models.Q(('status__in', ['ACCEPTED', 'EN_ROUTE', 'ARRIVED'])), fields=('emergency_request',), name='single_committed_match_per_request'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RequestShare',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('platform', models.CharField(blank=True, max_length=50)),
                ('shared_at', models.DateTimeField(auto_now_add=True)),
                ('emergency_request', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='shares', to='emergencies.emergencyrequest')),
                ('shared_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-shared_at'],
            },
        ),
    ]
