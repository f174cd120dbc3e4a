# Initial migration for clinical app: Patient, Appointment

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Patient',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('gender', models.CharField(choices=[('male', 'Male'), ('female', 'Female')], max_length=10)),
                ('health_plan', models.CharField(blank=True, default='', max_length=255)),
                ('category', models.CharField(choices=[('adult', 'Adult'), ('child', 'Child')], default='adult', max_length=10)),
                ('session_value', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('appointment_days', models.JSONField(default=list, help_text='Weekdays the patient is seen on (0=Sunday..6=Saturday)')),
                ('appointment_time', models.CharField(blank=True, default='', help_text='Fallback HH:MM time', max_length=5, validators=[django.core.validators.RegexValidator(message='Time must be in 24h HH:MM format.', regex='^([01]\\d|2[0-3]):[0-5]\\d$')])),
                ('appointment_times', models.JSONField(blank=True, default=dict, help_text='Per-weekday HH:MM overrides keyed by weekday string')),
                ('profile_pic', models.CharField(blank=True, default='', max_length=500)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('clinic', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='patients', to='core.clinic')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='patients', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Patient',
                'verbose_name_plural': 'Patients',
                'db_table': 'patient',
                'ordering': ['name'],
                'indexes': [
                    models.Index(fields=['user', 'is_active'], name='idx_patient_user_active'),
                    models.Index(fields=['name'], name='idx_patient_name'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Appointment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField()),
                ('time', models.CharField(max_length=5, validators=[django.core.validators.RegexValidator(message='Time must be in 24h HH:MM format.', regex='^([01]\\d|2[0-3]):[0-5]\\d$')])),
                ('status', models.CharField(choices=[('no_status', 'No Status'), ('completed', 'Completed'), ('no_show', 'No Show'), ('canceled', 'Canceled')], default='no_status', max_length=20)),
                ('observation', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='appointments', to='clinical.patient')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='appointments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Appointment',
                'verbose_name_plural': 'Appointments',
                'db_table': 'appointment',
                'ordering': ['date', 'time'],
                'indexes': [
                    models.Index(fields=['user', 'date'], name='idx_appointment_user_date'),
                    models.Index(fields=['status'], name='idx_appointment_status'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('patient', 'date'), name='uniq_appointment_patient_date'),
                ],
            },
        ),
    ]
