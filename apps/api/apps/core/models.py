"""
Core models: clinic.

A clinic is a place where a practitioner sees patients. Every clinic belongs
to exactly one practitioner account.
"""
from django.conf import settings
from django.db import models


class Clinic(models.Model):
    """
    Clinic owned by a practitioner account.

    Patients reference a clinic optionally; deleting a clinic detaches its
    patients instead of removing them.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='clinics',
    )
    name = models.CharField(max_length=255)
    address = models.CharField(max_length=500, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'clinic'
        verbose_name = 'Clinic'
        verbose_name_plural = 'Clinics'
        ordering = ['name']
        indexes = [
            models.Index(fields=['user', 'name'], name='idx_clinic_user_name'),
        ]

    def __str__(self):
        return self.name
