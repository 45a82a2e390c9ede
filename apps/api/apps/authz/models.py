"""
Authz models: auth_user, psychologist
"""
from django.db import models
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin


# ============================================================================
# Enums
# ============================================================================

class RoleChoices(models.TextChoices):
    """Fixed role names. A user holds exactly one role."""
    ADMIN = 'admin', 'Admin'
    PSYCHOLOGIST = 'psychologist', 'Psychologist'
    RECEPTIONIST = 'receptionist', 'Receptionist'


# ============================================================================
# User Management
# ============================================================================

class UserManager(BaseUserManager):
    """Custom user manager for email-based authentication."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('Email is required')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', RoleChoices.ADMIN)
        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom user model for authentication.

    Fields:
    - id: integer PK
    - email: unique, used as login
    - full_name
    - role: admin|psychologist|receptionist
    - is_active, is_staff
    - created_at, updated_at
    """
    email = models.EmailField(unique=True, max_length=255)
    full_name = models.CharField(max_length=255, blank=True)
    role = models.CharField(
        max_length=20,
        choices=RoleChoices.choices,
        default=RoleChoices.PSYCHOLOGIST
    )
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)  # Required for admin access
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        db_table = 'auth_user'
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        indexes = [
            models.Index(fields=['role'], name='idx_user_role'),
            models.Index(fields=['is_active'], name='idx_user_active'),
        ]

    def __str__(self):
        return self.email

    @property
    def is_admin(self):
        return self.role == RoleChoices.ADMIN


class Psychologist(models.Model):
    """
    Clinician profile linked to a user.

    The profile id (not the user id) is what Patient.owner_psychologist
    points to.
    """
    user = models.OneToOneField(
        User,
        on_delete=models.PROTECT,
        related_name='psychologist'
    )
    specialization = models.CharField(max_length=255, blank=True, null=True)
    bio = models.TextField(blank=True, null=True)
    hourly_rate = models.DecimalField(max_digits=10, decimal_places=2)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'psychologist'
        verbose_name = 'Psychologist'
        verbose_name_plural = 'Psychologists'
        indexes = [
            models.Index(fields=['is_active'], name='idx_psychologist_active'),
        ]

    def __str__(self):
        return self.user.full_name or self.user.email


def get_psychologist_for_user(user_id):
    """Return the psychologist profile of a user, or None."""
    return Psychologist.objects.filter(user_id=user_id).first()
