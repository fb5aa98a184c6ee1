"""
CORE App - Custom User Model for Loader Dispatch

Handles: Users (Dispatchers, Loaders, Admins) and their notification settings
"""

import uuid
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.core.validators import RegexValidator
from django.db import models


class UserRole(models.TextChoices):
    """User role enumeration."""
    ADMIN = 'ADMIN', 'Administrator'
    DISPATCHER = 'DISPATCHER', 'Dispatcher'
    LOADER = 'LOADER', 'Loader'


# Roles a user may switch between from the mobile app
SWITCHABLE_ROLES = (UserRole.DISPATCHER, UserRole.LOADER)


class UserManager(BaseUserManager):
    """Custom user manager for phone-based authentication."""

    def create_user(self, phone_number, password=None, **extra_fields):
        if not phone_number:
            raise ValueError('Phone number is required')

        user = self.model(phone_number=phone_number, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, phone_number, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', UserRole.ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(phone_number, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using phone number as primary identifier.

    Key Business Logic:
    - role decides which order operations are allowed
      (DISPATCHER creates/cancels, LOADER claims/completes)
    - dispatchers and loaders may switch roles; past orders are unaffected
    - notification toggles mirror the app's settings screen and are
      honored by the order notification hook
    """

    phone_regex = RegexValidator(
        regex=r'^\+[1-9][0-9]{6,14}$',
        message="Format: +<country code><number>, e.g. +79991234567"
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    phone_number = models.CharField(
        max_length=16,
        unique=True,
        validators=[phone_regex],
        verbose_name="Phone number"
    )

    # Profile
    full_name = models.CharField(max_length=150, blank=True, verbose_name="Full name")
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.LOADER,
        verbose_name="Role"
    )

    # Settings screen
    notifications_enabled = models.BooleanField(default=True, verbose_name="Notifications")
    sound_enabled = models.BooleanField(default=True, verbose_name="Sound")
    vibration_enabled = models.BooleanField(default=True, verbose_name="Vibration")

    # Django Auth Fields
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    date_joined = models.DateTimeField(auto_now_add=True)

    objects = UserManager()

    USERNAME_FIELD = 'phone_number'
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        ordering = ['-date_joined']

    def __str__(self):
        return f"{self.full_name or self.phone_number} ({self.role})"

    @property
    def is_dispatcher(self) -> bool:
        return self.role == UserRole.DISPATCHER

    @property
    def is_loader(self) -> bool:
        return self.role == UserRole.LOADER

    @property
    def notification_group(self) -> str:
        """Channel group receiving this user's personal order events."""
        return f'actor_{self.pk}'

    def switch_role(self) -> str:
        """
        Toggle between DISPATCHER and LOADER.

        Raises:
            ValueError: for roles that cannot be switched (ADMIN)
        """
        if self.role not in SWITCHABLE_ROLES:
            raise ValueError(f"Role {self.role} cannot be switched")

        self.role = UserRole.LOADER if self.is_dispatcher else UserRole.DISPATCHER
        self.save(update_fields=['role'])
        return self.role
