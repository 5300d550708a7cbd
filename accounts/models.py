from django.db import models
from django.contrib.auth.models import AbstractUser, BaseUserManager
from auditlog.registry import auditlog
from auditlog.models import AuditlogHistoryField


class CustomUserManager(BaseUserManager):
    """
    Manager for CustomUser. Handles user and superuser creation using email as the unique identifier.
    """
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("Email is required.")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)

        return self.create_user(email, password, **extra_fields)


class CustomUser(AbstractUser):
    """
    Platform user. Email is the login identifier.

    Clients are hiring parties that own briefs; performers receive proposals
    and may act as the PM of a derived project.
    """
    CLIENT = 'client'
    PERFORMER = 'performer'
    USER_TYPE_CHOICES = (
        (CLIENT, 'Client'),
        (PERFORMER, 'Performer'),
    )

    user_type = models.CharField(max_length=20, choices=USER_TYPE_CHOICES)
    stage_name = models.CharField(max_length=100, blank=True)
    phone_number = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    email = models.EmailField(unique=True, blank=False)
    username = None

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']

    objects = CustomUserManager()

    history = AuditlogHistoryField()

    @property
    def display_name(self):
        return self.stage_name or self.get_full_name() or self.email

    @property
    def is_performer(self):
        return self.user_type == self.PERFORMER

    def __str__(self):
        return self.email


auditlog.register(CustomUser, exclude_fields=['password', 'last_login'])
