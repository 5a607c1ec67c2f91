# home/models.py
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models
from django.utils import timezone
from django.core.validators import RegexValidator


phone_regex = RegexValidator(
    regex=r'^\+?1?\d{9,15}$',
    message="Phone number must be entered in the format: '+999999999'. Up to 15 digits allowed."
)


# ========================================
# STORE (TENANT) MODEL
# ========================================

class Store(models.Model):
    """
    A store / business unit. Every sale, device and audit entry belongs to
    exactly one store, and most users only ever see their own store's data.
    """

    name = models.CharField(max_length=200, verbose_name='Store Name')
    code = models.CharField(max_length=50, unique=True, verbose_name='Store Code')
    phone = models.CharField(
        validators=[phone_regex],
        max_length=17,
        blank=True,
        null=True,
        verbose_name='Phone Number'
    )
    address = models.TextField(blank=True, null=True, verbose_name='Full Address')
    is_active = models.BooleanField(default=True, verbose_name='Active Status')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'stores'
        ordering = ['name']
        verbose_name = 'Store'
        verbose_name_plural = 'Stores'
        indexes = [
            models.Index(fields=['code'], name='stores_code_idx'),
            models.Index(fields=['is_active'], name='stores_is_active_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.code})"


# ========================================
# USER MODEL
# ========================================

class CustomUserManager(BaseUserManager):
    """
    Custom user manager for the phone financing platform.
    Handles user creation with email as the unique identifier.
    """

    def create_user(self, email, password=None, **extra_fields):
        """
        Create and save a regular user with the given email and password.
        """
        if not email:
            raise ValueError('Users must have an email address')

        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """
        Create and save a superuser with the given email and password.
        """
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', CustomUser.ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True')

        return self.create_user(email, password, **extra_fields)

    def get_by_natural_key(self, email):
        return self.get(email=email)


class CustomUser(AbstractBaseUser, PermissionsMixin):
    """
    Platform user. Uses email as the login field and carries a role that
    drives what the user may see and do.
    """

    # User Roles
    SALESPERSON = 'salesperson'
    COLLECTOR = 'collector'
    STORE_MANAGER = 'store_manager'
    GLOBAL_MANAGER = 'global_manager'
    FINANCIAL_MANAGER = 'financial_manager'
    SALES_ADVISOR = 'sales_advisor'
    ADMIN = 'admin'

    ROLE_CHOICES = [
        (SALESPERSON, 'Salesperson'),
        (COLLECTOR, 'Collector'),
        (STORE_MANAGER, 'Store Manager'),
        (GLOBAL_MANAGER, 'Global Manager'),
        (FINANCIAL_MANAGER, 'Financial Manager'),
        (SALES_ADVISOR, 'Sales Advisor'),
        (ADMIN, 'Administrator'),
    ]

    email = models.EmailField(
        verbose_name='email address',
        max_length=255,
        unique=True,
        db_index=True,
    )
    username = models.CharField(
        max_length=150,
        unique=True,
        blank=True,
        null=True,
        help_text='Optional username. Email will be used for login if not provided.'
    )

    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)
    phone = models.CharField(
        validators=[phone_regex],
        max_length=17,
        blank=True,
        null=True,
        help_text='Contact phone number'
    )

    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default=SALESPERSON,
        help_text='User role in the system'
    )
    store = models.ForeignKey(
        Store,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='employees',
        help_text='Store this user works for. Empty for cross-store roles.'
    )

    is_active = models.BooleanField(
        default=True,
        help_text='Designates whether this user should be treated as active.'
    )
    is_staff = models.BooleanField(
        default=False,
        help_text='Designates whether the user can log into admin site.'
    )

    date_joined = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CustomUserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']

    class Meta:
        db_table = 'custom_users'
        verbose_name = 'user'
        verbose_name_plural = 'users'
        ordering = ['-date_joined']
        indexes = [
            models.Index(fields=['role'], name='users_role_idx'),
            models.Index(fields=['is_active'], name='users_is_active_idx'),
        ]

    def __str__(self):
        return f"{self.get_full_name()} ({self.email})"

    def get_full_name(self):
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.email

    def get_short_name(self):
        return self.first_name or self.email.split('@')[0]

    # Role Check Methods
    def is_admin_user(self):
        """Check if user is an administrator."""
        return self.role == self.ADMIN or self.is_superuser

    def can_manage_store(self):
        """
        Check if user can see store-wide device statistics.
        """
        return self.is_admin_user() or self.role in [
            self.STORE_MANAGER,
            self.GLOBAL_MANAGER,
            self.FINANCIAL_MANAGER,
        ]

    def can_run_lockout(self):
        """
        Check if user can run lockout passes and manual lock/unlock actions.
        Collectors chase overdue accounts, so they may lock and unlock too.
        """
        return self.can_manage_store() or self.role == self.COLLECTOR

    def can_view_all_stores(self):
        """
        Check if user can view all stores data.
        """
        return self.is_admin_user() or self.role in [
            self.GLOBAL_MANAGER,
            self.FINANCIAL_MANAGER,
        ]

    def save(self, *args, **kwargs):
        """
        Override save to auto-generate username from email if not provided.
        """
        if not self.username:
            self.username = self.email.split('@')[0]

        if self.role in [self.ADMIN, self.FINANCIAL_MANAGER, self.GLOBAL_MANAGER]:
            self.is_staff = True

        super().save(*args, **kwargs)
