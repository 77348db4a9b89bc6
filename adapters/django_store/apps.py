"""
RBO Django Store — App Configuration
======================================
Persistent key-value rows for record collections and the ledger.
"""

from django.apps import AppConfig


class DjangoStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "adapters.django_store"
    label = "rbo_store"
    verbose_name = "RBO Key-Value Store"
