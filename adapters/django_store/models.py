"""
RBO Django Store — Key-Value Row
==================================
One row per store key. The value is the full JSON document under that
key (a record collection, the ledger, the reversal journal).

This file contains NO business logic.
"""

from django.db import models


class KeyValueEntry(models.Model):
    key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Store key, e.g. sales_invoices or cash_flow_transactions.",
    )
    value = models.JSONField(default=list)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "rbo_key_value_store"
        ordering = ["key"]

    def __str__(self):
        return self.key
