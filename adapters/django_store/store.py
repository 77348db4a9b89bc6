"""
RBO Django Store — KeyValueStore Implementation
=================================================
get/set over KeyValueEntry rows. Every database failure surfaces as
StoreUnavailableError so engines can end the pass and report it.
"""

from __future__ import annotations

import logging
from typing import Any, List

from django.db import DatabaseError, transaction

from adapters.django_store.models import KeyValueEntry
from core.store import StoreUnavailableError

logger = logging.getLogger("rbo.store")


class DjangoKeyValueStore:
    def get(self, key: str, default: Any = None) -> Any:
        try:
            row = KeyValueEntry.objects.filter(key=key).only("value").first()
        except DatabaseError as exc:
            logger.error(f"Store read failed for '{key}': {exc}")
            raise StoreUnavailableError(key, exc) from exc
        if row is None:
            return default
        return row.value

    def set(self, key: str, value: Any) -> None:
        try:
            with transaction.atomic():
                KeyValueEntry.objects.update_or_create(key=key, defaults={"value": value})
        except DatabaseError as exc:
            logger.error(f"Store write failed for '{key}': {exc}")
            raise StoreUnavailableError(key, exc) from exc

    def keys(self) -> List[str]:
        try:
            return list(KeyValueEntry.objects.order_by("key").values_list("key", flat=True))
        except DatabaseError as exc:
            raise StoreUnavailableError("*", exc) from exc
