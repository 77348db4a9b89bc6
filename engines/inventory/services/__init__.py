"""
RBO Inventory Engine — Application Service
=============================================
Store-backed Inventory Collaborator. Stock movements are recorded in
`inventory_movements` and applied to the product's stock in `products`.

A movement in (positive quantity) adds stock; a movement out subtracts
it, floored at zero. Movements tagged with a reference can be removed
again, which reverts their effect on stock (also floored at zero).
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from core.ledger.errors import UnknownProductError
from core.primitives.source import record_id
from core.store import (
    INVENTORY_MOVEMENTS,
    PRODUCTS,
    KeyValueStore,
    StoreUnavailableError,
    read_collection,
)
from core.time import Clock, to_timestamp_string
from engines.inventory.policies import (
    apply_stock_delta,
    is_low_stock,
    is_out_of_stock,
    stock_of,
)

logger = logging.getLogger("rbo.inventory")


# ══════════════════════════════════════════════════════════════
# PORT
# ══════════════════════════════════════════════════════════════

class InventoryPort(Protocol):
    """What the posting, reversal and alert engines need from inventory."""

    def add_stock_movement(
        self,
        product_id: str,
        quantity: float,
        value: float,
        reference_id: Optional[str],
        reference_type: str = "return",
        product_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        ...  # pragma: no cover

    def remove_movements(self, reference_id: str, reference_type: str = "return") -> List[Dict[str, Any]]:
        ...  # pragma: no cover

    def movements_for(self, reference_id: str, reference_type: str = "return") -> List[Dict[str, Any]]:
        ...  # pragma: no cover

    def get_products(self) -> List[Dict[str, Any]]:
        ...  # pragma: no cover

    def get_low_stock_products(self) -> List[Dict[str, Any]]:
        ...  # pragma: no cover

    def get_out_of_stock_products(self) -> List[Dict[str, Any]]:
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# STORE-BACKED SERVICE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StockChange:
    product_id: str
    before: float
    after: float


class InventoryService:
    def __init__(self, store: KeyValueStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock
        self._lock = threading.Lock()

    # ── movements ─────────────────────────────────────────────

    def add_stock_movement(
        self,
        product_id: str,
        quantity: float,
        value: float,
        reference_id: Optional[str],
        reference_type: str = "return",
        product_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Record a movement and apply it to stock.

        Raises UnknownProductError when product_id is not in the catalog;
        nothing is written in that case.
        Stock and the movement log change together: when the movement
        cannot be written the stock change is undone.
        """
        with self._lock:
            products = read_collection(self._store, PRODUCTS)
            original = copy.deepcopy(products)
            change = self._apply(products, product_id, quantity)
            if change is None:
                raise UnknownProductError(product_id, reference_id)
            movement = {
                "id": f"MOV_{uuid.uuid4().hex[:12]}",
                "productId": product_id,
                "productName": product_name,
                "type": "in" if quantity >= 0 else "out",
                "quantity": abs(quantity),
                "value": value,
                "referenceId": reference_id,
                "referenceType": reference_type,
                "date": to_timestamp_string(self._clock.now_utc()),
            }
            movements = read_collection(self._store, INVENTORY_MOVEMENTS)
            movements.append(movement)
            self._store.set(PRODUCTS, products)
            try:
                self._store.set(INVENTORY_MOVEMENTS, movements)
            except StoreUnavailableError:
                self._store.set(PRODUCTS, original)
                raise
            logger.info(
                f"Stock {product_id}: {change.before} -> {change.after} ({reference_type}:{reference_id})"
            )
            return movement

    def remove_movements(self, reference_id: str, reference_type: str = "return") -> List[Dict[str, Any]]:
        """
        Remove the movements recorded for a reference and revert their
        stock effect. Calling again finds nothing and changes nothing.
        """
        with self._lock:
            movements = read_collection(self._store, INVENTORY_MOVEMENTS)
            matched = [
                m for m in movements
                if m.get("referenceId") == reference_id and m.get("referenceType") == reference_type
            ]
            if not matched:
                return []
            products = read_collection(self._store, PRODUCTS)
            for movement in matched:
                quantity = movement.get("quantity") or 0
                signed = quantity if movement.get("type") == "in" else -quantity
                change = self._apply(products, str(movement.get("productId")), -signed)
                if change is None:
                    logger.warning(
                        f"Movement {movement.get('id')} names missing product "
                        f"{movement.get('productId')}; removed without stock change."
                    )
            remaining = [m for m in movements if m not in matched]
            self._store.set(PRODUCTS, products)
            self._store.set(INVENTORY_MOVEMENTS, remaining)
            return matched

    def movements_for(self, reference_id: str, reference_type: str = "return") -> List[Dict[str, Any]]:
        return [
            m for m in read_collection(self._store, INVENTORY_MOVEMENTS)
            if m.get("referenceId") == reference_id and m.get("referenceType") == reference_type
        ]

    @staticmethod
    def _apply(products: List[Dict[str, Any]], product_id: str, delta: float) -> Optional[StockChange]:
        for product in products:
            if record_id(product) == product_id:
                before = stock_of(product)
                product["stock"] = apply_stock_delta(before, delta)
                return StockChange(product_id=product_id, before=before, after=product["stock"])
        return None

    # ── queries ───────────────────────────────────────────────

    def get_products(self) -> List[Dict[str, Any]]:
        return read_collection(self._store, PRODUCTS)

    def get_low_stock_products(self) -> List[Dict[str, Any]]:
        return [p for p in self.get_products() if is_low_stock(p)]

    def get_out_of_stock_products(self) -> List[Dict[str, Any]]:
        return [p for p in self.get_products() if is_out_of_stock(p)]
