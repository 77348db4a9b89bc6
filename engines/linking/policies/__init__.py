"""
RBO Cross-Link Resolver — Link Specifications
===============================================
Which owner collections a record kind can link to, in which order,
and which fields hold the owner's id and name.

Owner order is always Customer, then Supplier, then Employee; a kind
only lists the owner types that make sense for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from core.store import keys


class OwnerType(Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"
    EMPLOYEE = "employee"

    @property
    def store_key(self) -> str:
        return _OWNER_STORE_KEYS[self]


_OWNER_STORE_KEYS = {
    OwnerType.CUSTOMER: keys.CUSTOMERS,
    OwnerType.SUPPLIER: keys.SUPPLIERS,
    OwnerType.EMPLOYEE: keys.EMPLOYEES,
}

OWNER_ORDER: Tuple[OwnerType, ...] = (OwnerType.CUSTOMER, OwnerType.SUPPLIER, OwnerType.EMPLOYEE)

# Set alongside the foreign key on kinds that can link to more than one owner type.
OWNER_TYPE_FIELD = "entityType"


@dataclass(frozen=True)
class LinkSpec:
    """
    Fields:
        store_key:           collection holding the records
        owner_fields:        owner type -> foreign key field on the record
        name_fields:         record fields that may hold the owner's name
        candidate_id_fields: record fields that may hold an untyped owner id
    """

    kind: str
    store_key: str
    owner_fields: Tuple[Tuple[OwnerType, str], ...]
    name_fields: Tuple[str, ...]
    candidate_id_fields: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        order = [OWNER_ORDER.index(owner) for owner, _ in self.owner_fields]
        if order != sorted(order):
            raise ValueError(f"{self.kind}: owner_fields must follow Customer, Supplier, Employee order.")

    @property
    def owner_types(self) -> Tuple[OwnerType, ...]:
        return tuple(owner for owner, _ in self.owner_fields)

    def fk_field(self, owner: OwnerType) -> str:
        return dict(self.owner_fields)[owner]

    def current_link(self, record: Mapping[str, Any]) -> Optional[Tuple[OwnerType, str]]:
        """The first owner foreign key already set on record, if any."""
        for owner, field in self.owner_fields:
            value = record.get(field)
            if value not in (None, ""):
                return owner, str(value)
        return None

    def name_of(self, record: Mapping[str, Any]) -> Optional[str]:
        for field in self.name_fields:
            value = record.get(field)
            if isinstance(value, str) and value:
                return value
        return None


LINK_SPECS: Dict[str, LinkSpec] = {
    "check": LinkSpec(
        kind="check",
        store_key=keys.CHECKS,
        owner_fields=(
            (OwnerType.CUSTOMER, "customerId"),
            (OwnerType.SUPPLIER, "supplierId"),
            (OwnerType.EMPLOYEE, "employeeId"),
        ),
        name_fields=("customerName",),
        candidate_id_fields=("entityId",),
    ),
    "installment": LinkSpec(
        kind="installment",
        store_key=keys.INSTALLMENTS,
        owner_fields=((OwnerType.CUSTOMER, "customerId"),),
        name_fields=("customerName",),
        candidate_id_fields=("entityId",),
    ),
    "return": LinkSpec(
        kind="return",
        store_key=keys.RETURNS,
        owner_fields=((OwnerType.CUSTOMER, "customerId"),),
        name_fields=("customerName",),
    ),
    "sales_invoice": LinkSpec(
        kind="sales_invoice",
        store_key=keys.SALES_INVOICES,
        owner_fields=((OwnerType.CUSTOMER, "customerId"),),
        name_fields=("customerName", "customer"),
    ),
    "purchase_invoice": LinkSpec(
        kind="purchase_invoice",
        store_key=keys.PURCHASE_INVOICES,
        owner_fields=((OwnerType.SUPPLIER, "supplierId"),),
        name_fields=("supplierName", "supplier"),
    ),
    "payroll": LinkSpec(
        kind="payroll",
        store_key=keys.PAYROLL_RECORDS,
        owner_fields=((OwnerType.EMPLOYEE, "employeeId"),),
        name_fields=("employeeName",),
    ),
    "user": LinkSpec(
        kind="user",
        store_key=keys.USERS,
        owner_fields=((OwnerType.EMPLOYEE, "employeeId"),),
        name_fields=("name",),
    ),
}


def get_link_spec(kind: Any) -> LinkSpec:
    """Accept a SourceKind or a plain kind name. Raises ValueError when unknown."""
    name = getattr(kind, "value", kind)
    try:
        return LINK_SPECS[name]
    except KeyError:
        raise ValueError(f"No owner links defined for kind '{name}'.") from None
