"""
RBO Core Store — Collection Keys
==================================
Every collection is a flat list of records persisted under one of
these keys. The names are shared with the front-end layer and must
not change.
"""

# Source records
SALES_INVOICES = "sales_invoices"
PURCHASE_INVOICES = "purchase_invoices"
EXPENSES = "expenses"
PAYROLL_RECORDS = "payroll_records"
RETURNS = "returns"
CHECKS = "checks"
INSTALLMENTS = "installments"

# Owners and catalog
CUSTOMERS = "customers"
SUPPLIERS = "suppliers"
EMPLOYEES = "employees"
USERS = "users"
PRODUCTS = "products"
INVENTORY_MOVEMENTS = "inventory_movements"

# Ledger
CASH_FLOW_TRANSACTIONS = "cash_flow_transactions"
LEDGER_REVERSALS = "ledger_reversals"
ACCOUNT_BALANCE = "account_balance"
