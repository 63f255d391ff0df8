"""
API Blueprints Package

All HTTP route handlers for the application, organized by domain.
Each module defines a Flask Blueprint registered in app/__init__.py.

BLUEPRINT REFERENCE:
====================

Pipeline CRM:
- auth_routes.py    : Pipeline login/logout (/api/auth/*)
- deals.py          : Deals, kanban, today worklist, analytics, AI summaries
- email.py          : AI email polish and generation
- notifications.py  : Reminder notifications
- scheduler.py      : Background job status and manual runs

Auto Shop:
- auto_auth.py          : Shop login, invitations, registration
- auto_admin.py         : Platform shop creation (admin key or master admin)
- auto_shop.py          : Settings, integrations, staff, bays, appointments,
                          canned services, dashboard
- auto_customers.py     : Customers, vehicles, VIN decode, communication log
- auto_repair_orders.py : Repair orders, line items, payments, PDFs
- auto_dvi.py           : Digital vehicle inspections
- auto_public.py        : Customer estimate approval, pay and inspection links
- auto_reports.py       : Profitability, sales tax, productivity, conversion
- tech_sessions.py      : Technician clock in/out
- quickbooks.py         : QuickBooks connection, sync log, mappings

Health endpoints are registered by health_checks.py at the project root.
"""

# All blueprints are imported and registered in app/__init__.py
# This file serves as documentation only

__all__ = []
