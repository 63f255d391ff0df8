"""
Pipeline & Auto Shop API

Two products served from one Flask app:
- Pipeline CRM: deals on a stage board, follow-ups, analytics, AI summaries
  and email drafting (app/api/deals.py, app/api/email.py)
- Auto Shop: repair orders with dual cash/card pricing, inspections,
  customer estimate approval, payments, reports, tech clock sessions and
  QuickBooks sync (app/api/auto_*.py)

Structure:
- app_init.py: application factory (config, logging, security, database,
  AI service, blueprints, scheduler)
- app/api/: Flask Blueprints
- services/: business logic
- database/: SQLAlchemy models, session management, seeding
"""
import os

from app_init import create_app

app = create_app()


if __name__ == '__main__':
    # Schema changes in production go through Alembic: alembic upgrade head
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=app.debug)
