# invoiceflow/cli.py
from __future__ import annotations

from datetime import timedelta

import click
import sqlalchemy as sa

from .extensions import db
from .models import Client, utcnow_naive
from .services import accounts, clients, invoices, lifecycle
from .services.base import commit_or_rollback

DEMO_EMAIL = "demo@invoiceflow.local"
DEMO_PASSWORD = "demo-password"

DEMO_CLIENTS = [
    {"name": "TechCorp Solutions", "email": "contact@techcorp.com", "phone": "+1 555 123 4567",
     "company": "TechCorp Solutions Inc.", "address": {"city": "San Jose", "state": "CA"}},
    {"name": "Digital Marketing Pro", "email": "hello@digitalmarketing.com", "phone": "+1 555 234 5678",
     "company": "Digital Marketing Pro LLC", "address": {"city": "New York", "state": "NY"}},
    {"name": "StartupXYZ", "email": "founders@startupxyz.com", "phone": "+1 555 345 6789",
     "company": "StartupXYZ Inc.", "address": {"city": "Austin", "state": "TX"}},
]

DEMO_ITEMS = [
    [{"description": "Website redesign", "quantity": 1, "unit_price": 2500}],
    [{"description": "SEO audit", "quantity": 2, "unit_price": 450},
     {"description": "Content writing (hours)", "quantity": 12, "unit_price": 65.5}],
    [{"description": "MVP development sprint", "quantity": 3, "unit_price": 1999.99}],
]


def register_commands(app):
    @app.cli.command("create-db")
    def create_db():
        """Create tables directly (local development without migrations)."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("mark-overdue")
    def mark_overdue():
        """Store 'overdue' on every open invoice past its due date."""
        count = lifecycle.promote_overdue_for_owner(None)
        commit_or_rollback("Mark overdue invoices")
        click.echo(f"{count} invoice(s) marked overdue.")

    @app.cli.command("refresh-client-stats")
    def refresh_client_stats():
        """Recompute the cached financial totals of every client."""
        count = clients.refresh_all_financial_stats()
        click.echo(f"Refreshed {count} client(s).")

    @app.cli.command("seed-demo")
    def seed_demo():
        """Create a premium demo user with sample clients and invoices."""
        user = accounts.find_by_email(DEMO_EMAIL)
        if user is None:
            user = accounts.register_user("Demo User", DEMO_EMAIL, DEMO_PASSWORD)
            click.echo(f"Created demo user {DEMO_EMAIL}")
        else:
            click.echo(f"Demo user {DEMO_EMAIL} already exists")

        # Premium so seeding is never stopped by the monthly quota.
        user.role = "premium"
        user.subscription_status = "active"
        db.session.commit()

        now = utcnow_naive()
        for idx, (client_data, items) in enumerate(zip(DEMO_CLIENTS, DEMO_ITEMS)):
            exists = db.session.execute(
                sa.select(Client.id).where(Client.user_id == user.id, Client.email == client_data["email"])
            ).first()
            if exists:
                continue
            client = clients.create_client(user, client_data)
            invoice = invoices.create_invoice(user, {
                "client_name": client.name,
                "client_email": client.email,
                "items": items,
                "tax_rate": 8.5,
                "due_date": now + timedelta(days=30),
            })
            if idx == 1:
                invoices.send_invoice(user.id, invoice.id)
            elif idx == 2:
                invoices.mark_invoice_paid(user.id, invoice.id)
            clients.refresh_financial_stats(user.id, client.id)
            click.echo(f"Added {client.name} with invoice {invoice.invoice_number}")

    return app
