#!/usr/bin/env python3
"""
ToolCrib - Tool & Consumable Tracking Service
==============================================

Single-command run:  python main.py

See config.py for all environment-variable tunables.
"""

import logging

from flask import Flask

import config
from db import init_db, get_session
from api import api_bp
from api.actors import SessionActorResolver
from services import ConsumableLedger, IdentityIssuer, StaffService

logger = logging.getLogger(__name__)


def create_app(db_url: str | None = None) -> Flask:
    """Flask application factory."""

    app = Flask(__name__)
    app.secret_key = config.SECRET

    # ── Initialise database ─────────────────────────────────────────
    init_db(db_url or config.DB_URL)
    logger.info("Database: %s", db_url or config.DB_URL)

    # ── Collaborators shared by the route modules ───────────────────
    app.extensions["toolcrib"] = {
        "issuer": IdentityIssuer(),
        "ledger": ConsumableLedger(get_session),
        "actors": SessionActorResolver(),
    }

    # ── Register blueprints ─────────────────────────────────────────
    app.register_blueprint(api_bp)

    return app


def _bootstrap_admin():
    """Create the first admin from TOOLCRIB_ADMIN_* when none exists."""
    if not config.ADMIN_EMAIL:
        print("\n  TOOLCRIB_ADMIN_EMAIL not set - skipping admin bootstrap.")
        return

    session = get_session()
    try:
        admin = StaffService.ensure_admin(session, config.ADMIN_EMAIL,
                                          config.ADMIN_NAME, config.ADMIN_JOB_CODE)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if admin is None:
        print("\n  Admin account present.")
    else:
        print(f"\n  Admin ready: {admin.full_name} <{admin.email}> "
              f"(job code {admin.job_code})")


def main():
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    print("=" * 56)
    print("  ToolCrib - Tool & Consumable Tracking")
    print("=" * 56)

    app = create_app()
    print(f"  Database: {config.DB_URL}")
    _bootstrap_admin()

    print(f"\n  http://{config.HOST}:{config.PORT}/api/v1/health")
    print("=" * 56)

    app.run(host=config.HOST, port=config.PORT, debug=config.DEBUG)


if __name__ == "__main__":
    main()
