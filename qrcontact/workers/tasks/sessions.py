from __future__ import annotations

import logging

from qrcontact.db.session import SessionLocal
from qrcontact.models.common import utcnow
from qrcontact.models.otp_session import OtpSession
from qrcontact.services.session_store import sweep_expired
from qrcontact.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="qrcontact.workers.tasks.sessions.sweep_expired_sessions")
def sweep_expired_sessions():
    now = utcnow()
    db = SessionLocal()
    try:
        total = db.query(OtpSession).count()
        deleted = sweep_expired(db, now=now)
        db.commit()
        logger.info("otp_sweep checked=%s deleted=%s", total, deleted)
        return {"checked": int(total), "deleted": int(deleted)}
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
