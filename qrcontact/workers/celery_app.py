from celery import Celery
from qrcontact.core.config import settings

celery_app = Celery("qrcontact", broker=settings.REDIS_URL, backend=settings.REDIS_URL, include=["qrcontact.workers.tasks.sessions"])

celery_app.conf.beat_schedule = {
    "sweep_expired_sessions": {
        "task": "qrcontact.workers.tasks.sessions.sweep_expired_sessions",
        "schedule": float(max(settings.OTP_SWEEP_INTERVAL_SECONDS, 60)),
    },
}
celery_app.conf.timezone = "UTC"
