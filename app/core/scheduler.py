# ===================================
# Fichier: app/core/scheduler.py
# ===================================
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.executors.pool import ThreadPoolExecutor
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

scheduler = None

RECOMPUTE_JOB_ID = "recompute_open_signalements"


def init_scheduler():
    """Initialiser APScheduler"""
    global scheduler

    if not settings.scheduler_enabled:
        return

    if settings.scheduler_jobstore_url:
        jobstores = {'default': SQLAlchemyJobStore(url=settings.scheduler_jobstore_url)}
    else:
        jobstores = {'default': MemoryJobStore()}

    executors = {
        'default': ThreadPoolExecutor(1),
    }

    # Un seul recalcul à la fois, les exécutions manquées sont fusionnées
    job_defaults = {
        'coalesce': True,
        'max_instances': 1
    }

    scheduler = BackgroundScheduler(
        jobstores=jobstores,
        executors=executors,
        job_defaults=job_defaults,
        timezone='UTC'
    )

    add_periodic_jobs()

    scheduler.start()
    logger.info("APScheduler démarré")


def add_periodic_jobs():
    """Ajouter les tâches périodiques"""
    # Recalcul quotidien : le nombre de mois restants change avec la date
    scheduler.add_job(
        func=recompute_open_signalements_job,
        trigger='cron',
        hour=settings.recompute_hour,
        minute=settings.recompute_minute,
        id=RECOMPUTE_JOB_ID,
        replace_existing=True
    )


def recompute_open_signalements_job():
    """Job de recalcul des urgences des signalements ouverts"""
    try:
        from app.core.database import SessionLocal
        from app.services.signalement_service import SignalementService

        with SessionLocal() as db:
            report = SignalementService(db).recompute_open()
            logger.info("Recalcul planifié terminé", extra={
                "processed": report.processed,
                "with_rotation": report.with_rotation,
                "auto_verified": report.auto_verified,
                "failed": report.failed,
            })
    except Exception:
        logger.exception("Erreur recalcul planifié")


def shutdown_scheduler():
    """Arrêter le scheduler"""
    global scheduler
    if scheduler:
        scheduler.shutdown()
        scheduler = None
        logger.info("APScheduler arrêté")
