"""
=============================================================================
SCHEDULER.PY — Liquidación de recompensas en segundo plano
=============================================================================
Cuando un profesor aprueba una misión, la recompensa se paga la próxima vez
que el alumno abre sus misiones. Este barrido la paga de todos modos cada
pocos minutos, para que el progreso que ven profesores y alumnos se ponga
al día aunque el alumno no entre.

Usa APScheduler con un IntervalTrigger, en la zona horaria del colegio.
"""

import logging
import os

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from database import SessionLocal
from missions import settle_all_completed
from routines import APP_TIMEZONE

logger = logging.getLogger("growth.scheduler")

SETTLEMENT_INTERVAL_MINUTES = int(os.getenv("SETTLEMENT_INTERVAL_MINUTES", "5"))

scheduler: AsyncIOScheduler = None


def settlement_sweep() -> int:
    """Liquida todas las misiones completadas; devuelve cuántas se pagaron"""
    db = SessionLocal()
    try:
        settled = settle_all_completed(db)
        if settled:
            logger.info(f"🎁 Barrido: {settled} misiones liquidadas")
        return settled
    except Exception as e:
        logger.error(f"❌ Error en el barrido de liquidación: {e}")
        return 0
    finally:
        db.close()


def create_scheduler(interval_minutes: int = None) -> AsyncIOScheduler:
    global scheduler

    minutes = SETTLEMENT_INTERVAL_MINUTES if interval_minutes is None else interval_minutes
    if minutes < 1:
        raise ValueError(f"Settlement interval must be at least 1 minute, got {minutes}")

    timezone = pytz.timezone(APP_TIMEZONE)
    scheduler = AsyncIOScheduler(timezone=timezone)
    scheduler.add_job(
        settlement_sweep,
        IntervalTrigger(minutes=minutes, timezone=timezone),
        id="settlement_sweep",
        name="Liquidar misiones completadas",
        replace_existing=True
    )

    logger.info(f"⏰ Scheduler configurado: liquidación cada {minutes} min")
    return scheduler


def start_scheduler():
    if scheduler and not scheduler.running:
        scheduler.start()
        logger.info("⏰ Scheduler arrancado")


def stop_scheduler():
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("⏰ Scheduler detenido")
