# zipsales/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler
from .services import refresh_stale_zipcodes
from .utils import logger

def refresh_job(database, engine):
    db = database.session()
    try:
        refresh_stale_zipcodes(db, engine)
    finally:
        db.close()

def build_scheduler(database, engine, interval_hours: float) -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    scheduler.add_job(refresh_job, 'interval', hours=interval_hours, args=[database, engine],
                      id="refresh-stale-zipcodes", max_instances=1, coalesce=True)
    logger.info("Stale zipcode refresh scheduled every %s hours", interval_hours)
    return scheduler
