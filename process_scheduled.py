"""
Runs one batch of due WhatsApp scheduled messages (reminders, follow-ups).
Meant for a system scheduler, e.g. every 5 minutes from cron:

    */5 * * * * cd /srv/clinic-bot && python process_scheduled.py
"""

import asyncio
import logging
import sys
from clinic_bot.core.database import SessionLocal, init_db
from clinic_bot.services.notification_service import notification_service

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

async def run_batch() -> dict:
    db = SessionLocal()
    try:
        return await notification_service.process_scheduled_messages(db)
    finally:
        db.close()

def main():
    init_db()
    try:
        result = asyncio.run(run_batch())
    except Exception as e:
        logger.error(f"❌ Scheduled batch failed: {e}", exc_info=True)
        sys.exit(1)

    print(f"📬 Processed: {result['processed']}  Errors: {result['errors']}  Total: {result['total']}")

if __name__ == "__main__":
    main()
