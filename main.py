from fastapi import FastAPI
from clinic_bot.core.config import settings
from clinic_bot.routes.whatsapp import router as whatsapp_router
import uvicorn
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Clinic WhatsApp Bot")

# Include routers
app.include_router(whatsapp_router)

@app.on_event("startup")
def startup_event():
    from clinic_bot.core.database import init_db
    logger.info("Initializing database tables...")
    init_db()
    logger.info("Database tables created successfully.")

@app.get("/health")
def health_check():
    return {"status": "ok"}

if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.API_HOST, port=settings.API_PORT, reload=True)
