import logging

import uvicorn
from app.config import settings

logger = logging.getLogger("volunteersync")

if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    logger.info(
        "starting VolunteerSync %s on %s:%s with %s worker(s)",
        settings.APP_VERSION,
        settings.HOST,
        settings.PORT,
        settings.WORKERS,
    )
    uvicorn.run(
        "volunteersync:application",
        host=settings.HOST,
        port=settings.PORT,
        workers=settings.WORKERS,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
