import logging
import os
import sys
import traceback

import uvicorn

# Add the src directory to Python path
current_dir = os.path.dirname(os.path.abspath(__file__))
src_path = os.path.join(current_dir, "src")
sys.path.insert(0, src_path)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


if __name__ == "__main__":
    try:
        from clinicrecords.core.config import get_settings

        settings = get_settings()
        port = int(os.environ.get("PORT", settings.port))
        host = os.environ.get("HOST", settings.host)

        logger.info("Clinic Records Core startup")
        logger.info("Python version: %s", sys.version.split()[0])
        logger.info("App environment: %s", settings.app_env)
        logger.info("Store backend: %s", settings.store.backend)
        logger.info("MONGO_URI: %s", "set" if settings.database.uri else "not set")
        logger.info("Starting uvicorn server on %s:%s", host, port)

        uvicorn.run(
            "clinicrecords.app:app",
            host=host,
            port=port,
            workers=1,
            log_level=settings.logging.level.lower(),
            access_log=True,
            timeout_keep_alive=75,
            timeout_graceful_shutdown=30,
        )
    except KeyboardInterrupt:
        logger.info("Shutting down due to keyboard interrupt")
        sys.exit(0)
    except Exception as e:
        logger.error("CRITICAL: Failed to start application: %s (%s)", e, type(e).__name__)
        logger.error(traceback.format_exc())
        sys.exit(1)
