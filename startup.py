import logging
import os
import sys
import traceback

import uvicorn

# Configure logging to stdout
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)

# Add the src directory to Python path
current_dir = os.path.dirname(os.path.abspath(__file__))
src_path = os.path.join(current_dir, 'src')
sys.path.insert(0, src_path)

sep = "=" * 60
logger.info(sep)
logger.info("Teleconsult Backend Startup")
logger.info(sep)
logger.info(f"Python version: {sys.version.split()[0]}")
logger.info(f"Source path: {src_path}")

# Log critical environment variables (without exposing secrets)
logger.info("Environment Configuration:")
logger.info(f"  PORT: {os.environ.get('PORT', '8000')}")
logger.info(f"  APP_ENV: {os.environ.get('APP_ENV', 'not set')}")
logger.info(f"  DATABASE_BACKEND: {os.environ.get('DATABASE_BACKEND', 'memory')}")
logger.info(f"  DATABASE_URI: {'set' if os.environ.get('DATABASE_URI') else 'not set'}")
logger.info(f"  NOTIFY_BACKEND: {os.environ.get('NOTIFY_BACKEND', 'log')}")


if __name__ == "__main__":
    try:
        from teleconsult.core.config import get_settings

        # Load settings first so configuration errors fail fast with a clear message
        try:
            settings = get_settings()
        except ValueError as ve:
            logger.error(f"Configuration validation failed: {ve}")
            logger.error(traceback.format_exc())
            logger.error("Common configuration issues:")
            logger.error("  1. DATABASE_URI must be set when DATABASE_BACKEND=mongo")
            logger.error("  2. NOTIFY_WEBHOOK_URL must be set when NOTIFY_BACKEND=webhook")
            logger.error("  3. MATCHING_SPECIALTY_BONUS must outweigh the largest possible load penalty")
            sys.exit(1)

        port = int(os.environ.get("PORT", settings.port))
        host = os.environ.get("HOST", settings.host)

        logger.info(f"  App name: {settings.app_name}")
        logger.info(f"  App version: {settings.app_version}")
        logger.info(f"  App environment: {settings.app_env}")
        logger.info(f"Starting uvicorn server on {host}:{port}...")

        uvicorn.run(
            "teleconsult.app:app",
            host=host,
            port=port,
            workers=1,
            log_level="info",
            access_log=True,
            timeout_keep_alive=75,
            timeout_graceful_shutdown=30,
        )
    except KeyboardInterrupt:
        logger.info("Shutting down due to keyboard interrupt")
        sys.exit(0)
    except Exception as e:
        logger.error(sep)
        logger.error("CRITICAL: Failed to start application")
        logger.error(f"Error: {e}")
        logger.error(f"Error type: {type(e).__name__}")
        logger.error(traceback.format_exc())
        logger.error(sep)
        sys.exit(1)
