"""Debug utilities for the portfolio backend"""
import logging
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict

import psutil

logger = logging.getLogger(__name__)


class DebugInfo:
    """System debug information collector"""

    @staticmethod
    def get_system_info() -> Dict[str, Any]:
        """Get system information"""
        try:
            return {
                "platform": sys.platform,
                "python_version": sys.version,
                "cpu_count": psutil.cpu_count(),
                "memory_total_gb": round(psutil.virtual_memory().total / (1024**3), 2),
                "memory_available_gb": round(psutil.virtual_memory().available / (1024**3), 2),
                "memory_percent": psutil.virtual_memory().percent,
                "disk_usage_percent": psutil.disk_usage('/').percent,
                "process_id": os.getpid(),
            }
        except Exception as e:
            logger.error(f"Error getting system info: {e}")
            return {"error": str(e)}

    @staticmethod
    def get_environment_info() -> Dict[str, Any]:
        """Get environment configuration with secrets left out"""
        from portfolio.config import settings

        return {
            "app_name": settings.app_name,
            "app_version": settings.app_version,
            "debug_mode": settings.debug,
            "database_url": settings.database_url.split('@')[-1] if '@' in settings.database_url else "configured",
            "nextcloud_url": settings.nextcloud_url,
            "nextcloud_photos_path": settings.nextcloud_photos_path,
            "api_photo_prefix": settings.api_photo_prefix,
        }

    @staticmethod
    async def check_database_connection(db) -> Dict[str, Any]:
        """Check database connectivity"""
        try:
            from sqlalchemy import text

            start = time.time()
            result = await db.execute(text("SELECT 1"))
            duration = time.time() - start

            return {
                "status": "connected",
                "response_time_ms": round(duration * 1000, 2),
                "result": result.scalar(),
            }
        except Exception as e:
            logger.error(f"Database connection error: {e}")
            return {
                "status": "error",
                "error": str(e),
            }

    @staticmethod
    async def check_nextcloud_connection(blob_store) -> Dict[str, Any]:
        """Check Nextcloud connectivity"""
        start = time.time()
        result = await blob_store.test_connection()
        duration = time.time() - start

        return {
            "status": "connected" if result["success"] else "error",
            "response_time_ms": round(duration * 1000, 2),
            **result,
        }

    @staticmethod
    async def get_database_stats(db) -> Dict[str, Any]:
        """Get database statistics"""
        try:
            from sqlalchemy import func, select
            from portfolio.models import Comment, Like, Photo

            return {
                "total_photos": await db.scalar(select(func.count(Photo.id))),
                "total_likes": await db.scalar(select(func.count(Like.id))),
                "total_comments": await db.scalar(select(func.count(Comment.id))),
            }
        except Exception as e:
            logger.error(f"Error getting database stats: {e}")
            return {"error": str(e)}


class RequestLogger:
    """Request/response logging middleware"""

    @staticmethod
    def log_request(method: str, path: str, status_code: int, duration_ms: float):
        """Log HTTP request details"""
        logger.info(
            f"{method} {path} - {status_code} - {duration_ms:.2f}ms"
        )

    @staticmethod
    def log_error(method: str, path: str, error: Exception):
        """Log HTTP error details"""
        logger.error(
            f"{method} {path} - ERROR: {type(error).__name__}: {str(error)}",
            exc_info=True
        )


class DebugTimer:
    """Context manager for timing operations"""

    def __init__(self, operation_name: str):
        self.operation_name = operation_name
        self.start_time = None
        self.end_time = None

    def __enter__(self):
        self.start_time = time.time()
        logger.debug(f"Starting: {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.time()
        duration = (self.end_time - self.start_time) * 1000
        if exc_type is None:
            logger.debug(f"Completed: {self.operation_name} in {duration:.2f}ms")
        else:
            # Misses are routine for storage probes; leave error level to callers
            logger.debug(
                f"Failed: {self.operation_name} after {duration:.2f}ms - {exc_type.__name__}: {exc_val}"
            )

    @property
    def duration_ms(self) -> float:
        """Get duration in milliseconds"""
        if self.end_time and self.start_time:
            return (self.end_time - self.start_time) * 1000
        return 0


def setup_enhanced_logging(log_level: str = "INFO", log_to_file: bool = True, log_dir: str = "logs"):
    """Setup enhanced logging configuration"""

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    # Clear existing handlers
    root_logger.handlers = []

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_format = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(console_format)
    root_logger.addHandler(console_handler)

    if log_to_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        # File handler for all logs
        file_handler = logging.FileHandler(log_path / "portfolio.log")
        file_handler.setLevel(logging.DEBUG)
        file_format = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        file_handler.setFormatter(file_format)
        root_logger.addHandler(file_handler)

        # Separate error log
        error_handler = logging.FileHandler(log_path / "errors.log")
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(file_format)
        root_logger.addHandler(error_handler)

    # httpx logs every WebDAV request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger.info("Enhanced logging configured")
