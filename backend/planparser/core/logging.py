import sys
from loguru import logger
from planparser.core.config import settings


def _application_records(record) -> bool:
    # Error journal lines go to their own sink only
    return "error_record" not in record["extra"]


# Configure Loguru
logger.remove()
logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.LOG_LEVEL,
    filter=_application_records,
)
logger.add(settings.LOG_FILE, rotation="500 MB", level="DEBUG", filter=_application_records)
logger.configure(extra={"name": "planparser"})

def get_logger(name: str):
    return logger.bind(name=name)
