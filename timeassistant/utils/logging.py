import logging
import os

DEFAULT_LOG_DIR = 'storage'
LOG_FILE_NAME = 'log.log'

_LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}


class Logger:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Logger, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.logger = logging.getLogger('TimeAssistant')
        self.logger.setLevel(logging.DEBUG)

        # LOG_DIR is read directly, the logger exists before any settings are loaded
        self.log_dir = os.getenv('LOG_DIR') or DEFAULT_LOG_DIR
        os.makedirs(self.log_dir, exist_ok=True)

        file_handler = logging.FileHandler(self.get_log_file())
        file_handler.setLevel(logging.DEBUG)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)

        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s'
        ))

        self.logger.addHandler(file_handler)
        self.logger.addHandler(console_handler)

        self._initialized = True
        self.debug("Logger initialized")

    def set_level(self, level: str) -> bool:
        """Set the logging level by name, returns False for unknown names"""
        value = _LEVELS.get(level.upper())
        if value is None:
            self.warning(f"Invalid log level: {level}")
            return False
        self.logger.setLevel(value)
        return True

    def debug(self, message: str):
        self.logger.debug(message)

    def info(self, message: str):
        self.logger.info(message)

    def warning(self, message: str):
        self.logger.warning(message)

    def error(self, message: str):
        self.logger.error(message)

    def critical(self, message: str):
        self.logger.critical(message)

    def get_log_file(self) -> str:
        """Get the path to the log file"""
        return os.path.join(self.log_dir, LOG_FILE_NAME)
