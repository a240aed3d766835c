import logging

from pythonjsonlogger import jsonlogger

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a JSON stream handler to the root logger once."""
    root = logging.getLogger()
    if not any(getattr(h, "_shop_json", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT))
        handler._shop_json = True
        root.addHandler(handler)
    root.setLevel(level.upper())
    return root
