"""
ClipScript logging

모듈 로거는 모두 'clipscript' 루트 로거의 자식이며, stdout 핸들러는 루트에 한 번만 붙습니다.
"""
import logging
import sys
import os

ROOT_LOGGER_NAME = "clipscript"
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s %(message)s"


def _root_logger() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
        set_log_level(os.getenv("LOG_LEVEL", "INFO"))
        # uvicorn 루트 핸들러와 중복 출력 방지
        root.propagate = False
    return root


def set_log_level(level: str):
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(getattr(logging, level.upper(), logging.INFO))


def get_logger(name: str) -> logging.Logger:
    _root_logger()
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
