from typing import Optional

from ..models import log
from ..errors import SourceNotFound
from ..drivers.base import BaseDriver
from ..drivers.woopread import WoopreadDriver
from ..drivers.noveloon import NoveloonDriver
from ..drivers.novelbin import NovelbinDriver

DRIVERS = (WoopreadDriver, NoveloonDriver, NovelbinDriver)

class DriverDispatcher:
    @staticmethod
    def get_driver(url: str) -> Optional[BaseDriver]:
        for driver_cls in DRIVERS:
            if driver_cls.matches(url):
                return driver_cls()
        return None

    @staticmethod
    def require_driver(url: str) -> BaseDriver:
        driver = DriverDispatcher.get_driver(url)
        if driver is None:
            log.error(f"No driver registered for {url}")
            raise SourceNotFound(url)
        return driver
