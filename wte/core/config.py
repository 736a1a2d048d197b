import os
from dataclasses import dataclass, field, fields
from typing import List, Dict, Any

import yaml
from dotenv import load_dotenv

from ..models import log, ParsingType, ScrapingOptions, ImageOptions

TRUE_VALUES = {"1", "true", "yes", "on"}

def _env_int(key: str) -> int:
    value = os.environ[key]
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {value!r}") from None

@dataclass
class Settings:
    scraping: ScrapingOptions = field(default_factory=ScrapingOptions)
    images: ImageOptions = field(default_factory=ImageOptions)
    parsing: ParsingType = ParsingType.WITH_IMAGE
    output_dir: str = "."
    headless: bool = True
    show_progress: bool = True

def _pick(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    unknown = set(data) - names
    if unknown:
        log.warning(f"Ignoring unknown {cls.__name__} keys: {', '.join(sorted(unknown))}")
    return {k: v for k, v in data.items() if k in names}

class ConfigManager:
    _instance = None

    def __init__(self, config_paths: List[str] = None):
        self.data: Dict[str, Any] = {}
        if config_paths:
            for path in config_paths:
                self.load_config(path)

    @classmethod
    def get_instance(cls):
        if not cls._instance:
            load_dotenv()
            paths = [os.path.expanduser("~/.config/wte/config.yaml"), "wte.yaml"]
            cls._instance = cls(paths)
        return cls._instance

    def load_config(self, path: str):
        """Merge a YAML mapping into the current config; later files win key by key."""
        if not os.path.exists(path): return
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            log.warning(f"Failed to load config {path}: {e}")
            return
        if not data or not isinstance(data, dict):
            log.warning(f"Config {path} is not a mapping, skipping")
            return
        for key, value in data.items():
            if isinstance(value, dict) and isinstance(self.data.get(key), dict):
                self.data[key].update(value)
            else:
                self.data[key] = value
        log.info(f"Loaded config from {path}")

    def _env_overrides(self) -> Dict[str, Any]:
        data = {k: (dict(v) if isinstance(v, dict) else v) for k, v in self.data.items()}
        scraping = data.setdefault("scraping", {})
        if os.getenv("WTE_CONCURRENCY"):
            scraping["concurrency"] = _env_int("WTE_CONCURRENCY")
        if os.getenv("WTE_TIMEOUT_MS"):
            scraping["timeout_ms"] = _env_int("WTE_TIMEOUT_MS")
        if os.getenv("WTE_OUTPUT_DIR"):
            data["output_dir"] = os.environ["WTE_OUTPUT_DIR"]
        if os.getenv("WTE_HEADLESS"):
            data["headless"] = os.environ["WTE_HEADLESS"].strip().lower() in TRUE_VALUES
        return data

    def settings(self, **overrides) -> Settings:
        """Build Settings from files, then environment, then keyword overrides."""
        data = self._env_overrides()
        data.update({k: v for k, v in overrides.items() if v is not None})

        scraping = data.get("scraping") or {}
        images = data.get("images") or {}
        parsing = data.get("parsing", ParsingType.WITH_IMAGE)
        return Settings(
            scraping=scraping if isinstance(scraping, ScrapingOptions) else ScrapingOptions(**_pick(ScrapingOptions, scraping)),
            images=images if isinstance(images, ImageOptions) else ImageOptions(**_pick(ImageOptions, images)),
            parsing=parsing if isinstance(parsing, ParsingType) else ParsingType(parsing),
            output_dir=str(data.get("output_dir", ".")),
            headless=bool(data.get("headless", True)),
            show_progress=bool(data.get("show_progress", True)),
        )
