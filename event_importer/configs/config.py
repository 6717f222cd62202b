# event_importer/configs/config.py
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from event_importer.configs.settings import Settings, get_settings
from event_importer.ingestion.errors import ConfigurationError

_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass
class FeedConfig:
    """
    Configuration record for one feed source.

    Passed explicitly into the orchestrator; where it is persisted is up to
    the caller.
    """

    source_name: str
    api_url: str = ""
    import_enabled: bool = True
    import_schedule: str = "daily"
    default_category_id: Optional[int] = None


class Config:
    """
    Loads per-source feed configuration from sources.yaml.
    """

    CONFIG_DIR = Path(__file__).parent.resolve()
    SOURCES_CONFIG_PATH = CONFIG_DIR / "sources.yaml"

    def __init__(
        self,
        config_path: Optional[Path] = None,
        settings: Optional[Settings] = None,
    ):
        self.config_path = Path(config_path) if config_path else self.SOURCES_CONFIG_PATH
        self._settings = settings
        self._raw: Optional[Dict[str, Any]] = None

    @property
    def raw(self) -> Dict[str, Any]:
        """Load and cache the YAML document."""
        if self._raw is None:
            if not self.config_path.exists():
                raise ConfigurationError(f"Missing config at {self.config_path}")
            with open(self.config_path, "r", encoding="utf-8") as f:
                self._raw = yaml.safe_load(f) or {}
        return self._raw

    def _substitute(self, value: Any) -> Any:
        """Resolve ${VAR} placeholders from settings, then the environment."""
        if not isinstance(value, str):
            return value

        def lookup(match: re.Match) -> str:
            name = match.group(1)
            settings = self._settings or get_settings()
            if hasattr(settings, name):
                return str(getattr(settings, name) or "")
            return os.environ.get(name, "")

        return _PLACEHOLDER.sub(lookup, value)

    def list_sources(self) -> List[str]:
        """Names of all configured sources."""
        return list(self.raw.get("sources", {}).keys())

    def get_feed_config(self, source_name: str) -> FeedConfig:
        """
        Build the FeedConfig for a source.

        Args:
            source_name: Key under `sources` in the YAML file

        Returns:
            FeedConfig with placeholders resolved

        Raises:
            ConfigurationError: If the source is not configured
        """
        sources = self.raw.get("sources", {})
        if source_name not in sources:
            raise ConfigurationError(
                f"Source '{source_name}' not found in {self.config_path.name}"
            )
        cfg = {k: self._substitute(v) for k, v in (sources[source_name] or {}).items()}
        return FeedConfig(
            source_name=source_name,
            api_url=(cfg.get("api_url") or "").strip(),
            import_enabled=bool(cfg.get("import_enabled", True)),
            import_schedule=cfg.get("import_schedule", "daily"),
            default_category_id=cfg.get("default_category_id"),
        )
