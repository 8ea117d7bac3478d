from enum import Enum
import logging
from pathlib import Path

from pydantic_settings import BaseSettings
from rich.logging import RichHandler


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class Config(BaseSettings):
    env: Env = Env.local
    db_url: str = "sqlite+aiosqlite:///misoto.db"
    storage_dir: Path = Path("storage")
    storage_base_url: str = "http://localhost:8000/storage"
    templates_dir: Path = Path(__file__).parent / "templates"
    core_model: str = "gpt-4o"
    # Read from OPENAI_API_KEY
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1/"
    openai_timeout: float = 60 * 2
    web_timeout: float = 20
    app_version: str = "1.0.0"
    use_cost_optimized_extraction: bool = True
    use_ai_refinement: bool = False
    log_level: str = "INFO"


def configure_logging(config: Config) -> None:
    if config.env == Env.local:
        handler: logging.Handler = RichHandler(rich_tracebacks=True)
        fmt = "%(message)s"
    else:
        handler = logging.StreamHandler()
        fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    logging.basicConfig(
        level=config.log_level.upper(),
        format=fmt,
        handlers=[handler],
        force=True,
    )
