import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    log_level: str = "INFO"
    currency: str = "HTG"
    recent_limit: int = 10


def get_settings() -> Settings:
    data_dir = Path(os.getenv("MUTUELLE_DATA_DIR") or Path.cwd() / ".data")
    return Settings(
        data_dir=data_dir,
        db_path=data_dir / "mutuelle.sqlite",
        log_level=os.getenv("MUTUELLE_LOG_LEVEL", "INFO"),
        currency=os.getenv("MUTUELLE_CURRENCY", "HTG"),
        recent_limit=int(os.getenv("MUTUELLE_RECENT_LIMIT", "10")),
    )
