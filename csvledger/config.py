from dataclasses import dataclass
import os

from dotenv import load_dotenv


load_dotenv()


@dataclass(frozen=True)
class Settings:
    app_name: str
    database_url: str
    log_level: str
    csv_delimiter: str
    default_transaction_kind: str
    default_category_id: str
    default_source_id: str | None


def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "csvledger"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./ledger.db"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        csv_delimiter=os.getenv("CSV_DELIMITER", ","),
        default_transaction_kind=os.getenv("DEFAULT_TRANSACTION_KIND", "expense"),
        default_category_id=os.getenv("DEFAULT_CATEGORY_ID", "uncategorized"),
        default_source_id=os.getenv("DEFAULT_SOURCE_ID") or None,
    )
