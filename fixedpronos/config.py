import os
import logging
from pydantic import BaseModel, Field, field_validator
from dotenv import load_dotenv

# Загружаем переменные из .env файла (для локального запуска)
load_dotenv()


class Config(BaseModel):
    """Конфигурация сервиса платежей с валидацией"""
    
    database_url: str = Field(..., description="PostgreSQL connection URL")
    admin_user_ids: list[str] = Field(..., description="List of admin user IDs")
    public_base_url: str = Field(..., description="Public base URL for provider callbacks")
    
    # MoneyFusion настройки
    moneyfusion_api_url: str = Field(..., description="MoneyFusion payment session endpoint")
    moneyfusion_status_url: str = Field(
        default="https://www.pay.moneyfusion.net/paiementNotif",
        description="MoneyFusion payment status endpoint"
    )
    payment_currency: str = Field(default="XOF", description="Currency of mobile money payments")
    
    # Таймауты внешних вызовов
    provider_timeout_seconds: float = Field(default=10.0, gt=0, description="Provider HTTP timeout")
    db_command_timeout_seconds: float = Field(default=10.0, gt=0, description="Database command timeout")
    
    host: str = Field(default="0.0.0.0", description="HTTP bind host")
    port: int = Field(default=8080, description="HTTP bind port")
    log_level: str = Field(default="INFO", description="Logging level")
    
    @field_validator('admin_user_ids', mode='before')
    @classmethod
    def parse_admin_ids(cls, v):
        """Парсит ADMIN_USER_IDS из строки в список идентификаторов"""
        if isinstance(v, str):
            return [id.strip() for id in v.split(",") if id.strip()]
        return v
    
    @field_validator('public_base_url', mode='after')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")
    
    @classmethod
    def from_env(cls) -> "Config":
        """Создает конфиг из переменных окружения с валидацией"""
        db_url = os.getenv("DATABASE_URL")
        admin_ids = os.getenv("ADMIN_USER_IDS")
        base_url = os.getenv("PUBLIC_BASE_URL")
        
        # MoneyFusion параметры
        api_url = os.getenv("MONEYFUSION_API_URL")
        
        if not db_url:
            raise ValueError("DATABASE_URL не установлен")
        if not admin_ids:
            raise ValueError("ADMIN_USER_IDS не установлен. Укажите один или несколько ID через запятую")
        if not base_url:
            raise ValueError("PUBLIC_BASE_URL не установлен. Он нужен для callback URL провайдера")
        if not api_url:
            raise ValueError("MONEYFUSION_API_URL не установлен")
        
        optional = {
            "moneyfusion_status_url": os.getenv("MONEYFUSION_STATUS_URL"),
            "payment_currency": os.getenv("PAYMENT_CURRENCY"),
            "provider_timeout_seconds": os.getenv("PROVIDER_TIMEOUT_SECONDS"),
            "db_command_timeout_seconds": os.getenv("DB_COMMAND_TIMEOUT_SECONDS"),
            "host": os.getenv("HOST"),
            "port": os.getenv("PORT"),
        }
        
        return cls(
            database_url=db_url,
            admin_user_ids=cls.parse_admin_ids(admin_ids),
            public_base_url=base_url,
            moneyfusion_api_url=api_url,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            **{key: value for key, value in optional.items() if value}
        )


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Настраивает логирование для приложения"""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    return logging.getLogger(__name__)


# Глобальный экземпляр конфига
config = Config.from_env()
logger = setup_logging(config.log_level)
