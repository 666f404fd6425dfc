"""
应用配置
从环境变量 / .env 读取配置
"""
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用设置"""

    # 应用基础配置
    APP_NAME: str = "Palace PMS"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./palace_pms.db"

    # JWT 配置
    SECRET_KEY: str = "palace-pms-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480

    # 酒店信息（打印在小票和报表上）
    HOTEL_NAME: str = "SULTAN PALACE HOTEL"
    HOTEL_ADDRESS: str = "Dongwe, East Coast, Zanzibar"
    HOTEL_PHONE: str = "+255 684 888 111 | +255 777 085 630"

    # 夜审配置
    NIGHT_AUDIT_REPORT_RECIPIENT: str = "reservations@sultanpalacehotelznz.com"
    NIGHT_AUDIT_SYSTEM_USER: str = "Night Audit System"
    NIGHT_AUDIT_LOCK_TTL_MINUTES: int = 60  # 超时的夜审锁视为残留，可被接管

    # 邮件配置 (SMTP)
    EMAIL_ENABLED: bool = False
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_SENDER: Optional[str] = None
    SMTP_USE_TLS: bool = True

    # 小票存储: local | s3
    RECEIPT_STORAGE_BACKEND: str = "local"
    RECEIPT_STORAGE_DIR: str = "./storage"
    RECEIPT_PUBLIC_BASE_URL: str = "http://localhost:8000/static"
    S3_BUCKET: str = ""
    S3_REGION: Optional[str] = None
    S3_ACCESS_KEY_ID: Optional[str] = None
    S3_SECRET_ACCESS_KEY: Optional[str] = None
    S3_ENDPOINT_URL: Optional[str] = None
    S3_PUBLIC_BASE_URL: Optional[str] = None

    model_config = ConfigDict(env_file=".env", case_sensitive=True)


# 全局设置实例
settings = Settings()
