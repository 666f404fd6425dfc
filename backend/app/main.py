"""
Palace PMS 主应用入口
夜审、账目、预订与餐饮小票后端
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from app.config import settings
from app.database import init_db
from app.routers import auth, business_day, night_audit, ledger, bookings, orders

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def build_storage_backend():
    """按 RECEIPT_STORAGE_BACKEND 创建小票存储后端"""
    backend = settings.RECEIPT_STORAGE_BACKEND.lower()
    if backend == "s3":
        from app.system.storage.s3_storage import S3ObjectStorage
        return S3ObjectStorage(
            bucket=settings.S3_BUCKET,
            region=settings.S3_REGION,
            public_base_url=settings.S3_PUBLIC_BASE_URL,
            access_key_id=settings.S3_ACCESS_KEY_ID,
            secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            endpoint_url=settings.S3_ENDPOINT_URL,
        )
    if backend == "local":
        from app.system.storage.local_storage import LocalObjectStorage
        return LocalObjectStorage(settings.RECEIPT_STORAGE_DIR, settings.RECEIPT_PUBLIC_BASE_URL)
    raise ValueError(f"未知的存储后端: {settings.RECEIPT_STORAGE_BACKEND}")


def configure_channels() -> None:
    """注册通知渠道与对象存储后端"""
    from core.notification import NotificationChannelRegistry
    from core.storage import StorageRegistry

    if settings.EMAIL_ENABLED:
        from app.system.notification.email_channel import EmailChannel
        NotificationChannelRegistry().register(EmailChannel(
            smtp_host=settings.SMTP_HOST,
            smtp_port=settings.SMTP_PORT,
            smtp_user=settings.SMTP_USER,
            smtp_password=settings.SMTP_PASSWORD,
            sender_email=settings.SMTP_SENDER or settings.SMTP_USER,
            use_tls=settings.SMTP_USE_TLS,
        ))
        logger.info(f"Email channel registered ({settings.SMTP_HOST}:{settings.SMTP_PORT})")
    else:
        logger.warning("EMAIL_ENABLED is off, night audit reports will not be mailed")

    storage = build_storage_backend()
    StorageRegistry().set_backend(storage)
    logger.info(f"Receipt storage backend: {storage.__class__.__name__}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    init_db()
    configure_channels()
    logger.info(f"{settings.APP_NAME} started")
    yield


# 创建应用
app = FastAPI(
    title=settings.APP_NAME,
    description="酒店夜审、账目与餐饮小票后端",
    version="1.0.0",
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 小票文件
app.mount("/static", StaticFiles(directory=settings.RECEIPT_STORAGE_DIR, check_dir=False), name="static")

# 注册路由
app.include_router(auth.router)
app.include_router(business_day.router)
app.include_router(night_audit.router)
app.include_router(ledger.router)
app.include_router(bookings.router)
app.include_router(orders.router)


@app.get("/")
def root():
    """根路径"""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
    }


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}
