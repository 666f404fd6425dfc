"""
对象存储接口 - 与具体云厂商无关

app 层实现具体后端（本地目录、云存储桶等）并在 lifespan 中注册。
"""
from abc import ABC, abstractmethod
from typing import Dict, Optional


class IObjectStorage(ABC):
    """对象存储后端接口"""

    @abstractmethod
    def save(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        """写入对象（同名覆盖）"""

    @abstractmethod
    def public_url(self, path: str) -> str:
        """对象的公开访问地址"""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """对象是否存在"""


class StorageRegistry:
    """对象存储注册表（单例）"""

    _instance: Optional["StorageRegistry"] = None

    def __new__(cls) -> "StorageRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._backend = None
        return cls._instance

    def set_backend(self, backend: IObjectStorage) -> None:
        self._backend = backend

    def get_backend(self) -> Optional[IObjectStorage]:
        return self._backend

    def clear(self) -> None:
        """清除后端（用于测试）"""
        self._backend = None
