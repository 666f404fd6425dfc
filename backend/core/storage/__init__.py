"""
对象存储抽象层 - 仅定义接口，app 层实现具体后端
"""
from core.storage.base import IObjectStorage, StorageRegistry

__all__ = ["IObjectStorage", "StorageRegistry"]
