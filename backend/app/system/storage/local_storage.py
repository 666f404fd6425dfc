"""
本地目录对象存储 - 实现 core 层 IObjectStorage 接口
文件写入 root_dir，公开地址为 public_base_url + 相对路径
"""
import json
import logging
from pathlib import Path
from typing import Dict, Optional

from core.storage import IObjectStorage

logger = logging.getLogger(__name__)


class LocalObjectStorage(IObjectStorage):
    """本地文件系统存储后端"""

    def __init__(self, root_dir: str, public_base_url: str):
        self.root = Path(root_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path.lstrip("/")).resolve()
        if self.root.resolve() not in target.parents:
            raise ValueError(f"非法存储路径: {path}")
        return target

    def save(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

        # 元数据写在旁路文件中
        meta = {"content_type": content_type, **(metadata or {})}
        target.with_name(target.name + ".meta.json").write_text(json.dumps(meta), encoding="utf-8")
        logger.info(f"Stored object {path} ({len(data)} bytes)")

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{path.lstrip('/')}"

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()
