from typing import Optional
from pathlib import Path
from datetime import timedelta
from urllib.parse import quote
import io
import os
import minio
from casegen.config.settings import settings
from casegen.logger.logger import logger
from casegen.utils.common import ensure_dir
from casegen.utils.decorators import handle_exceptions

class StorageService:
    """存储服务类，对象存储未启用时使用本地目录"""

    def __init__(self):
        """初始化存储服务"""
        self.enabled = settings.storage.STORAGE_ENABLED
        self.bucket = settings.storage.STORAGE_BUCKET_NAME
        self.local_dir = Path(settings.storage.STORAGE_LOCAL_DIR)
        if not self.enabled:
            ensure_dir(self.local_dir)
            logger.info(f"对象存储未启用，使用本地目录: {self.local_dir}")
            return

        try:
            self.client = minio.Minio(
                settings.storage.STORAGE_ENDPOINT,
                access_key=settings.storage.STORAGE_ACCESS_KEY,
                secret_key=settings.storage.STORAGE_SECRET_KEY,
                secure=settings.storage.STORAGE_PUBLIC_URL.startswith("https"),
                region=settings.storage.STORAGE_REGION or None
            )

            # 确保存储桶存在
            if not self.client.bucket_exists(self.bucket):
                self.client.make_bucket(self.bucket)
                logger.info(f"创建存储桶: {self.bucket}")

            logger.info("存储服务初始化成功")
        except Exception as e:
            logger.error(f"存储服务初始化失败: {str(e)}")
            raise

    def _local_path(self, key: str) -> Path:
        path = (self.local_dir / key).resolve()
        if self.local_dir.resolve() not in path.parents:
            raise ValueError(f"非法的存储路径: {key}")
        return path

    def _public_url(self, key: str) -> str:
        if self.enabled:
            return f"{settings.storage.STORAGE_PUBLIC_URL}/{self.bucket}/{quote(key)}"
        return f"{settings.storage.STORAGE_LOCAL_URL_PREFIX}/{quote(key)}"

    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """
        保存文件

        Args:
            key: 存储键
            data: 文件内容
            content_type: 内容类型

        Returns:
            str: 文件访问URL
        """
        try:
            if self.enabled:
                self.client.put_object(
                    self.bucket,
                    key,
                    io.BytesIO(data),
                    length=len(data),
                    content_type=content_type
                )
            else:
                path = self._local_path(key)
                ensure_dir(path.parent)
                path.write_bytes(data)

            url = self._public_url(key)
            logger.info(f"文件保存成功: {key}, 大小: {len(data)} bytes")
            return url
        except Exception as e:
            logger.error(f"文件保存失败: {str(e)}")
            raise

    async def get_url(self, key: str) -> str:
        """获取文件访问URL，对象存储下返回一小时有效的签名地址"""
        if self.enabled and not settings.storage.STORAGE_PUBLIC_URL:
            return self.client.presigned_get_object(self.bucket, key, expires=timedelta(hours=1))
        return self._public_url(key)

    async def read(self, key: str) -> bytes:
        """读取文件内容"""
        try:
            if self.enabled:
                response = self.client.get_object(self.bucket, key)
                try:
                    return response.read()
                finally:
                    response.close()
                    response.release_conn()

            path = self._local_path(key)
            if not path.exists():
                raise FileNotFoundError(f"文件不存在: {key}")
            return path.read_bytes()
        except Exception as e:
            logger.error(f"文件读取失败: {str(e)}")
            raise

    async def delete(self, key: str) -> bool:
        """
        删除文件，失败时只记录日志

        Returns:
            bool: 删除是否成功
        """
        if not self.enabled:
            return self._remove_local_file(key)

        try:
            self.client.remove_object(self.bucket, key)
            logger.info(f"文件删除成功: {key}")
            return True
        except Exception as e:
            logger.error(f"文件删除失败: {str(e)}")
            return False

    @handle_exceptions(default_return=False, log_level="WARNING")
    def _remove_local_file(self, key: str) -> bool:
        path = self._local_path(key)
        if path.exists():
            os.remove(path)
            logger.info(f"文件删除成功: {key}")
            return True
        return False

# 全局存储服务实例
_storage_service: Optional[StorageService] = None

def get_storage_service() -> StorageService:
    """获取存储服务实例"""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
