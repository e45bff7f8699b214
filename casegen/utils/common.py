import re
import time
import json
from pathlib import Path
from typing import Union, Any, Optional
from casegen.logger.logger import logger

# 匹配文本中嵌入的JSON数组
JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")

def ensure_dir(dir_path: Union[str, Path]) -> Path:
    """确保目录存在,如果不存在则创建"""
    path = Path(dir_path)
    path.mkdir(parents=True, exist_ok=True)
    return path

def get_file_extension(file_name: Union[str, Path]) -> str:
    """获取不带点的小写文件扩展名"""
    return Path(file_name).suffix.lower().lstrip(".")

def current_millis() -> int:
    """当前时间戳(毫秒)"""
    return int(time.time() * 1000)

def safe_json_loads(text: str, default: Any = None) -> Any:
    """安全的JSON解析

    Args:
        text: JSON字符串
        default: 解析失败时的默认值

    Returns:
        Any: 解析结果或默认值
    """
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        logger.debug(f"JSON解析失败: {str(e)}")
        return default

def extract_json_array(text: str) -> Optional[Any]:
    """从文本中提取第一个 [ 到最后一个 ] 之间的JSON数组"""
    match = JSON_ARRAY_PATTERN.search(text or "")
    if not match:
        return None
    return safe_json_loads(match.group(0))

def mask_secret(value: Optional[str]) -> Optional[str]:
    """隐藏密钥中间部分"""
    if not value:
        return value
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}****{value[-4:]}"
