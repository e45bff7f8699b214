from pydantic import Field, ConfigDict, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
import os
from pathlib import Path

# 获取项目根目录
BASE_DIR = Path(__file__).resolve().parent.parent.parent

class AIConfig(BaseSettings):
    """AI模型配置"""
    AI_ZHIPU_API_KEY: str = Field(
        default="",  # 允许空值，但会在使用时检查
        description="智谱AI API密钥"
    )
    AI_ZHIPU_MODEL_CHAT: str = Field("glm-4-flash", description="默认对话模型名称")
    AI_TEMPERATURE: float = Field(0.7, description="生成温度")
    AI_MAX_CONTENT_LENGTH: int = Field(8000, description="提交给模型的文档内容最大字符数")
    AI_REQUEST_TIMEOUT: int = Field(120, description="模型请求超时时间(秒)")

    model_config = ConfigDict(
        env_file="",  # 禁用环境变量文件
        env_prefix="",  # 不使用前缀，因为属性名已包含前缀
        extra="ignore",
        case_sensitive=True
    )

class AuthConfig(BaseSettings):
    """认证配置"""
    AUTH_SECRET_KEY: str = Field("casegen-dev-secret", description="会话签名密钥")
    AUTH_ALGORITHM: str = Field("HS256", description="会话签名算法")
    AUTH_COOKIE_NAME: str = Field("app_session_id", description="会话Cookie名称")
    AUTH_COOKIE_SECURE: bool = Field(False, description="会话Cookie是否仅通过HTTPS传输")
    AUTH_SESSION_EXPIRE_DAYS: int = Field(365, description="会话有效期(天)")
    AUTH_BCRYPT_ROUNDS: int = Field(10, description="bcrypt加密轮数")
    AUTH_ADMIN_USERNAME: str = Field("admin", description="默认管理员用户名")
    AUTH_ADMIN_PASSWORD: str = Field("admin123", description="默认管理员密码")
    AUTH_ADMIN_NAME: str = Field("管理员", description="默认管理员显示名称")

    model_config = ConfigDict(
        env_file="",
        env_prefix="",
        extra="ignore",
        case_sensitive=True
    )

class LogConfig(BaseSettings):
    """日志配置"""
    LOG_LEVEL: str = Field("INFO", description="日志级别")
    LOG_FILE: str = Field(str(BASE_DIR / "logs/app.log"), description="日志文件路径")
    LOG_FORMAT: str = Field(
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>",
        description="日志格式"
    )
    LOG_ROTATION: str = Field("500 MB", description="日志轮转大小")
    LOG_RETENTION: str = Field("10 days", description="日志保留时间")

    model_config = ConfigDict(
        env_file="",
        env_prefix="",
        extra="ignore",
        case_sensitive=True
    )

    @field_validator("LOG_LEVEL")
    def validate_log_level(cls, v: str) -> str:
        """验证日志级别"""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in valid_levels:
            import warnings
            warnings.warn(f"无效的日志级别: {v}，使用默认值: INFO")
            return "INFO"
        return v

class DatabaseConfig(BaseSettings):
    """数据库配置"""
    DB_URL: str = Field(
        default=f"sqlite+aiosqlite:///{BASE_DIR}/data/casegen.db",
        description="数据库连接URL"
    )
    DB_ECHO: bool = Field(False, description="是否打印SQL语句")

    model_config = ConfigDict(
        env_file="",
        env_prefix="",
        extra="ignore",
        case_sensitive=True
    )

class StorageConfig(BaseSettings):
    """对象存储配置"""
    STORAGE_ENABLED: bool = Field(False, description="是否启用对象存储")
    STORAGE_ENDPOINT: str = Field("", description="存储服务端点")
    STORAGE_ACCESS_KEY: str = Field("", description="访问密钥")
    STORAGE_SECRET_KEY: str = Field("", description="访问密钥")
    STORAGE_BUCKET_NAME: str = Field("casegen", description="存储桶名称")
    STORAGE_PUBLIC_URL: str = Field("", description="公共访问URL")
    STORAGE_REGION: str = Field("", description="区域")
    STORAGE_LOCAL_DIR: str = Field(str(BASE_DIR / "data/files"), description="未启用对象存储时的本地存储目录")
    STORAGE_LOCAL_URL_PREFIX: str = Field("/files", description="本地存储文件的访问路径前缀")

    model_config = ConfigDict(
        env_file="",
        env_prefix="",
        extra="ignore",
        case_sensitive=True
    )

class ParserConfig(BaseSettings):
    """文档解析配置"""
    PARSER_FETCH_TIMEOUT: int = Field(30, description="远程文档下载超时时间(秒)")
    PARSER_MAX_FILE_SIZE: int = Field(20 * 1024 * 1024, description="上传文件最大大小(bytes)")

    model_config = ConfigDict(
        env_file="",
        env_prefix="",
        extra="ignore",
        case_sensitive=True
    )

class Settings(BaseSettings):
    """应用配置"""
    # 基础配置
    APP_NAME: str = Field("CaseGen", description="应用名称")
    APP_VERSION: str = Field("1.0.0", description="应用版本")
    DEBUG: bool = Field(False, description="调试模式")

    # 路径配置
    BASE_DIR: Path = Field(default=BASE_DIR, description="项目根目录")

    # 子配置
    ai: AIConfig = Field(default_factory=AIConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    log: LogConfig = Field(default_factory=LogConfig)
    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    parser: ParserConfig = Field(default_factory=ParserConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        env_prefix=""  # 不使用前缀
    )

    def __init__(self, **kwargs):
        # 从 .env 文件加载配置
        from dotenv import dotenv_values

        env_path = BASE_DIR / ".env"
        env_config = dotenv_values(env_path) if env_path.exists() else {}

        # 按前缀分发到各子配置，进程环境变量优先
        if env_config:
            sections = {
                "ai": ("AI_", AIConfig),
                "auth": ("AUTH_", AuthConfig),
                "log": ("LOG_", LogConfig),
                "db": ("DB_", DatabaseConfig),
                "storage": ("STORAGE_", StorageConfig),
                "parser": ("PARSER_", ParserConfig),
            }
            for field_name, (prefix, config_cls) in sections.items():
                values = {
                    k: v for k, v in env_config.items()
                    if k.startswith(prefix) and k not in os.environ
                }
                if values:
                    kwargs[field_name] = config_cls(**values)

            for key in ("APP_NAME", "APP_VERSION"):
                if key in env_config and key not in os.environ:
                    kwargs[key] = env_config[key]
            if "DEBUG" in env_config and "DEBUG" not in os.environ:
                kwargs["DEBUG"] = env_config["DEBUG"].lower() == "true"

        super().__init__(**kwargs)
        self._init_directories()
        self._validate_api_key()

        # 只在主进程中打印配置信息
        if self.DEBUG and not os.environ.get('RELOAD_PROCESS'):
            self._print_debug_info()

    def _init_directories(self):
        """初始化必要的目录"""
        # 确保日志目录存在
        Path(self.log.LOG_FILE).parent.mkdir(parents=True, exist_ok=True)

        # 确保数据库目录存在
        for scheme in ("sqlite+aiosqlite:///", "sqlite:///"):
            if self.db.DB_URL.startswith(scheme):
                db_path = self.db.DB_URL.replace(scheme, "")
                if db_path and db_path != ":memory:":
                    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
                break

        # 确保本地存储目录存在
        if not self.storage.STORAGE_ENABLED:
            Path(self.storage.STORAGE_LOCAL_DIR).mkdir(parents=True, exist_ok=True)

    def _validate_api_key(self):
        """验证API密钥"""
        if not self.ai.AI_ZHIPU_API_KEY:
            import warnings
            warnings.warn(
                "AI_ZHIPU_API_KEY 未设置！未配置自定义模型时AI生成将不可用",
                RuntimeWarning
            )

    def _print_debug_info(self):
        """打印调试信息"""
        print("\n=== 配置加载信息 ===")
        print(f"项目根目录: {self.BASE_DIR}")
        print(f"数据库: {self.db.DB_URL}")
        print(f"日志级别: {self.log.LOG_LEVEL}")
        print(f"日志文件: {self.log.LOG_FILE}")
        print(f"默认对话模型: {self.ai.AI_ZHIPU_MODEL_CHAT}")
        print(f"对象存储: {'已启用' if self.storage.STORAGE_ENABLED else '未启用'}")
        if not self.storage.STORAGE_ENABLED:
            print(f"本地存储目录: {self.storage.STORAGE_LOCAL_DIR}")
        print("===================\n")

@lru_cache()
def get_settings() -> Settings:
    """获取全局配置实例"""
    return Settings()

# 创建全局配置实例
settings = get_settings()

__all__ = ["settings", "get_settings"]
