"""
Settings Configuration
使用 Pydantic 进行配置验证和管理
"""
from functools import lru_cache
from pathlib import Path
from typing import Annotated, List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode


DEFAULT_FORBIDDEN_TERMS = ["赌博", "成人", "诈骗", "仇恨"]


class ProducerSettings(BaseSettings):
    """生产流水线配置"""
    max_attempts: int = Field(default=3, ge=1, description="每次运行的最大生成尝试次数")
    max_revisions: int = Field(default=2, ge=0, description="每次尝试的最大修订次数")
    prompt_version: str = Field(default="v1", description="提示词版本, 随文章一起持久化")
    default_language: str = Field(default="en", description="默认文章语言")

    class Config:
        env_prefix = "PRODUCER_"


class QualitySettings(BaseSettings):
    """质量门槛配置"""
    min_score: int = Field(default=70, ge=0, le=100, description="通过所需的最低总分")
    min_source_links: int = Field(default=2, ge=0, description="最少来源链接数")
    allow_unreachable_source_links: bool = Field(default=True, description="是否允许来源链接不可达")
    max_duplicated_structure_count: int = Field(default=3, ge=0, description="同结构已发布文章数上限")
    duplicated_structure_severity: Literal["hard", "soft"] = Field(default="soft", description="结构重复的失败级别")
    max_repeated_bigram_excess: int = Field(default=6, ge=0, description="重复二元词组允许的超额次数")
    forbidden_terms: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_FORBIDDEN_TERMS), description="禁用词, 逗号分隔"
    )

    @field_validator("forbidden_terms", mode="before")
    @classmethod
    def _split_terms(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    class Config:
        env_prefix = "QUALITY_"


class ProbeSettings(BaseSettings):
    """来源链接探测配置"""
    enabled: bool = Field(default=True, description="是否发起 HEAD 探测")
    timeout_sec: float = Field(default=4.0, gt=0, description="单个请求超时(秒)")
    user_agent: str = Field(default="ArticleProducer/1.0 (+link-check)", description="User Agent")

    class Config:
        env_prefix = "PROBE_"


class LLMSettings(BaseSettings):
    """LLM 配置"""
    provider: str = Field(default="openai", description="LLM提供商: openai, anthropic, deepseek")
    model_name: Optional[str] = Field(default=None, description="模型名称(不填则使用默认)")
    temperature: float = Field(default=0.7, description="生成温度")
    max_tokens: int = Field(default=4096, description="最大生成token数")
    base_url: Optional[str] = Field(default=None, description="OpenAI 兼容接口地址")

    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API Key")
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API Key")
    deepseek_api_key: Optional[str] = Field(default=None, description="DeepSeek API Key")

    class Config:
        env_prefix = "LLM_"


class LockSettings(BaseSettings):
    """跨进程流水线锁配置"""
    key: str = Field(default="424242", description="流水线锁 ID")
    path: str = Field(default="./data/locks", description="锁文件目录")
    lease_seconds: int = Field(default=1200, ge=1, description="租约时长(秒), 过期后可被抢占")

    class Config:
        env_prefix = "PIPELINE_LOCK_"


class StorageSettings(BaseSettings):
    """存储配置"""
    backend: Literal["memory", "json"] = Field(default="json", description="文章存储后端")
    articles_path: str = Field(default="./data/articles.json", description="JSON 文章库路径")

    class Config:
        env_prefix = "STORAGE_"


class AlertSettings(BaseSettings):
    """告警配置"""
    webhook_url: Optional[str] = Field(default=None, description="告警 webhook 地址")
    log_dir: str = Field(default="./data/alerts", description="本地告警日志目录")
    timeout_sec: float = Field(default=5.0, gt=0, description="webhook 超时(秒)")

    class Config:
        env_prefix = "ALERT_"


class Settings(BaseSettings):
    """主配置类 - 聚合所有子配置"""

    producer: ProducerSettings = Field(default_factory=ProducerSettings)
    quality: QualitySettings = Field(default_factory=QualitySettings)
    probe: ProbeSettings = Field(default_factory=ProbeSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    lock: LockSettings = Field(default_factory=LockSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    alert: AlertSettings = Field(default_factory=AlertSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """从指定的 .env 文件加载配置"""
        if env_path is None:
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            producer=ProducerSettings(),
            quality=QualitySettings(),
            probe=ProbeSettings(),
            llm=LLMSettings(),
            lock=LockSettings(),
            storage=StorageSettings(),
            alert=AlertSettings(),
        )


@lru_cache()
def get_settings() -> Settings:
    """获取全局配置单例"""
    return Settings.load_from_env_file()


# 便捷访问
def get_llm_settings() -> LLMSettings:
    return get_settings().llm
