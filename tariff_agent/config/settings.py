"""配置管理模块。

支持从初始化参数、环境变量、.env 以及 config.yaml 加载配置（优先级依次降低）。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("TARIFF_AGENT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 模型网关 ----
    default_provider: Literal["openai", "kimi", "glm"] = Field(
        default="openai",
        description="默认使用的 Provider 名称",
    )
    default_model: str = Field(
        default="hs-chat",
        description="逻辑模型名，由 registry 映射为具体厂商模型",
    )
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API 密钥")
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    kimi_api_key: Optional[str] = Field(default=None, description="Kimi API 密钥")
    kimi_base_url: str = Field(default="https://api.moonshot.cn/v1")
    glm_api_key: Optional[str] = Field(default=None, description="GLM API 密钥")
    glm_base_url: str = Field(default="https://open.bigmodel.cn/api/paas/v4")
    gateway_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    gateway_timeout: float = Field(default=30.0, gt=0, description="单次模型调用超时（秒）")
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 分类库 ----
    store_backend: Literal["memory", "weaviate"] = Field(default="memory")
    taxonomy_file: Optional[str] = Field(
        default=None,
        description="memory 后端使用的 JSON 节点文件",
    )
    weaviate_url: Optional[str] = Field(default=None, description="Weaviate 实例地址")
    weaviate_api_key: Optional[str] = Field(default=None)
    weaviate_collection: str = Field(default="hs_codes_transformer")
    store_timeout: float = Field(default=10.0, gt=0, description="单次分类库调用超时（秒）")
    store_retry_attempts: int = Field(default=3, ge=1, le=10, description="分类库调用最大尝试次数")
    store_retry_backoff: float = Field(default=0.5, ge=0.0, description="首次重试前等待（秒）")
    store_retry_backoff_max: float = Field(default=8.0, ge=0.0, description="单次重试等待上限（秒）")

    # ---- 检索 ----
    search_top_k: int = Field(default=5, ge=1, description="search 未指定 topK 时的默认值")
    max_search_top_k: int = Field(default=25, ge=1, description="topK 硬上限，超出时截断")

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("openai_api_key", "kimi_api_key", "glm_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
