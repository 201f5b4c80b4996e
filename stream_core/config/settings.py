"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
优先级：初始化参数 > 环境变量 > .env > config.yaml。
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
    explicit = os.getenv("STREAM_CONFIG_FILE")
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


class StreamSettings(BaseSettings):
    """流式引擎配置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    api_url: str = Field(
        default="https://inference-ui-api.neureus.workers.dev",
        description="流式接口基础 URL，默认路径拼接在其后",
    )
    api_key: Optional[str] = Field(default=None, description="API 密钥，存在时自动添加 Authorization 头")
    credentials: Literal["omit", "same-origin", "include"] = Field(
        default="same-origin",
        description="请求凭据模式",
    )
    chat_endpoint: Optional[str] = Field(default=None, description="chat 模式端点覆盖")
    completion_endpoint: Optional[str] = Field(default=None, description="completion 模式端点覆盖")
    object_endpoint: Optional[str] = Field(default=None, description="object 模式端点覆盖")

    # ---- 流式行为 ----
    throttle: float = Field(default=0.0, ge=0.0, description="两个 part 之间的最小间隔（秒），0 为关闭")
    max_retries: int = Field(default=3, ge=0, le=10, description="单次 exchange 最大重试次数")
    retry_delay: float = Field(default=1.0, ge=0.0, description="重试前等待时间（秒）")
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 日志 ----
    log_dir: Optional[str] = Field(default=None, description="日志目录，为空时输出到 stderr")
    log_level: str = Field(default="INFO", description="日志级别")
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

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

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


settings = StreamSettings()

Settings = StreamSettings
