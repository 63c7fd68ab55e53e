"""
Configuration Management

시스템 설정 관리
"""

import os
import yaml
from dataclasses import asdict, dataclass, field
from typing import Optional, Dict, Any, List
from pathlib import Path
import logging

from .llm.factory import TASK_TEMPERATURES
from .models.convention import CONVENTION_CATEGORIES
from .models.review import REVIEWER_CATEGORIES
from .review.routing import ROUTING_FALLBACK_POLICIES


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str, default: List[str]) -> List[str]:
    value = os.getenv(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class LLMConfig:
    """언어 모델 설정"""
    provider: str = "chat"  # "chat" (OpenAI-compatible HTTP) or "local" (transformers)
    model_name: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    base_url: str = "https://api.openai.com/v1"
    max_tokens: int = 2048
    request_timeout: float = 60.0
    call_timeout: Optional[float] = 120.0
    device: Optional[str] = None
    task_temperatures: Dict[str, float] = field(default_factory=lambda: dict(TASK_TEMPERATURES))


@dataclass
class StoreConfig:
    """컨벤션 저장소 설정"""
    backend: str = "json"  # "json" or "memory"
    path: str = "./data/conventions"


@dataclass
class GitHubConfig:
    """GitHub API 설정"""
    token: Optional[str] = None
    api_base_url: str = "https://api.github.com"
    timeout_seconds: int = 30
    branch: Optional[str] = None
    max_files: int = 50
    max_file_size: int = 10000


@dataclass
class ReviewConfig:
    """리뷰 설정"""
    reviewer_categories: List[str] = field(default_factory=lambda: list(REVIEWER_CATEGORIES))
    routing_fallback: str = "all"
    summarize_review: bool = True
    delivery_target: str = "console"
    max_file_chars: int = 2000
    max_diff_chars: int = 8000


@dataclass
class LoggingConfig:
    """로깅 설정"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_path: Optional[str] = None
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5


@dataclass
class AppConfig:
    """전체 애플리케이션 설정"""
    llm: LLMConfig = field(default_factory=LLMConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    review: ReviewConfig = field(default_factory=ReviewConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    repository: Optional[str] = None
    debug: bool = False

    @classmethod
    def from_env(cls) -> "AppConfig":
        """환경 변수에서 설정 로드"""
        call_timeout = os.getenv("LLM_CALL_TIMEOUT", "120")
        return cls(
            llm=LLMConfig(
                provider=os.getenv("LLM_PROVIDER", "chat"),
                model_name=os.getenv("LLM_MODEL", "gpt-4o-mini"),
                api_key=os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY"),
                base_url=os.getenv("LLM_BASE_URL", "https://api.openai.com/v1"),
                max_tokens=int(os.getenv("LLM_MAX_TOKENS", "2048")),
                request_timeout=float(os.getenv("LLM_REQUEST_TIMEOUT", "60")),
                call_timeout=float(call_timeout) if call_timeout else None,
                device=os.getenv("LLM_DEVICE"),
            ),
            store=StoreConfig(
                backend=os.getenv("STORE_BACKEND", "json"),
                path=os.getenv("STORE_PATH", "./data/conventions"),
            ),
            github=GitHubConfig(
                token=os.getenv("GITHUB_TOKEN"),
                api_base_url=os.getenv("GITHUB_API_URL", "https://api.github.com"),
                timeout_seconds=int(os.getenv("GITHUB_TIMEOUT", "30")),
                branch=os.getenv("GITHUB_BRANCH"),
                max_files=int(os.getenv("GITHUB_MAX_FILES", "50")),
                max_file_size=int(os.getenv("GITHUB_MAX_FILE_SIZE", "10000")),
            ),
            review=ReviewConfig(
                reviewer_categories=_env_list("REVIEWER_CATEGORIES", list(REVIEWER_CATEGORIES)),
                routing_fallback=os.getenv("ROUTING_FALLBACK", "all"),
                summarize_review=_env_bool("SUMMARIZE_REVIEW", "true"),
                delivery_target=os.getenv("DELIVERY_TARGET", "console"),
                max_file_chars=int(os.getenv("MAX_FILE_CHARS", "2000")),
                max_diff_chars=int(os.getenv("MAX_DIFF_CHARS", "8000")),
            ),
            logging=LoggingConfig(
                level=os.getenv("LOG_LEVEL", "INFO"),
                format=os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
                file_path=os.getenv("LOG_FILE"),
                max_file_size=int(os.getenv("LOG_MAX_SIZE", str(10 * 1024 * 1024))),
                backup_count=int(os.getenv("LOG_BACKUP_COUNT", "5")),
            ),
            repository=os.getenv("REPOSITORY_FULL_NAME"),
            debug=_env_bool("DEBUG", "false"),
        )

    @classmethod
    def from_dict(cls, config_data: Dict[str, Any]) -> "AppConfig":
        """딕셔너리에서 설정 생성"""
        llm_data = dict(config_data.get('llm') or {})
        temperatures = dict(TASK_TEMPERATURES)
        temperatures.update(llm_data.pop('task_temperatures', None) or {})

        return cls(
            llm=LLMConfig(task_temperatures=temperatures, **llm_data),
            store=StoreConfig(**(config_data.get('store') or {})),
            github=GitHubConfig(**(config_data.get('github') or {})),
            review=ReviewConfig(**(config_data.get('review') or {})),
            logging=LoggingConfig(**(config_data.get('logging') or {})),
            repository=config_data.get('repository'),
            debug=config_data.get('debug', False),
        )

    @classmethod
    def from_yaml(cls, config_path: str) -> "AppConfig":
        """YAML 파일에서 설정 로드"""
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        return cls.from_dict(config_data)

    def validate(self) -> None:
        """설정 유효성 검사"""
        errors = []

        if self.llm.provider not in ("chat", "local"):
            errors.append(f"Invalid LLM provider: {self.llm.provider}")

        if not self.llm.model_name:
            errors.append("LLM model name is required")

        if self.llm.call_timeout is not None and self.llm.call_timeout <= 0:
            errors.append("LLM call timeout must be positive")

        for task, temperature in self.llm.task_temperatures.items():
            if not 0.0 <= temperature <= 2.0:
                errors.append(f"Temperature for {task} must be between 0.0 and 2.0")

        if self.store.backend not in ("json", "memory"):
            errors.append(f"Invalid store backend: {self.store.backend}")

        if not self.review.reviewer_categories:
            errors.append("At least one reviewer category is required")
        unknown = [c for c in self.review.reviewer_categories if c not in CONVENTION_CATEGORIES]
        if unknown:
            errors.append(f"Unknown reviewer categories: {', '.join(unknown)}")

        if self.review.routing_fallback not in ROUTING_FALLBACK_POLICIES:
            errors.append(f"Invalid routing fallback policy: {self.review.routing_fallback}")

        if self.review.delivery_target not in ("console", "github"):
            errors.append(f"Invalid delivery target: {self.review.delivery_target}")

        if self.review.max_file_chars <= 0:
            errors.append("Max file chars must be positive")

        if self.repository is not None and self.repository.count('/') != 1:
            errors.append(f"Repository must be 'owner/repo': {self.repository}")

        # 로그 레벨 검증
        valid_log_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if self.logging.level.upper() not in valid_log_levels:
            errors.append(f"Invalid log level: {self.logging.level}")

        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")

    def to_dict(self) -> Dict[str, Any]:
        """설정을 딕셔너리로 변환"""
        data = asdict(self)
        # 보안상 토큰은 제외
        data['llm'].pop('api_key', None)
        data['github'].pop('token', None)
        return data


class ConfigManager:
    """설정 관리자"""

    def __init__(self, config: Optional[AppConfig] = None):
        self._config = config or AppConfig.from_env()
        self._config.validate()
        self._setup_logging()

    @property
    def config(self) -> AppConfig:
        """현재 설정 반환"""
        return self._config

    def update_config(self, **kwargs) -> None:
        """설정 업데이트"""
        config_dict = asdict(self._config)

        for key, value in kwargs.items():
            if '.' in key:
                # 중첩된 설정 (예: 'review.routing_fallback')
                section, field_name = key.split('.', 1)
                if section in config_dict and isinstance(config_dict[section], dict):
                    config_dict[section][field_name] = value
            else:
                config_dict[key] = value

        updated = AppConfig.from_dict(config_dict)
        updated.validate()
        self._config = updated
        self._setup_logging()

    def _setup_logging(self) -> None:
        """로깅 설정"""
        level = logging.DEBUG if self._config.debug else getattr(logging, self._config.logging.level.upper())
        logging.basicConfig(
            level=level,
            format=self._config.logging.format,
        )

        # 파일 로깅이 설정된 경우 로테이션 설정
        if self._config.logging.file_path:
            from logging.handlers import RotatingFileHandler

            root_logger = logging.getLogger()
            for handler in root_logger.handlers:
                if isinstance(handler, RotatingFileHandler) and \
                        handler.baseFilename == os.path.abspath(self._config.logging.file_path):
                    return

            handler = RotatingFileHandler(
                self._config.logging.file_path,
                maxBytes=self._config.logging.max_file_size,
                backupCount=self._config.logging.backup_count,
            )
            handler.setFormatter(logging.Formatter(self._config.logging.format))
            root_logger.addHandler(handler)


# 전역 설정 관리자 인스턴스 (첫 사용 시 생성)
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> AppConfig:
    """현재 설정 반환"""
    return get_config_manager().config


def update_config(**kwargs) -> None:
    """설정 업데이트"""
    get_config_manager().update_config(**kwargs)
