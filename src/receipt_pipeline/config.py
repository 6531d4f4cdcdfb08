import os
from dataclasses import dataclass, replace
from typing import Dict, Optional

from dotenv import dotenv_values

from .errors import ConfigurationError
from .logging import get_logger

log = get_logger("config")

AI_BACKENDS = ("gemini", "openai", "none")

DEFAULT_AI_BACKEND = "gemini"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_AI_TIMEOUT = 60
DEFAULT_TESSERACT_LANG = "eng"


def _find_upwards(start_dir: str, filename: str) -> Optional[str]:
    """Return first matching file found when walking up from start_dir.

    Lets the CLI be started from a subdirectory and still pick up the
    repository-level `.env`.
    """
    d = os.path.abspath(start_dir or ".")
    while True:
        candidate = os.path.join(d, filename)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(d)
        if parent == d:
            return None
        d = parent


def _read_dotenv(dotenv_dir: str) -> Dict[str, str]:
    """Read the nearest .env into a mapping; never mutates os.environ."""
    path = _find_upwards(dotenv_dir, ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir)}")
        return {}
    values = {k: v for k, v in dotenv_values(path).items() if v is not None}
    log.debug(f"Loaded {len(values)} key(s) from .env at {path}")
    return values


def _lookup(env: Dict[str, str], *keys: str) -> Optional[str]:
    """First non-empty value for any of ``keys``: process env wins over .env."""
    for key in keys:
        v = os.environ.get(key)
        if v and v.strip():
            return v.strip()
    for key in keys:
        v = env.get(key)
        if v and v.strip():
            return v.strip()
    return None


@dataclass(frozen=True)
class PipelineSettings:
    ai_backend: str = DEFAULT_AI_BACKEND
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    openai_base_url: Optional[str] = None
    ai_timeout: int = DEFAULT_AI_TIMEOUT
    tesseract_cmd: Optional[str] = None
    tesseract_lang: str = DEFAULT_TESSERACT_LANG

    def with_backend(self, backend: str) -> "PipelineSettings":
        """Copy with a different AI backend (CLI --backend override)."""
        return replace(self, ai_backend=_validate_backend(backend))


def _validate_backend(value: str) -> str:
    backend = (value or "").strip().lower()
    if backend not in AI_BACKENDS:
        raise ConfigurationError(
            f"Unknown AI backend {value!r}; expected one of {', '.join(AI_BACKENDS)}",
            component="config",
        )
    return backend


def _parse_timeout(value: Optional[str]) -> int:
    if value is None:
        return DEFAULT_AI_TIMEOUT
    try:
        timeout = int(value)
    except ValueError as exc:
        raise ConfigurationError(
            f"RECEIPT_AI_TIMEOUT must be an integer number of seconds, got {value!r}",
            component="config",
            original_error=exc,
        )
    if timeout <= 0:
        raise ConfigurationError("RECEIPT_AI_TIMEOUT must be positive", component="config")
    return timeout


def load_settings(dotenv_dir: str) -> PipelineSettings:
    """Build PipelineSettings from the environment with a .env fallback.

    A missing API key is not an error: the matching AI tier simply reports
    itself unavailable and the pipeline falls through to OCR + regex.
    """
    env = _read_dotenv(dotenv_dir)
    settings = PipelineSettings(
        ai_backend=_validate_backend(_lookup(env, "RECEIPT_AI_BACKEND") or DEFAULT_AI_BACKEND),
        gemini_api_key=_lookup(env, "GEMINI_API_KEY", "gemini_api_key"),
        gemini_model=_lookup(env, "GEMINI_MODEL") or DEFAULT_GEMINI_MODEL,
        openai_api_key=_lookup(env, "OPENAI_API_KEY", "openai_api_key"),
        openai_model=_lookup(env, "OPENAI_MODEL") or DEFAULT_OPENAI_MODEL,
        openai_base_url=_lookup(env, "OPENAI_BASE_URL"),
        ai_timeout=_parse_timeout(_lookup(env, "RECEIPT_AI_TIMEOUT")),
        tesseract_cmd=_lookup(env, "TESSERACT_CMD"),
        tesseract_lang=_lookup(env, "TESSERACT_LANG") or DEFAULT_TESSERACT_LANG,
    )
    gemini_key = "set" if settings.gemini_api_key else "missing"
    openai_key = "set" if settings.openai_api_key else "missing"
    log.info(
        f"Settings loaded: backend={settings.ai_backend} gemini_key={gemini_key} openai_key={openai_key} "
        f"timeout={settings.ai_timeout}s ocr_lang={settings.tesseract_lang}"
    )
    return settings
