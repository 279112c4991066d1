import json
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

from dotenv import load_dotenv

from ..exceptions import ConfigError

ENV_PREFIX = "VISA_ETL_"

DEFAULT_BASE_URL = "https://www.visaguideqatar.com"

DEFAULT_SEED_URLS = [
    "https://www.visaguideqatar.com/",
    "https://www.visaguideqatar.com/visas/",
    "https://www.visaguideqatar.com/work-visa/",
    "https://www.visaguideqatar.com/family-visa/",
    "https://www.visaguideqatar.com/business-visa/",
    "https://www.visaguideqatar.com/tourist-visa/",
    "https://www.visaguideqatar.com/residence-permit/",
    "https://www.visaguideqatar.com/visa-extension/",
    "https://www.visaguideqatar.com/visa-renewal/",
]

# URL stage: path keywords that suggest an immigration page
DEFAULT_ALLOW_URL_PATTERNS = [
    r"visa",
    r"immigration",
    r"residen(?:ce|cy)",
    r"permit",
    r"sponsor",
    r"passport",
    r"citizenship",
]

# URL stage: hard veto
DEFAULT_EXCLUDE_URL_PATTERNS = [
    r"/blog(?:/|$)",
    r"/news(?:/|$)",
    r"/ads?(?:/|$)",
    r"/advert",
    r"/tag/",
    r"/category/",
    r"/author/",
    r"/wp-(?:admin|login|json)",
    r"/login",
    r"/feed/?$",
    r"\.(?:pdf|jpe?g|png|gif|svg|webp|zip|docx?|xlsx?)$",
    r"[?&]replytocom=",
]

DEFAULT_TOPIC_KEYWORDS = [
    "visa",
    "immigration",
    "residence permit",
    "residency",
    "work permit",
    "entry permit",
    "exit permit",
    "sponsorship",
    "passport",
]

DEFAULT_SECTION_INDICATORS = [
    "eligibility",
    "required documents",
    "application process",
    "visa fee",
    "processing time",
    "how to apply",
    "visa types",
    "residence permit",
]

DEFAULT_TOURISM_KEYWORDS = [
    "hotel",
    "restaurant",
    "shopping",
    "tourism",
    "sightseeing",
    "attractions",
]

DEFAULT_OFFICIAL_LINK_PATTERNS = [
    r"\.gov\.qa",
    r"moi\.gov\.qa",
    r"hukoomi\.qa",
    r"portal\.www\.gov\.qa",
    r"mol\.gov\.qa",
]

DEFAULT_CURRENCY_ALIASES = {
    "QAR": ["QAR", "QR", "Qatari Riyals", "Qatari Riyal"],
}

DEFAULT_FREE_FEE_PHRASES = [
    "free of charge",
    "no fee",
    "no fees",
    "without any charge",
]

DEFAULT_ELIGIBILITY_KEYWORDS = ["eligibility", "requirements", "who can apply"]
DEFAULT_DOCUMENT_KEYWORDS = ["required documents", "documents needed", "documents required", "documentation"]
DEFAULT_FEE_KEYWORDS = ["fee", "cost", "charges", "price"]
DEFAULT_PROCESSING_TIME_KEYWORDS = ["processing time", "timeline", "duration", "how long"]
DEFAULT_STEP_KEYWORDS = ["how to apply", "application process", "steps", "procedure"]


@dataclass
class EtlConfig:
    """
    Every knob of a crawl-classify-extract-load run.

    Keyword lists, patterns, weights and the acceptance threshold are plain
    configuration so operators can retune precision/recall without code changes.
    """
    base_url: str = DEFAULT_BASE_URL
    seed_urls: List[str] = field(default_factory=lambda: list(DEFAULT_SEED_URLS))

    # Frontier
    max_depth: int = 3
    max_pages: int = 100

    # Politeness
    min_delay_ms: int = 500
    max_delay_ms: int = 1500
    user_agent: str = "QatarVisaGuideBot/1.0 (+https://example.org/bot)"
    honor_robots: bool = True

    # Fetching
    max_retries: int = 3
    timeout_ms: int = 30000
    fetch_strategy: str = "http"  # "http" | "browser"
    workers: int = 1
    html_parser: str = "html.parser"

    # Relevance classifier
    allow_url_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_ALLOW_URL_PATTERNS))
    exclude_url_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_URL_PATTERNS))
    topic_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_TOPIC_KEYWORDS))
    section_indicators: List[str] = field(default_factory=lambda: list(DEFAULT_SECTION_INDICATORS))
    tourism_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_TOURISM_KEYWORDS))
    official_link_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_OFFICIAL_LINK_PATTERNS))
    url_stage_weight: float = 30.0
    acceptance_threshold: float = 40.0

    # Extraction
    currency_aliases: Dict[str, List[str]] = field(default_factory=lambda: {
        code: list(aliases) for code, aliases in DEFAULT_CURRENCY_ALIASES.items()
    })
    free_fee_phrases: List[str] = field(default_factory=lambda: list(DEFAULT_FREE_FEE_PHRASES))
    eligibility_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_ELIGIBILITY_KEYWORDS))
    document_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_DOCUMENT_KEYWORDS))
    fee_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_FEE_KEYWORDS))
    processing_time_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_PROCESSING_TIME_KEYWORDS))
    step_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_STEP_KEYWORDS))

    # Store
    database_url: Optional[str] = None

    def __post_init__(self):
        """
        Clean up and validate
        """
        self.base_url = (self.base_url or "").strip().rstrip("/")
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigError(f"base_url must be an absolute http(s) URL: {self.base_url!r}")

        if self.max_depth < 0:
            raise ConfigError("max_depth must be >= 0")
        if self.max_pages <= 0:
            raise ConfigError("max_pages must be > 0")
        if self.min_delay_ms < 0 or self.max_delay_ms < self.min_delay_ms:
            raise ConfigError(
                f"delay range invalid: min={self.min_delay_ms}ms max={self.max_delay_ms}ms"
            )
        if self.max_retries < 0:
            raise ConfigError("max_retries must be >= 0")
        if self.timeout_ms <= 0:
            raise ConfigError("timeout_ms must be > 0")
        if self.workers < 1:
            raise ConfigError("workers must be >= 1")
        if self.fetch_strategy not in ("http", "browser"):
            raise ConfigError(f"unsupported fetch_strategy: {self.fetch_strategy}, use http/browser")
        if not 0 <= self.acceptance_threshold <= 100:
            raise ConfigError("acceptance_threshold must be within [0, 100]")
        if not self.currency_aliases:
            raise ConfigError("currency_aliases must name at least one currency")
        for code, aliases in self.currency_aliases.items():
            if not str(code).strip() or any(not str(alias).strip() for alias in aliases):
                raise ConfigError(f"currency_aliases has a blank code or alias: {code!r}")

    # ------------------ derived values ------------------

    @property
    def origin(self) -> str:
        parsed = urlparse(self.base_url)
        return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"

    @property
    def min_delay_seconds(self) -> float:
        return self.min_delay_ms / 1000.0

    @property
    def max_delay_seconds(self) -> float:
        return self.max_delay_ms / 1000.0

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    # ------------------ construction ------------------

    def with_overrides(self, **overrides: Any) -> "EtlConfig":
        """Copy with the non-None overrides applied (re-validated)"""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EtlConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"unknown configuration keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "EtlConfig":
        """Load a JSON configuration file"""
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"cannot read configuration file {path}: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, base: Optional["EtlConfig"] = None, env_path: Optional[str] = None) -> "EtlConfig":
        """
        Apply VISA_ETL_* environment variables (and .env) on top of `base`.

        Lists are comma separated, dicts are JSON, booleans accept 1/true/yes/on.
        DATABASE_URL is honoured without the prefix.
        """
        load_dotenv(env_path)
        base = base or cls()
        overrides: Dict[str, Any] = {}

        for f in fields(cls):
            raw = os.getenv(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            overrides[f.name] = _coerce(f.name, raw, getattr(base, f.name))

        if "database_url" not in overrides and os.getenv("DATABASE_URL"):
            overrides["database_url"] = os.getenv("DATABASE_URL")

        return replace(base, **overrides)


def _coerce(name: str, raw: str, current: Any) -> Any:
    try:
        if isinstance(current, bool):
            return raw.strip().lower() in ("1", "true", "yes", "on")
        if isinstance(current, int):
            return int(raw)
        if isinstance(current, float):
            return float(raw)
        if isinstance(current, list):
            return [item.strip() for item in raw.split(",") if item.strip()]
        if isinstance(current, dict):
            return json.loads(raw)
    except ValueError as e:
        raise ConfigError(f"invalid value for {ENV_PREFIX}{name.upper()}: {raw!r}") from e
    return raw
