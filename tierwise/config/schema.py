"""Configuration schema using Pydantic."""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tierwise.tiers import (
    DEFAULT_EMERGENCY_CAP,
    DEFAULT_FALLBACK_CHAIN,
    Tier,
    validate_fallback_chain,
)


class TierModelConfig(BaseModel):
    """Provider settings behind one tier."""
    model_config = ConfigDict(frozen=True)

    model: str
    api_key: str = ""
    api_base: str | None = None
    max_tokens: int = 4096
    temperature: float = 0.7
    cost_per_1k_tokens: float | None = None  # None = ask litellm's price table


def _default_tiers() -> dict[Tier, TierModelConfig]:
    return {
        Tier.L1: TierModelConfig(
            model="deepseek/deepseek-chat",
            temperature=0.1,
            max_tokens=1000,
            cost_per_1k_tokens=0.0014,
        ),
        Tier.L2: TierModelConfig(
            model="deepseek/deepseek-chat",
            max_tokens=2000,
            cost_per_1k_tokens=0.0014,
        ),
        Tier.L3: TierModelConfig(
            model="openai/glm-4-plus",
            api_base="https://open.bigmodel.cn/api/paas/v4",
        ),
        Tier.L4: TierModelConfig(model="anthropic/claude-sonnet-4-5"),
        Tier.L5: TierModelConfig(model="anthropic/claude-opus-4-5", max_tokens=8192),
    }


class RetryConfig(BaseModel):
    """Per-tier retry/backoff settings."""
    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0)
    base_delay_ms: int = Field(default=1000, ge=0)


class BudgetConfig(BaseModel):
    """Daily budget and alert thresholds."""
    model_config = ConfigDict(frozen=True)

    daily_budget: float = Field(default=5.0, gt=0)  # USD
    thresholds: list[float] = Field(default_factory=lambda: [0.70, 0.90])
    emergency_threshold: float = 0.90
    emergency_cap: dict[Tier, Tier] = Field(default_factory=lambda: dict(DEFAULT_EMERGENCY_CAP))

    @field_validator("thresholds")
    @classmethod
    def _ascending_fractions(cls, value: list[float]) -> list[float]:
        if not value:
            raise ValueError("at least one threshold is required")
        if any(not 0 < t <= 1 for t in value):
            raise ValueError("thresholds must be fractions in (0, 1]")
        if any(b <= a for a, b in zip(value, value[1:])):
            raise ValueError("thresholds must be strictly ascending")
        return value

    @model_validator(mode="after")
    def _emergency_is_a_threshold(self) -> "BudgetConfig":
        if self.emergency_threshold not in self.thresholds:
            raise ValueError("emergency_threshold must be one of the thresholds")
        missing = [t.value for t in Tier if t not in self.emergency_cap]
        if missing:
            raise ValueError(f"emergency_cap is missing tiers: {', '.join(missing)}")
        return self


class LengthBonusRule(BaseModel):
    """Adds `bonus` to the complexity score when text is longer than `min_length`."""
    model_config = ConfigDict(frozen=True)

    min_length: int
    bonus: float


class ClassifierConfig(BaseModel):
    """Keyword/length heuristic used to score requests."""
    model_config = ConfigDict(frozen=True)

    keywords: dict[Tier, list[str]] = Field(default_factory=lambda: {
        Tier.L5: [
            "life advice", "strategy", "final draft", "decision", "important",
            "人生", "相談", "重要", "戦略", "最終", "仕上げ", "決断", "判断",
        ],
        Tier.L4: [
            "blog", "first draft", "article", "essay", "email", "reply to",
            "ブログ", "初稿", "記事", "文章", "執筆", "メール", "返信", "作成",
        ],
        Tier.L3: [
            "calendar", "gmail", "schedule", "meeting", "appointment",
            "カレンダー", "スケジュール", "会議", "予定", "設定",
        ],
        Tier.L2: [
            "idea", "summarize", "summary", "organize", "chat", "classify",
            "アイデア", "まとめ", "整理", "チャット", "要約", "分類",
        ],
        Tier.L1: [
            "file", "debug", "ubuntu", "system", "bugfix", "config",
            "ファイル", "デバッグ", "システム", "修正",
        ],
    })
    tier_weights: dict[Tier, float] = Field(default_factory=lambda: {
        Tier.L1: 1, Tier.L2: 3, Tier.L3: 5, Tier.L4: 7, Tier.L5: 10,
    })
    # Minimum score for each tier above L1
    tier_thresholds: dict[Tier, float] = Field(default_factory=lambda: {
        Tier.L2: 3, Tier.L3: 5, Tier.L4: 7, Tier.L5: 10,
    })
    length_bonus_rules: list[LengthBonusRule] = Field(default_factory=lambda: [
        LengthBonusRule(min_length=500, bonus=2),
        LengthBonusRule(min_length=1000, bonus=2),
    ])


class EmotionConfig(BaseModel):
    """Mood lookup tables and the tier nudges they drive."""
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    # Checked in insertion order; first mood with a hit wins
    mood_keywords: dict[str, list[str]] = Field(default_factory=lambda: {
        "tired": ["tired", "exhausted", "sleepy", "worn out", "疲れ", "つかれ", "眠い", "だるい"],
        "stressed": ["stressed", "overwhelmed", "swamped", "panic", "忙しい", "急い", "ストレス", "大変"],
        "excited": ["excited", "awesome", "can't wait", "楽しい", "嬉しい", "やった", "最高"],
        "focused": ["focus", "working on", "deadline", "集中", "作業", "仕事", "タスク"],
    })
    distress_moods: list[str] = Field(default_factory=lambda: ["stressed"])
    gentle_moods: list[str] = Field(default_factory=lambda: ["tired"])
    gentle_time_buckets: list[str] = Field(default_factory=lambda: ["night"])
    gentle_substitutions: dict[Tier, Tier] = Field(default_factory=lambda: {Tier.L2: Tier.L3})


class ReportingConfig(BaseModel):
    """Budget alert reporting sink."""
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    dashboard_path: str = "~/.tierwise/dashboard.md"
    min_interval_seconds: int = 3600


class UsageLogConfig(BaseModel):
    """Append-only usage log."""
    model_config = ConfigDict(frozen=True)

    log_path: str = "~/.tierwise/usage.jsonl"
    max_records: int = 10_000  # In-memory cap; the file is never truncated
    log_sample_every: int = Field(default=1, ge=1)  # Log every Nth record at INFO


class Config(BaseSettings):
    """Root configuration for tierwise."""
    model_config = SettingsConfigDict(
        env_prefix="TIERWISE_",
        env_nested_delimiter="__",
        frozen=True,
    )

    tiers: dict[Tier, TierModelConfig] = Field(default_factory=_default_tiers)
    fallback_chain: dict[Tier, Tier | None] = Field(
        default_factory=lambda: dict(DEFAULT_FALLBACK_CHAIN)
    )
    retry: RetryConfig = Field(default_factory=RetryConfig)
    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    emotion: EmotionConfig = Field(default_factory=EmotionConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)
    usage: UsageLogConfig = Field(default_factory=UsageLogConfig)

    @model_validator(mode="after")
    def _check_tables(self) -> "Config":
        validate_fallback_chain(self.fallback_chain)
        missing = [t.value for t in Tier if t not in self.tiers]
        if missing:
            raise ValueError(f"No model configured for tiers: {', '.join(missing)}")
        return self

    def get_api_key(self, tier: Tier) -> str | None:
        """API key for a tier, or None to let litellm read the environment."""
        return self.tiers[tier].api_key or None
