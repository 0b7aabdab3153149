from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    anthropic_api_key: str = ""
    redis_url: str = "redis://redis:6379/0"

    vision_model: str = "claude-sonnet-4-5-20250929"

    # Anthropic API timeout settings (seconds)
    anthropic_timeout: int = 60
    anthropic_connect_timeout: int = 10

    # Connection retry (exponential backoff)
    inference_max_attempts: int = 3
    inference_retry_base_delay: float = 1.0

    # Generation parameters per analysis tool
    initial_temperature: float = 0.7
    initial_max_tokens: int = 2048
    brand_search_temperature: float = 0.0  # Literal matches against official menus
    brand_search_max_tokens: int = 2048
    deep_analysis_temperature: float = 0.5
    deep_analysis_max_tokens: int = 4096
    nutrition_lookup_temperature: float = 0.2
    nutrition_lookup_max_tokens: int = 2048
    retrospective_temperature: float = 0.7
    retrospective_max_tokens: int = 1024

    # Image preparation and transient storage
    image_max_dimension: int = 1024
    image_jpeg_quality: int = 80
    deep_analysis_max_image_bytes: int = 2 * 1024 * 1024
    image_store_enabled: bool = False
    image_store_ttl_seconds: int = 86400  # 24 hours

    # Escalation thresholds (product-tuned, keep in sync with analytics)
    escalation_confidence_threshold: float = 0.75
    deep_analysis_confidence_ceiling: float = 0.85
    nutrition_lookup_confidence_ceiling: float = 0.9
    high_calorie_threshold: int = 800
    high_calorie_confidence_ceiling: float = 0.85
    max_simple_ingredient_count: int = 5
    nutrition_lookup_max_ingredients: int = 3
    confidence_bump: float = 0.15
    confidence_bump_cap: float = 0.9

    # Brand cache
    brand_cache_ttl_days: int = 7

    # Parser fallback
    fallback_confidence: float = 0.5

    # Retrospective parsing
    retrospective_window_offset_minutes: int = 30
    retrospective_enrich_enabled: bool = False

    # Pipeline state mirroring over Redis pub/sub
    state_publish_enabled: bool = False

    log_level: str = "INFO"

    class Config:
        env_file = ".env"


settings = Settings()
