"""Application configuration."""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # Application
    app_name: str = "Pose Coach"
    debug: bool = False
    api_prefix: str = "/api"
    cors_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    
    # Classification
    smoothing_window: int = 5  # Raw probability samples averaged per classify call
    
    # Rep Counting
    probability_threshold: float = 0.6  # Dominant class must exceed this to become a target state
    state_stability_frames: int = 2  # Consecutive frames before a target state is confirmed
    min_rep_interval_ms: int = 800  # No state change this soon after a completed rep
    max_history_size: int = 100  # Endpoint confidence/metric history length
    
    # Session Feedback
    rep_cache_size: int = 15
    excellent_form_score: float = 9.0  # form_score (0-10) above which praise is considered
    excellent_feedback_min_gap: int = 3  # Reps between two excellent-form notifications
    max_count_announcement: int = 30  # Pre-recorded count cues only exist up to this number
    recent_reps_in_summary: int = 5
    
    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
