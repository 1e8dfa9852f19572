from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from browser_pilot.config import CONFIG, calculate_dom_token_budget


class OrchestratorSettings(BaseModel):
    # Loop bounds & pacing
    max_steps: int = Field(15, description="Maximum number of steps before the run asks for manual intervention.")
    recent_steps_window: int = Field(3, description="Number of most recent steps handed to the decision model.")
    pace_delay_seconds: float = Field(0.5, description="Delay between iterations to throttle upstream load.")
    settle_delay_seconds: float = Field(0.1, description="Wait after an observed action before reading DOM mutations back.")

    # Completion & stall heuristics
    mutation_completion_threshold: int = Field(30, description="Mutation count after a click that counts as a significant page update.")
    thought_similarity_threshold: float = Field(0.8, description="Word-set Jaccard similarity above which two thoughts count as repeated.")
    stall_min_steps: int = Field(6, description="Stall detection only runs once this many steps exist.")
    classification_window: int = Field(6, description="Window of recent steps checked for three or more classification-like thoughts.")
    progress_window: int = Field(8, description="Window of steps that must contain at least one successful observation.")
    auto_complete_window: int = Field(5, description="Window of steps inspected by simple-navigation auto-complete.")

    # LLM caller controls
    llm_timeout_seconds: float = Field(30.0, description="Timeout for the primary decision call (seconds).")
    llm_max_retries: int = Field(2, description="Max retries for the decision call on timeout/LLMException.")
    llm_backoff_base_seconds: float = Field(1.0, description="Base seconds for exponential backoff between retries.")
    vision_timeout_seconds: float = Field(15.0, description="Timeout for the screenshot analysis call (seconds).")
    vision_max_retries: int = Field(1, description="Max retries for the screenshot analysis call.")
    enable_visual_analysis: bool = Field(True, description="Annotate screenshots with candidate coordinates before deciding.")

    model: str = Field(default_factory=lambda: CONFIG.LLM_MODEL)
    temperature: float = Field(default_factory=lambda: CONFIG.LLM_TEMPERATURE)
    max_tokens: int = Field(default_factory=lambda: CONFIG.MAX_LLM_TOKENS)
    vision_model: str = Field(default_factory=lambda: CONFIG.VISION_MODEL)
    vision_max_tokens: int = 200

    # State bookkeeping
    processed_retention_seconds: float = Field(300.0, description="How long processed instruction ids are kept before purging.")

    # Clarifier pre-pass
    enable_clarifier: bool = Field(False, description="Score instruction clarity and rewrite it before running.")
    clarity_threshold: int = Field(5, description="Clarity scores below this return needs_clarification.")
    clarifier_model: str = 'gpt-4o-mini'

    # DOM & actions
    dom_token_budget: Optional[int] = Field(None, description="Token budget for the DOM snapshot; calculated from the model when unset.")
    default_scroll_amount: int = Field(300, description="Scroll distance in pixels when the model omits one.")

    # Diagnostics
    slow_screenshot_seconds: float = 1.0
    slow_step_seconds: float = 10.0

    model_config = ConfigDict(validate_assignment=True)

    def resolved_dom_token_budget(self) -> int:
        if self.dom_token_budget is not None:
            return self.dom_token_budget
        return calculate_dom_token_budget(self.model, reply_reserve=self.max_tokens)
