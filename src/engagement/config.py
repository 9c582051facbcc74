"""Credits configuration.

Reward table and input limits. All settings can be overridden via
``CREDITS_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.engagement.schemas import CreditAction


class CreditsConfig(BaseSettings):
    """Configuration for the credits ledger."""

    model_config = SettingsConfigDict(
        env_prefix="CREDITS_",
        case_sensitive=False,
        extra="ignore",
    )

    save_reward: int = Field(default=2, ge=0)
    share_reward: int = Field(default=3, ge=0)
    report_reward: int = Field(default=1, ge=0)
    profile_bonus: int = Field(default=20, ge=0)

    max_reason_length: int = Field(
        default=500,
        ge=1,
        le=5000,
        description="Maximum length for report and grant reasons",
    )

    def reward_for(self, action: CreditAction) -> int:
        return {
            CreditAction.SAVE: self.save_reward,
            CreditAction.SHARE: self.share_reward,
            CreditAction.REPORT: self.report_reward,
        }[action]
