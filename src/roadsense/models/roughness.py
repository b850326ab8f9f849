"""
Roughness Models
================

Road-surface roughness summary attached to a completed drive.
"""

from pydantic import BaseModel, Field, model_validator


class RoughnessBreakdown(BaseModel):
    """
    Share of full-window samples in each roughness tier.

    Percentages are integers and always sum to exactly 100.

    Attributes:
        smooth: % of windows with std-dev below the smooth threshold
        light: % in the light tier
        moderate: % in the moderate tier
        rough: % in the rough tier
        very_rough: % at or above the rough threshold
    """

    smooth: int = Field(default=0, ge=0, le=100)
    light: int = Field(default=0, ge=0, le=100)
    moderate: int = Field(default=0, ge=0, le=100)
    rough: int = Field(default=0, ge=0, le=100)
    very_rough: int = Field(default=0, ge=0, le=100)

    @model_validator(mode="after")
    def check_total(self) -> "RoughnessBreakdown":
        """Ensure the tiers sum to 100."""
        total = self.smooth + self.light + self.moderate + self.rough + self.very_rough
        if total != 100:
            raise ValueError(f"Roughness breakdown must sum to 100, got {total}")
        return self


class RoughnessResult(BaseModel):
    """
    Roughness analysis of one drive.

    Attributes:
        score: 0-100, 100 = perfectly smooth
        breakdown: Tier percentages
        avg_roughness: Mean full-window Z std-dev (m/s²)
        max_roughness: Peak full-window Z std-dev (m/s²)
        sample_count: Number of full-window values the result is based on
    """

    score: int = Field(..., ge=0, le=100, description="Roughness score (100 = smoothest)")
    breakdown: RoughnessBreakdown
    avg_roughness: float = Field(..., ge=0.0, description="Mean Z std-dev (m/s²)")
    max_roughness: float = Field(..., ge=0.0, description="Peak Z std-dev (m/s²)")
    sample_count: int = Field(default=0, ge=0, description="Full windows analysed")

    class Config:
        """Pydantic model configuration."""

        json_schema_extra = {
            "example": {
                "score": 82,
                "breakdown": {
                    "smooth": 41,
                    "light": 47,
                    "moderate": 10,
                    "rough": 2,
                    "very_rough": 0,
                },
                "avg_roughness": 0.91,
                "max_roughness": 3.42,
                "sample_count": 5986,
            }
        }
