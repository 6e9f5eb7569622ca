"""
Image validation result model.

Produced by ImageQualityValidator, consumed by the wizard's
Config -> Shipping guard and shown inline on the configuration step.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional


class QualityLevel(Enum):
    """
    Print quality verdict, best first.

    Ordering follows declaration order via ``rank`` so callers can compare
    levels (``a.rank >= b.rank`` means a is at least as good as b).
    """

    UNACCEPTABLE = "unacceptable"
    POOR = "poor"
    ACCEPTABLE = "acceptable"
    GOOD = "good"
    EXCELLENT = "excellent"

    @property
    def rank(self) -> int:
        return list(QualityLevel).index(self)

    @property
    def is_printable(self) -> bool:
        """Poor and Unacceptable block the order."""
        return self.rank >= QualityLevel.ACCEPTABLE.rank


@dataclass(frozen=True)
class ImageValidationResult:
    """Quality verdict for one image at one (size, product type)."""

    image_width_px: int
    image_height_px: int
    required_width_px: int
    required_height_px: int
    quality_level: QualityLevel
    message: str
    warnings: List[str] = field(default_factory=list)
    coverage_ratio: float = 0.0
    effective_dpi: int = 0
    recommended_size: Optional[str] = None
    size: Optional[str] = None
    product_type: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.quality_level.is_printable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "imageWidthPx": self.image_width_px,
            "imageHeightPx": self.image_height_px,
            "requiredWidthPx": self.required_width_px,
            "requiredHeightPx": self.required_height_px,
            "qualityLevel": self.quality_level.value,
            "isValid": self.is_valid,
            "warnings": list(self.warnings),
            "message": self.message,
            "coverageRatio": round(self.coverage_ratio, 4),
            "effectiveDpi": self.effective_dpi,
            "recommendedSize": self.recommended_size,
            "size": self.size,
            "productType": self.product_type,
        }
