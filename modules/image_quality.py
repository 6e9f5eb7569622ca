"""
Image quality gate for print orders.

Checks whether an image has enough pixels for the selected print size.
The check is purely computational - pixel dimensions come from the image
metrics client (modules/image_metrics.py).

Coverage ratio:
    required_px = inches * PRINT_DPI          (per axis)
    coverage    = min(actual_w / required_w, actual_h / required_h)

Quality levels (coverage thresholds, configurable):
    >= 1.0  excellent
    >= 0.8  good
    >= 0.6  acceptable
    >= 0.4  poor          (blocks the order)
    <  0.4  unacceptable  (blocks the order)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union
import logging

from core.exceptions import ConfigurationError
from models.product import PrintSize, ProductType, parse_product_type, parse_size
from models.validation import ImageValidationResult, QualityLevel


DEFAULT_PRINT_DPI = 300

# Relative aspect difference above which the print will be visibly cropped
ASPECT_TOLERANCE = 0.05

CANVAS_WRAP_INCHES = 1.5


@dataclass(frozen=True)
class QualityThresholds:
    """Minimum coverage ratio for each printable/poor level."""
    excellent: float = 1.0
    good: float = 0.8
    acceptable: float = 0.6
    poor: float = 0.4

    def __post_init__(self):
        if not (self.excellent >= self.good >= self.acceptable >= self.poor >= 0):
            raise ValueError("quality thresholds must be non-increasing and non-negative")

    def level_for(self, ratio: float) -> QualityLevel:
        if ratio >= self.excellent:
            return QualityLevel.EXCELLENT
        if ratio >= self.good:
            return QualityLevel.GOOD
        if ratio >= self.acceptable:
            return QualityLevel.ACCEPTABLE
        if ratio >= self.poor:
            return QualityLevel.POOR
        return QualityLevel.UNACCEPTABLE


MESSAGES = {
    QualityLevel.EXCELLENT: "Excellent quality - your image will print beautifully at this size.",
    QualityLevel.GOOD: "Good quality - your print will look great.",
    QualityLevel.ACCEPTABLE: "Acceptable quality - print will be clear but not optimal.",
    QualityLevel.POOR: "Low quality at this size - choose a smaller size or a larger image.",
    QualityLevel.UNACCEPTABLE: "Image resolution is too low for quality printing at this size.",
}


class ImageQualityValidator:
    """Validates image pixel dimensions against a print size."""

    def __init__(
        self,
        dpi: int = DEFAULT_PRINT_DPI,
        thresholds: Optional[QualityThresholds] = None,
    ) -> None:
        if dpi <= 0:
            raise ValueError(f"dpi must be positive, got {dpi}")
        self.dpi = dpi
        self.thresholds = thresholds or QualityThresholds()
        self.logger = logging.getLogger(__name__)

    def required_pixels(self, size: PrintSize) -> tuple:
        return size.width_in * self.dpi, size.height_in * self.dpi

    def coverage_ratio(self, width_px: int, height_px: int, size: PrintSize) -> float:
        required_w, required_h = self.required_pixels(size)
        return min(width_px / required_w, height_px / required_h)

    def validate(
        self,
        image_width_px: int,
        image_height_px: int,
        size: Union[str, PrintSize],
        product_type: Union[str, ProductType],
    ) -> ImageValidationResult:
        """
        Produce a quality verdict for one (image, size, product type).

        Raises:
            ConfigurationError: size or product type is not part of the catalogue
        """
        psize, ptype = self._parse(size, product_type)
        required_w, required_h = self.required_pixels(psize)

        if image_width_px <= 0 or image_height_px <= 0:
            return ImageValidationResult(
                image_width_px=max(image_width_px, 0),
                image_height_px=max(image_height_px, 0),
                required_width_px=required_w,
                required_height_px=required_h,
                quality_level=QualityLevel.UNACCEPTABLE,
                message="Unable to verify image dimensions. Please ensure the image is accessible.",
                warnings=[],
                size=psize.value,
                product_type=ptype.value,
            )

        ratio = self.coverage_ratio(image_width_px, image_height_px, psize)
        level = self.thresholds.level_for(ratio)
        effective_dpi = round(min(image_width_px / psize.width_in, image_height_px / psize.height_in))

        recommended = None
        if not level.is_printable:
            recommended = self.find_recommended_size(image_width_px, image_height_px)

        warnings = self._build_warnings(
            level, psize, ptype, image_width_px, image_height_px, effective_dpi, recommended
        )

        self.logger.debug(
            f"Validated {image_width_px}x{image_height_px}px for {ptype.value} {psize.value}: "
            f"ratio={ratio:.3f} level={level.value}"
        )

        return ImageValidationResult(
            image_width_px=image_width_px,
            image_height_px=image_height_px,
            required_width_px=required_w,
            required_height_px=required_h,
            quality_level=level,
            message=MESSAGES[level],
            warnings=warnings,
            coverage_ratio=ratio,
            effective_dpi=effective_dpi,
            recommended_size=recommended.value if recommended else None,
            size=psize.value,
            product_type=ptype.value,
        )

    def find_recommended_size(self, image_width_px: int, image_height_px: int) -> Optional[PrintSize]:
        """Largest print size at which the image is still printable, or None."""
        for size in sorted(PrintSize, key=lambda s: s.area_sq_in, reverse=True):
            ratio = self.coverage_ratio(image_width_px, image_height_px, size)
            if self.thresholds.level_for(ratio).is_printable:
                return size
        return None

    def _build_warnings(
        self,
        level: QualityLevel,
        size: PrintSize,
        product_type: ProductType,
        width_px: int,
        height_px: int,
        effective_dpi: int,
        recommended: Optional[PrintSize],
    ) -> List[str]:
        warnings = []
        required_w, required_h = self.required_pixels(size)

        if level is QualityLevel.GOOD:
            warnings.append(
                f"Image may look slightly soft up close ({effective_dpi} DPI at {size.label})."
            )
        elif level is QualityLevel.ACCEPTABLE:
            warnings.append(
                f"Image will appear soft when printed at this size ({effective_dpi} DPI). "
                f"For best results use at least {required_w}x{required_h}px ({self.dpi} DPI)."
            )
        elif not level.is_printable:
            if recommended is not None:
                warnings.append(f"Try {recommended.label} instead - it prints well from this image.")
            else:
                warnings.append("Image is too small for every available print size.")

        image_aspect = width_px / height_px
        print_aspect = size.width_in / size.height_in
        if abs(image_aspect - print_aspect) / print_aspect > ASPECT_TOLERANCE:
            warnings.append(
                "Image proportions differ from the print; edges will be cropped to fill the print area."
            )

        if product_type is ProductType.CANVAS and level.is_printable:
            warnings.append(
                f'Canvas gallery wrap folds about {CANVAS_WRAP_INCHES}" of each edge around the frame; '
                "keep key details away from the borders."
            )

        return warnings

    @staticmethod
    def _parse(size, product_type):
        try:
            psize = parse_size(size)
        except ValueError:
            raise ConfigurationError(f"Unknown print size: {size!r}", {"size": str(size)}) from None
        try:
            ptype = parse_product_type(product_type)
        except ValueError:
            raise ConfigurationError(
                f"Unknown product type: {product_type!r}", {"product_type": str(product_type)}
            ) from None
        return psize, ptype
