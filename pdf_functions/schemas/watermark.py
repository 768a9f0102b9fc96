from pydantic import BaseModel, Field, field_validator
from typing import Tuple

class WatermarkSpec(BaseModel):
    """Resolved watermark parameters.

    ``color`` is an RGB triple in the 0..1 range; ``position_x`` and
    ``position_y`` are fractions of the page width/height.
    """
    text: str
    font: str = "Helvetica"
    font_size: float = Field(50.0, gt=0)
    color: Tuple[float, float, float] = (0.0, 0.0, 1.0)
    opacity: float = 0.5
    rotation: float = 45.0
    position_x: float = 0.5
    position_y: float = 0.6

    @field_validator("opacity", "position_x", "position_y")
    @classmethod
    def clamp_unit_interval(cls, value: float) -> float:
        return min(max(value, 0.0), 1.0)
