from typing import List, NamedTuple, Sequence

from tidewatch.features.tides.models.tide_types import TideSituation, WaterLevel

class ClassificationResult(NamedTuple):
    water_levels: List[WaterLevel]
    average_height: float

class TideClassifier:
    @staticmethod
    def classify(levels: Sequence[WaterLevel]) -> ClassificationResult:
        """Assign a tide situation to every level and compute the mean height.

        Levels must be sorted ascending by timestamp without duplicates. The
        input is left untouched; annotated copies are returned.
        """
        if not levels:
            return ClassificationResult([], 0.0)

        heights = [level.height for level in levels]
        average = sum(heights) / len(heights)

        return ClassificationResult(
            [
                level.model_copy(update={"situation": TideClassifier._situation_at(heights, i)})
                for i, level in enumerate(levels)
            ],
            average
        )

    @staticmethod
    def _situation_at(heights: List[float], i: int) -> TideSituation:
        """Determine the situation of one sample from its neighbors."""
        n = len(heights)
        if n == 1:
            return TideSituation.UNKNOWN

        height = heights[i]
        if i == 0:
            return TideSituation.FALLING if height > heights[1] else TideSituation.RISING
        if i == n - 1:
            return TideSituation.FALLING if heights[i - 1] > height else TideSituation.RISING

        prev_height = heights[i - 1]
        next_height = heights[i + 1]

        # Strict comparisons; ties fall through to Rising/Falling
        if height > prev_height and height > next_height:
            return TideSituation.HIGH
        if height < prev_height and height < next_height:
            return TideSituation.LOW
        if height < next_height:
            return TideSituation.RISING
        return TideSituation.FALLING
