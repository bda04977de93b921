"""Format advisor for suggesting output formats.

Combines image characteristics (transparency) with the selected strategy
to recommend an output format.
"""

from .encoders import get_encoder
from .strategy import STRATEGY_PROFILES, BALANCED


class FormatAdvisor:
    """Suggests an output format for an image.

    Transparent images always get a format that keeps the alpha channel.
    Opaque images follow the strategy profile.
    """

    TRANSPARENT_FORMAT = 'png'

    def recommend_format(self, strategy: str = BALANCED, has_transparency: bool = False) -> str:
        """Recommend an output format tag.

        Args:
            strategy: Strategy tag from StrategySelector
            has_transparency: Whether the image needs an alpha channel

        Returns:
            Format tag (jpeg, webp, png)
        """
        if has_transparency:
            return self.TRANSPARENT_FORMAT

        profile = STRATEGY_PROFILES.get(strategy, STRATEGY_PROFILES[BALANCED])
        return profile.format

    def keeps_transparency(self, format_tag: str) -> bool:
        """Check if an output format can store an alpha channel."""
        encoder = get_encoder(format_tag)
        return encoder is not None and encoder.supports_transparency
