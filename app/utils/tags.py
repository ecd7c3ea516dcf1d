"""Tag parsing utilities for comma-separated tag input."""
from typing import List, Optional


class TagParser:
    """Turn free-form tag input into an ordered list of tags."""

    SEPARATOR = ","

    @staticmethod
    def parse(raw: Optional[str]) -> List[str]:
        """
        Split a comma-separated string into trimmed tags.

        Input order is preserved and empty items are dropped, so
        ``"electric, sedan,,"`` becomes ``["electric", "sedan"]``.

        Args:
            raw: Comma-separated tags, or None

        Returns:
            List of tags (empty when nothing was supplied)
        """
        if not raw:
            return []

        return [tag.strip() for tag in raw.split(TagParser.SEPARATOR) if tag.strip()]
