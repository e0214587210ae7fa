"""Static producer - documents supplied directly in code or config."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from seedbed.core.types import ContentItem


@dataclass
class StaticProducer:
    """Returns a fixed set of documents on every tick.

    ``set_items`` swaps the whole set, which the next tick picks up.
    """

    items: list[ContentItem] = field(default_factory=list)
    name: str = "static"

    @classmethod
    def from_texts(
        cls, texts: Mapping[str, str], source_tag: str = "static"
    ) -> "StaticProducer":
        """Build a producer from an ``id -> text`` mapping."""
        return cls(
            [
                ContentItem.from_payload(id=item_id, payload=text, source_tag=source_tag)
                for item_id, text in texts.items()
            ]
        )

    def set_items(self, items: Iterable[ContentItem]) -> None:
        self.items = list(items)

    def set_texts(self, texts: Mapping[str, str], source_tag: str = "static") -> None:
        self.items = [
            ContentItem.from_payload(id=item_id, payload=text, source_tag=source_tag)
            for item_id, text in texts.items()
        ]

    def validate(self) -> None:
        pass

    async def produce(self) -> list[ContentItem]:
        return list(self.items)
