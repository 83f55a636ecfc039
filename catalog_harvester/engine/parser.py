"""DOM parsing of raw item pages into extracted records."""

from __future__ import annotations

import re
from urllib.parse import urljoin

from selectolax.parser import HTMLParser, Node

from ..config import FieldRule, SelectorTable
from ..domain import ExtractedRecord

_NON_DIGITS = re.compile(r"\D+")


class ExtractionError(ValueError):
    """Raised when a page lacks a field every record requires."""


def normalize_price(raw: str | None) -> int:
    """Keep the digits of ``raw``; no digits means a price of 0."""

    digits = _NON_DIGITS.sub("", raw or "")
    return int(digits) if digits else 0


class Parser:
    """Apply a :class:`SelectorTable` to raw item pages."""

    def __init__(self, table: SelectorTable | None = None) -> None:
        self.table = table or SelectorTable()

    def parse(self, html: str, queue_id: int, base_url: str | None = None) -> ExtractedRecord:
        tree = HTMLParser(html)
        external_id = self._extract(tree, self.table.external_id)
        if not external_id:
            raise ExtractionError(f"No external id found for queue item {queue_id}")

        assets: list[str | None] = []
        for rule in self.table.assets:
            src = self._extract(tree, rule)
            if src and base_url:
                src = urljoin(base_url, src)
            assets.append(src)

        return ExtractedRecord(
            queue_id=queue_id,
            external_id=external_id,
            brand=self._extract(tree, self.table.brand),
            name=self._extract(tree, self.table.name),
            price=normalize_price(self._extract(tree, self.table.price)),
            assets=tuple(assets),
        )

    # ------------------------------------------------------------------
    def _extract(self, tree: HTMLParser, rule: FieldRule) -> str | None:
        """First non-empty value across the rule's fallback selectors."""

        for selector in rule.selectors:
            css, mode = self._split_selector(selector)
            if not css:
                continue
            node = tree.css_first(css)
            if node is None:
                continue
            value = self._node_value(node, mode)
            for fragment in rule.remove:
                value = value.replace(fragment, "") if value else value
            if value and value.strip():
                return value.strip()
        return None

    @staticmethod
    def _node_value(node: Node, mode: str) -> str | None:
        if mode == "html":
            return node.html
        if mode.startswith("attr:"):
            return node.attributes.get(mode.split(":", 1)[1])
        return node.text(separator=" ", strip=True)

    @staticmethod
    def _split_selector(selector: str) -> tuple[str, str]:
        if "::" in selector:
            css, mode = selector.split("::", 1)
            return css.strip(), mode.strip().lower()
        return selector.strip(), "text"


__all__ = ["ExtractionError", "Parser", "normalize_price"]
