"""
Element resolution over an unreliable accessibility tree.

Each resolve() takes a fresh uiautomator dump (screens change between
steps, so nothing is cached) and walks the strategy chain in order:

  1. text == label
  2. label inside text
  3. content-desc == label
  4. label inside content-desc
  5. (optional) Gemini vision on a fresh screenshot

The first strategy that finds something wins and the rest are skipped.
"Not found" is a normal answer here: resolve() returns None, it does not
raise, because plenty of tour steps are optional.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional

from harness.ui_tree import UiNode, nodes_from_xml, norm


class Strategy(str, Enum):
    TEXT_EXACT = "text_exact"
    TEXT_CONTAINS = "text_contains"
    DESC_EXACT = "desc_exact"
    DESC_CONTAINS = "desc_contains"
    VISION = "vision"


def _text_exact(node: UiNode, query: str) -> bool:
    return bool(node.text) and node.text == query


def _text_contains(node: UiNode, query: str) -> bool:
    return bool(node.text) and norm(query) in norm(node.text)


def _desc_exact(node: UiNode, query: str) -> bool:
    return bool(node.desc) and node.desc == query


def _desc_contains(node: UiNode, query: str) -> bool:
    return bool(node.desc) and norm(query) in norm(node.desc)


TREE_STRATEGIES: tuple[tuple[Strategy, Callable[[UiNode, str], bool]], ...] = (
    (Strategy.TEXT_EXACT, _text_exact),
    (Strategy.TEXT_CONTAINS, _text_contains),
    (Strategy.DESC_EXACT, _desc_exact),
    (Strategy.DESC_CONTAINS, _desc_contains),
)


@dataclass
class ElementHandle:
    query: str
    strategy: Strategy
    node: UiNode
    device: object

    @property
    def label(self) -> str:
        return self.node.label or self.query

    def tap(self) -> bool:
        center = self.node.center()
        if center is None:
            logging.debug(f'[RESOLVE] "{self.query}" has no usable bounds ({self.node.bounds!r})')
            return False
        self.device.tap(*center)
        return True


def _pick(matches: list[UiNode]) -> UiNode:
    # Prefer something tappable, otherwise keep document order.
    for n in matches:
        if n.clickable and n.center() is not None:
            return n
    for n in matches:
        if n.center() is not None:
            return n
    return matches[0]


class ElementResolver:
    def __init__(self, device, vision_locator=None, vision_screenshot: str = "runs/_vision_fallback.png"):
        self.device = device
        self.vision_locator = vision_locator
        self.vision_screenshot = vision_screenshot

    def current_nodes(self) -> list[UiNode]:
        return nodes_from_xml(self.device.ui_dump() or "")

    def resolve(self, label: str, allow_vision: bool = True) -> Optional[ElementHandle]:
        """allow_vision=False keeps the lookup on the accessibility tree (no Gemini call)."""
        query = (label or "").strip()
        if not query:
            return None

        nodes = [n for n in self.current_nodes() if n.enabled]
        for strategy, matches_fn in TREE_STRATEGIES:
            hits = [n for n in nodes if matches_fn(n, query)]
            if hits:
                node = _pick(hits)
                logging.debug(f'[RESOLVE] "{query}" -> {strategy.value} ({node.label!r} {node.bounds})')
                return ElementHandle(query=query, strategy=strategy, node=node, device=self.device)

        if allow_vision and self.vision_locator is not None:
            handle = self._resolve_by_vision(query)
            if handle is not None:
                return handle

        logging.debug(f'[RESOLVE] "{query}" not found ({len(nodes)} nodes on screen)')
        return None

    def resolve_any(self, labels: Iterable[str], allow_vision: bool = True) -> Optional[ElementHandle]:
        """First label that resolves wins (one fresh dump per label)."""
        for label in labels:
            handle = self.resolve(label, allow_vision=allow_vision)
            if handle is not None:
                return handle
        return None

    def exists(self, label: str, allow_vision: bool = True) -> bool:
        return self.resolve(label, allow_vision=allow_vision) is not None

    def _resolve_by_vision(self, query: str) -> Optional[ElementHandle]:
        try:
            path = self.device.screenshot(self.vision_screenshot)
            coords = self.vision_locator.locate(str(path), query)
        except Exception as e:
            logging.debug(f"[VISION] lookup for {query!r} failed: {e!r}")
            return None
        if not coords:
            return None
        x, y = int(coords[0]), int(coords[1])
        logging.info(f'[VISION] "{query}" -> ({x},{y})')
        node = UiNode(
            text="",
            desc=query,
            res_id="",
            cls="vision",
            clickable=True,
            enabled=True,
            bounds=f"[{x},{y}][{x},{y}]",
            index=-1,
        )
        return ElementHandle(query=query, strategy=Strategy.VISION, node=node, device=self.device)
