"""
The store-listing screenshot tour, as data.

Labels are pulled from the snapshot that was seeded, which is the same
list the drawer verifier probes with: if the seeded site names change,
both sides move together.
"""

import logging
import re
from typing import Optional, Sequence

from harness.models import Snapshot, Webspace
from harness.resolver import ElementResolver
from harness.runner import (
    Capture,
    CloseDrawer,
    Expect,
    PressBack,
    ResolveAndTap,
    VerifyDrawer,
)
from harness.ui_tree import visible_labels

WEBSPACES_NAV_LABELS = ("Back to Webspaces", "Webspaces")
MAX_SITE_CANDIDATES = 4


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "webspace"


def probe_labels(snapshot: Snapshot) -> list[str]:
    """Text that only the drawer shows: the site names."""
    return [s.name for s in snapshot.sites if s.name]


def _all_webspace(snapshot: Snapshot) -> Optional[Webspace]:
    for ws in snapshot.webspaces:
        if ws.is_all:
            return ws
    return None


def _featured_webspace(snapshot: Snapshot) -> Optional[Webspace]:
    for ws in snapshot.webspaces:
        if not ws.is_all and ws.site_indices:
            return ws
    return None


def webspace_tour(snapshot: Snapshot) -> list:
    all_ws = _all_webspace(snapshot)
    all_label = all_ws.name if all_ws else "All"
    site_candidates = probe_labels(snapshot)[:MAX_SITE_CANDIDATES]
    featured = _featured_webspace(snapshot)

    steps = [
        # The app may open on the webspace list or straight into sites.
        Expect(all_label, then=[
            Capture(1, "webspaces-list"),
            ResolveAndTap(all_label, required=False),
        ]),
        Capture(2, "all-sites", delay="medium"),
        VerifyDrawer(then=[Capture(3, "sites-drawer")]),
        ResolveAndTap(
            site_candidates,
            then=[
                Capture(4, "site-webview", delay="medium"),
                VerifyDrawer(then=[Capture(5, "drawer-with-site")]),
                CloseDrawer(),
            ],
            otherwise=[CloseDrawer()],
        ),
    ]

    if featured is not None:
        slug = _slug(featured.name)
        steps.append(
            VerifyDrawer(then=[
                ResolveAndTap(
                    WEBSPACES_NAV_LABELS,
                    delay="medium",
                    then=[
                        Capture(6, "webspaces-overview"),
                        ResolveAndTap(featured.name, then=[
                            Capture(7, f"{slug}-webspace", delay="medium"),
                            VerifyDrawer(then=[Capture(8, f"{slug}-sites-drawer")]),
                        ]),
                    ],
                    otherwise=[PressBack()],
                ),
            ])
        )
    return steps


def describe_screen(resolver: ElementResolver, expected: Sequence[str]) -> dict:
    """Log what is on screen right now and which expected labels resolve."""
    nodes = resolver.current_nodes()
    labels = visible_labels(nodes)
    logging.info(f"[SCREEN] {len(nodes)} nodes, first labels: {labels}")
    found = {}
    for label in expected:
        handle = resolver.resolve(label, allow_vision=False)
        found[label] = handle.strategy.value if handle else None
        logging.info(f"[SCREEN]   looking for {label!r}: {'FOUND via ' + found[label] if handle else 'NOT FOUND'}")
    return {"labels": labels, "expected": found}
