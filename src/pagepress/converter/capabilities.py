"""Widget families available on the target site.

The page builder ships a free core widget set; further widgets come from
the builder's Pro add-on or third-party add-on packs.  A
:class:`CapabilitySet` records which families the site has, and the
converter consults it before emitting a widget so that it never produces a
widget the site cannot render.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from pagepress.models import PublishWarning, WarningCode

CORE = "core"
PRO = "pro"
ROYAL = "royal"

# Widgets that need the builder's Pro add-on (or a compatible pack).
PRO_WIDGETS: frozenset[str] = frozenset({
    "form",
    "posts",
    "portfolio",
    "slides",
    "flip-box",
    "price-table",
    "price-list",
    "testimonial-carousel",
    "animated-headline",
    "call-to-action",
    "media-carousel",
    "countdown",
    "share-buttons",
    "blockquote",
    "login",
    "hotspot",
    "reviews",
    "lottie",
})

# Widget-type prefixes owned by third-party add-on packs.
ADDON_PREFIXES: dict[str, str] = {
    "wpr-": ROYAL,
}


def family_of(kind: str) -> str:
    """Return the family a widget kind belongs to."""
    for prefix, family in ADDON_PREFIXES.items():
        if kind.startswith(prefix):
            return family
    if kind in PRO_WIDGETS:
        return PRO
    return CORE


@dataclass(frozen=True)
class CapabilitySet:
    """Widget families the converter may target.

    Attributes
    ----------
    families:
        Family names; ``"core"`` is always implied.
    builder_version:
        Version string of the page builder, informational.
    """

    families: frozenset[str] = field(default_factory=lambda: frozenset({CORE}))
    builder_version: str | None = None

    @classmethod
    def of(cls, *families: str, builder_version: str | None = None) -> CapabilitySet:
        return cls(families=frozenset({CORE, *families}), builder_version=builder_version)

    @classmethod
    def full(cls) -> CapabilitySet:
        return cls.of(PRO, ROYAL)

    @classmethod
    def from_report(cls, report: dict[str, Any]) -> CapabilitySet:
        """Build from a capability report as returned by :meth:`to_report`."""
        families = {CORE}
        for name, entry in (report.get("widget_families") or {}).items():
            if isinstance(entry, dict) and entry.get("available"):
                families.add(name)
        builder = report.get("builder") or {}
        return cls(families=frozenset(families), builder_version=builder.get("version"))

    def supports(self, kind: str) -> bool:
        family = family_of(kind)
        return family == CORE or family in self.families

    def to_report(self) -> dict[str, Any]:
        """Describe the set in the shape served by the capabilities endpoint."""
        return {
            "builder": {"active": True, "version": self.builder_version},
            "widget_families": {
                CORE: {"available": True},
                PRO: {"available": PRO in self.families},
                ROYAL: {"available": ROYAL in self.families, "prefix": "wpr-"},
            },
            "pro_widgets": sorted(PRO_WIDGETS),
        }

    def check(self, kinds: Iterable[str]) -> list[PublishWarning]:
        """Return one warning per family that *kinds* need but the site lacks."""
        missing: dict[str, list[str]] = {}
        for kind in kinds:
            if not self.supports(kind):
                missing.setdefault(family_of(kind), []).append(kind)
        return [
            PublishWarning(
                code=WarningCode.WIDGET_FAMILY_MISSING,
                message=(
                    f"Block tree uses {family} widgets ({', '.join(sorted(set(found)))}) "
                    "that this site cannot render"
                ),
                context={"family": family, "kinds": sorted(set(found))},
            )
            for family, found in sorted(missing.items())
        ]
