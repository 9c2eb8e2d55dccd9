"""Publisher status classification.

Hey future me - this runs over whatever publisher names the registry gave us
(API or portal scrape). Order of checks matters: a "Sony Music Publishing
(Admin)" entry is MAJOR, not self-published, because majors are checked first.
"""

from collections.abc import Iterable

from songscout.domain.entities import PublisherStatus

MAJOR_PUBLISHERS: tuple[str, ...] = (
    "sony music publishing",
    "universal music publishing",
    "warner chappell",
    "kobalt music",
    "bmg rights management",
    "peermusic",
)

SELF_PUBLISHED_MARKERS: tuple[str, ...] = (
    "self",
    "independent",
    "admin",
    "private",
)


def classify_publisher_status(publisher_names: Iterable[str]) -> PublisherStatus:
    """Classify a list of publisher names.

    Args:
        publisher_names: Publisher names as returned by the registry

    Returns:
        MAJOR if any name contains a known major, SELF_PUBLISHED if any name
        carries a self/independent/admin/private marker, INDIE for any other
        non-empty list, UNSIGNED for an empty list.
    """
    names = [name.strip().lower() for name in publisher_names if name and name.strip()]
    if not names:
        return PublisherStatus.UNSIGNED

    if any(major in name for name in names for major in MAJOR_PUBLISHERS):
        return PublisherStatus.MAJOR

    if any(marker in name for name in names for marker in SELF_PUBLISHED_MARKERS):
        return PublisherStatus.SELF_PUBLISHED

    return PublisherStatus.INDIE
