"""Public sharing helpers: identifiers, password hashing, projection, views.

Passwords are stored as salted PBKDF2-SHA256 hashes and compared in
constant time.  Visitor IPs are only ever stored hashed.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import string
from datetime import datetime
from typing import Any

from ratecard.domain.models import Catalog, Sharing, ViewContext, ViewRecord

PUBLIC_ID_ALPHABET = string.ascii_uppercase + string.digits
PUBLIC_ID_LENGTH = 6
MAX_VIEW_LOG = 100

PBKDF2_ITERATIONS = 200_000
_HASH_SCHEME = "pbkdf2_sha256"


def generate_public_id() -> str:
    """Return a random 6-character uppercase alphanumeric identifier."""
    return "".join(secrets.choice(PUBLIC_ID_ALPHABET) for _ in range(PUBLIC_ID_LENGTH))


def public_url(base_url: str, public_id: str) -> str:
    return f"{base_url.rstrip('/')}/card/{public_id}"


def hash_password(password: str, *, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Hash *password* as ``pbkdf2_sha256$iterations$salt$digest``."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), bytes.fromhex(salt), iterations
    )
    return f"{_HASH_SCHEME}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    """Check *password* against a hash produced by ``hash_password``."""
    try:
        scheme, iterations, salt, expected = encoded.split("$")
        if scheme != _HASH_SCHEME:
            return False
        digest = hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), bytes.fromhex(salt), int(iterations)
        )
    except ValueError:
        return False
    return hmac.compare_digest(digest.hex(), expected)


def hash_ip(ip_address: str | None) -> str | None:
    if not ip_address:
        return None
    return hashlib.sha256(ip_address.encode("utf-8")).hexdigest()


def record_view(sharing: Sharing, view: ViewContext, now: datetime) -> Sharing:
    """Return *sharing* with one more view counted and logged.

    The view log keeps only the newest ``MAX_VIEW_LOG`` entries.
    """
    entry = ViewRecord(
        timestamp=now,
        ip_hash=hash_ip(view.ip_address),
        user_agent=view.user_agent,
        referrer=view.referrer,
    )
    return sharing.model_copy(
        update={
            "total_views": sharing.total_views + 1,
            "last_viewed_at": now,
            "view_log": [*sharing.view_log, entry][-MAX_VIEW_LOG:],
        }
    )


def public_projection(catalog: Catalog) -> dict[str, Any]:
    """Build the client-facing view of a published catalog.

    Owner-only data (password hash, view log, advisory metadata and
    suggestions, market positions) is left out.
    """
    metrics = catalog.metrics
    rates_by_platform = {
        str(platform): [
            {
                "deliverable_type": str(rate.deliverable_type),
                "price": str(rate.chosen_price),
                "turnaround": rate.turnaround.model_dump(mode="json"),
                "revisions_included": rate.revisions_included,
            }
            for rate in rates
        ]
        for platform, rates in catalog.rates_by_platform().items()
    }
    return {
        "public_id": catalog.sharing.public_id,
        "title": catalog.title,
        "description": catalog.description,
        "creator": {
            "niche": str(metrics.niche),
            "city": metrics.location.city,
            "languages": list(metrics.languages),
            "experience": str(metrics.experience),
            "platforms": [
                {
                    "platform": str(p.platform),
                    "followers": p.followers,
                    "engagement_rate": p.engagement_rate,
                }
                for p in metrics.platforms
            ],
            "total_reach": metrics.total_reach,
            "average_engagement_rate": metrics.average_engagement_rate,
        },
        "rates": rates_by_platform,
        "packages": [
            package.model_dump(
                mode="json",
                include={
                    "name",
                    "description",
                    "items",
                    "package_price",
                    "savings",
                    "validity_days",
                    "is_popular",
                },
            )
            for package in catalog.packages
        ],
        "terms": catalog.terms.model_dump(mode="json"),
        "allow_download": catalog.sharing.allow_download,
        "show_contact_form": catalog.sharing.show_contact_form,
        "version": catalog.version.current,
        "published_at": (
            catalog.version.published_at.isoformat() if catalog.version.published_at else None
        ),
    }
