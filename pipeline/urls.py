"""URL canonicalization for article dedup keys."""

import logging
import re

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^(?:https?:)?//", re.IGNORECASE)

# Host prefixes that serve the same article as the bare domain
HOST_PREFIXES: tuple[str, ...] = ("www.", "m.", "amp.")
DEFAULT_PORTS: tuple[str, ...] = (":80", ":443")

# Query parameters that never change which article a URL points at
TRACKING_PARAMS: frozenset[str] = frozenset({"fbclid", "gclid", "ref", "source", "_ga", "_gid"})
TRACKING_PREFIXES: tuple[str, ...] = ("utm_",)


def _is_tracking_param(pair: str) -> bool:
    key = pair.split("=", 1)[0]
    return key in TRACKING_PARAMS or key.startswith(TRACKING_PREFIXES)


def _strip_host(host: str) -> str:
    for port in DEFAULT_PORTS:
        if host.endswith(port):
            host = host[: -len(port)]
            break
    stripped = True
    while stripped:
        stripped = False
        for prefix in HOST_PREFIXES:
            rest = host[len(prefix):]
            # keep at least a registrable-looking domain
            if host.startswith(prefix) and "." in rest:
                host = rest
                stripped = True
    return host


def normalize_url(url: str | None) -> str | None:
    """Canonicalize a raw article URL into a stable dedup key.

    Lower-cases, drops the scheme, ``www.``/``m.``/``amp.`` host prefixes,
    default ports, tracking query parameters, the fragment and trailing
    slashes. Returns None for empty input. Idempotent: normalizing an
    already-normalized URL returns it unchanged.
    """
    if url is None or not url.strip():
        return None

    try:
        value = url.strip().lower()
        value = value.split("#", 1)[0]
        stripped = _SCHEME_RE.sub("", value)
        while stripped != value:
            value = stripped
            stripped = _SCHEME_RE.sub("", value)

        query = ""
        if "?" in value:
            value, query = value.split("?", 1)

        if "/" in value:
            host, path = value.split("/", 1)
            path = "/" + path
        else:
            host, path = value, ""

        host = _strip_host(host)
        path = path.rstrip("/")

        kept = [pair for pair in re.split(r"[&;]", query) if pair and not _is_tracking_param(pair)]
        normalized = host + path
        if kept:
            normalized += "?" + "&".join(kept)
        return normalized or None
    except Exception as e:
        logger.debug("URL normalization failed for %r: %s", url, e)
        return url.strip().lower()


def extract_domain(url: str | None) -> str | None:
    """Return the bare host of a URL (no scheme, prefixes or default port)."""
    normalized = normalize_url(url)
    if not normalized:
        return None
    return normalized.split("/", 1)[0].split("?", 1)[0] or None
