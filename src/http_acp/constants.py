"""Application-wide constants for http-acp.

Constants that define gateway behavior and wire names.
For user-configurable settings per deployment, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    "DEFAULT_CONFIG_DIR",
    "DEFAULT_LOG_DIR",
    # Consent wire format
    "CONSENT_COOKIE_NAME",
    "CONSENT_ESSENTIAL",
    "CONSENT_FUNCTIONAL",
    "CONSENT_ANALYTICS",
    "CONSENT_MARKETING",
    "CONSENT_PERSONALIZATION",
    "CONSENT_CATEGORIES",
    # Capability wire format
    "CAPABILITY_HEADER",
    "CAPABILITY_QUERY_PARAM",
    "CAPABILITY_REALM",
    "CAPABILITY_HINT",
    "PUBLIC_READ_CAPABILITY",
    "READ_METHODS",
    "DEFAULT_TOKEN_ISSUER",
    "DEFAULT_TOKEN_LIFETIME_SECONDS",
    # Verifier cache
    "DEFAULT_TOKEN_CACHE_TTL_SECONDS",
    "DEFAULT_TOKEN_CACHE_MAX_ENTRIES",
    # Origin forwarding
    "DEFAULT_ORIGIN_TIMEOUT_SECONDS",
    "MIN_ORIGIN_TIMEOUT_SECONDS",
    "MAX_ORIGIN_TIMEOUT_SECONDS",
    "HOP_BY_HOP_HEADERS",
    # Static response headers
    "SECURITY_HEADERS",
    "SECURED_BY_HEADER",
    # Request tracing
    "REQUEST_ID_HEADER",
]

from platformdirs import user_config_dir, user_log_dir

# ============================================================================
# Application Identity
# ============================================================================

# Application name used for directory names, logger names, etc.
APP_NAME: str = "http-acp"

# Platform-specific defaults:
# - macOS: ~/Library/Application Support/http-acp, ~/Library/Logs/http-acp
# - Linux: ~/.config/http-acp, ~/.local/state/http-acp/log
DEFAULT_CONFIG_DIR: str = user_config_dir(APP_NAME)
DEFAULT_LOG_DIR: str = user_log_dir(APP_NAME)

# ============================================================================
# Consent Gate
# ============================================================================

# Cookie carrying the percent-encoded JSON consent record
CONSENT_COOKIE_NAME: str = "user-consent"

# Consent categories. Essential is the fallback requirement and is
# always satisfied by the default rule table.
CONSENT_ESSENTIAL: str = "essential"
CONSENT_FUNCTIONAL: str = "functional"
CONSENT_ANALYTICS: str = "analytics"
CONSENT_MARKETING: str = "marketing"
CONSENT_PERSONALIZATION: str = "personalization"

CONSENT_CATEGORIES: tuple[str, ...] = (
    CONSENT_ESSENTIAL,
    CONSENT_FUNCTIONAL,
    CONSENT_ANALYTICS,
    CONSENT_MARKETING,
    CONSENT_PERSONALIZATION,
)

# ============================================================================
# Capability Gate
# ============================================================================

# Header takes precedence over the query parameter when both are present
CAPABILITY_HEADER: str = "X-Capability-Token"
CAPABILITY_QUERY_PARAM: str = "capability"

CAPABILITY_REALM: str = "API"
CAPABILITY_HINT: str = "Include X-Capability-Token header with valid capability token"

# Fallback capability for undeclared routes
PUBLIC_READ_CAPABILITY: str = "public.read"

# Methods that may use the fallback capability without presenting a token
READ_METHODS: frozenset[str] = frozenset({"GET"})

# Issuer stamped on development tokens
DEFAULT_TOKEN_ISSUER: str = "http-acp-gateway"
DEFAULT_TOKEN_LIFETIME_SECONDS: int = 3600

# Verified grants are cached by raw token string. Entries never outlive the
# grant's own expiry; the TTL caps tokens without an expiry.
DEFAULT_TOKEN_CACHE_TTL_SECONDS: int = 60
DEFAULT_TOKEN_CACHE_MAX_ENTRIES: int = 1024

# ============================================================================
# Origin Forwarding
# ============================================================================

DEFAULT_ORIGIN_TIMEOUT_SECONDS: int = 30
MIN_ORIGIN_TIMEOUT_SECONDS: int = 1
MAX_ORIGIN_TIMEOUT_SECONDS: int = 300

# RFC 9110 section 7.6.1 - never forwarded by a proxy
HOP_BY_HOP_HEADERS: frozenset[str] = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
    }
)

# ============================================================================
# Static Security Headers
# ============================================================================

SECURITY_HEADERS: dict[str, str] = {
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "style-src 'self' 'unsafe-inline'; img-src 'self' data: https:; font-src 'self' data:; "
        "connect-src 'self'; frame-ancestors 'none'; base-uri 'self'; form-action 'self'"
    ),
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=(), payment=(), usb=()",
    "X-XSS-Protection": "1; mode=block",
    "Cross-Origin-Embedder-Policy": "require-corp",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
}

# Marker header proving the gateway handled the response
SECURED_BY_HEADER: tuple[str, str] = ("X-Secured-By", APP_NAME)

# ============================================================================
# Request Tracing
# ============================================================================

REQUEST_ID_HEADER: str = "X-Request-ID"
