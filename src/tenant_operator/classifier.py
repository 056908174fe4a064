"""Transient error classification for tenant cluster API failures.

Freshly created tenant clusters expose an API that takes a while to converge:
DNS records propagate, the load balancer comes up, and certificates are only
valid for the ingress default name until the API record resolves. Transport
libraries only expose these conditions as text, so they are matched against
the patterns below.
"""

from __future__ import annotations

import re

from .errors import APINotAvailableError, FatalError, TransientError

# DNS errors for the tenant API domain, e.g.
# "dial tcp: lookup api.abc12.k8s.example.com on 10.96.0.10:53: no such host"
DNS_NOT_READY_PATTERN = r"dial tcp: lookup .* on .*:53: no such host"

# EOF errors while listing nodes, e.g.
# "Get https://api.abc12.k8s.example.com/api/v1/nodes?limit=500: unexpected EOF"
NODE_EOF_PATTERN = r"Get https://api\..*/api/v1/nodes.* (unexpected )?EOF"

# EOF errors while reading or writing namespaced resources, e.g.
# "Get https://api.abc12.k8s.example.com/api/v1/namespaces/kube-system/configmaps: EOF"
RESOURCE_EOF_PATTERN = r"[Get|Post] https://api\..*/api/v1/namespaces/*/.* (unexpected )?EOF"

# TLS handshake timeouts while the API is not fully up, e.g.
# "Get https://api.abc12.k8s.example.com/api/v1/nodes: net/http: TLS handshake timeout"
TLS_HANDSHAKE_TIMEOUT_PATTERN = r"Get https://api\..*/api/v1/nodes.* net/http: TLS handshake timeout"

# Ingress default certificate served before the API record resolves, e.g.
# "Post https://api.abc12.k8s.example.com/api/v1/namespaces: x509: certificate is
# valid for ingress.local, not api.abc12.k8s.example.com"
TRANSIENT_INVALID_CERTIFICATE_PATTERN = (
    r"[Get|Post] https://api\..*: x509: certificate is valid for ingress.local, not api\..*"
)

TRANSIENT_PATTERNS = (
    DNS_NOT_READY_PATTERN,
    NODE_EOF_PATTERN,
    RESOURCE_EOF_PATTERN,
    TLS_HANDSHAKE_TIMEOUT_PATTERN,
    TRANSIENT_INVALID_CERTIFICATE_PATTERN,
)

_TRANSIENT_REGEXPS = tuple(re.compile(pattern) for pattern in TRANSIENT_PATTERNS)


def is_api_not_available(error: BaseException | None) -> bool:
    """Check whether an error means the tenant cluster API is not up yet.

    Args:
        error: Error raised by a transport client

    Returns:
        True if the error matches a known transient API condition
    """
    if error is None:
        return False

    for candidate in (error, _root_cause(error)):
        if isinstance(candidate, APINotAvailableError):
            return True
        message = str(candidate)
        if any(regexp.search(message) for regexp in _TRANSIENT_REGEXPS):
            return True

    return False


def is_transient(error: BaseException | None) -> bool:
    """Decide whether an error should end a pass silently.

    Args:
        error: Error raised while reconciling

    Returns:
        True for transient errors, False for fatal ones
    """
    if error is None or isinstance(error, FatalError):
        return False
    if isinstance(error, TransientError) or isinstance(_root_cause(error), TransientError):
        return True
    return is_api_not_available(error)


def _root_cause(error: BaseException) -> BaseException:
    """Follow explicit exception chaining down to the original error."""
    seen = set()
    while error.__cause__ is not None and id(error) not in seen:
        seen.add(id(error))
        error = error.__cause__
    return error
