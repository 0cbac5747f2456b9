"""
Response hardening headers.

The API answers with JSON and user-uploaded blobs only, so nothing it
returns should ever run script or be framed. Headers already set by a view
(e.g. send_from_directory) are left alone.
"""

CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'none'",
    "img-src 'self' data:",
    "media-src 'self'",
    "frame-ancestors 'none'",
    "base-uri 'none'",
    "form-action 'self'",
])

HARDENING_HEADERS = {
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
    # Uploaded files carry a client-chosen content type
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(), payment=()",
}


def init_security_headers(app):
    @app.after_request
    def _harden_response(response):
        for name, value in HARDENING_HEADERS.items():
            response.headers.setdefault(name, value)
        response.headers.pop("Server", None)
        return response
