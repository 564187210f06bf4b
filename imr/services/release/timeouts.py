from __future__ import annotations

# GH / API operations
GH_TIMEOUT_SECONDS = 60.0
# Asset uploads carry whole binaries.
GH_UPLOAD_TIMEOUT_SECONDS = 15 * 60.0

# Idempotent GH read retry policy (mutations are never retried)
GH_READ_RETRY_ATTEMPTS = 3
GH_READ_RETRY_DELAY_SECONDS = 1.0
