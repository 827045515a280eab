"""Shared credential helpers for account store adapters."""

import bcrypt

# Pre-computed bcrypt hash for timing oracle prevention.
# Compared against when no account exists so check_credential always runs bcrypt.
DUMMY_BCRYPT_HASH = bcrypt.hashpw(b"dummy_password_for_timing_safety", bcrypt.gensalt(10)).decode()
