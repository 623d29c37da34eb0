"""HookGuard: webhook intake with signature verification, rate limiting and bounded storage."""
