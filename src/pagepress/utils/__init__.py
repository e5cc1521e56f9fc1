from .hashing import hash_dict, hmac_sha256, sha256_hex
from .redact import REDACTED, redact

__all__ = [
    "REDACTED",
    "hash_dict",
    "hmac_sha256",
    "redact",
    "sha256_hex",
]
