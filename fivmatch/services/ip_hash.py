"""
Client IP helpers. The raw IP is never stored, only a salted SHA-256 prefix.
"""
import hashlib

UNKNOWN_IP = 'unknown'


def client_ip(headers, remote_addr=None) -> str:
    """First hop of X-Forwarded-For, then X-Real-IP, then the socket address."""
    forwarded = (headers.get('X-Forwarded-For') or '').split(',')[0].strip()
    if forwarded:
        return forwarded
    real_ip = (headers.get('X-Real-IP') or '').strip()
    if real_ip:
        return real_ip
    return remote_addr or UNKNOWN_IP


def hash_ip(ip: str, salt: str) -> str:
    """sha256(salt + ip), first 32 hex chars."""
    return hashlib.sha256(f"{salt}{ip}".encode('utf-8')).hexdigest()[:32]
