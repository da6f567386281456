"""
Test doubles shared by the test modules: a fake JWKS transport and RSA
signing keys published as JWKs.
"""

import threading
import time
from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt

JWKS_URL = "https://issuer.example.com/.well-known/jwks.json"
METHOD_ARN = "arn:aws:execute-api:us-east-1:123456789012:abcdef1234/prod/GET/items"

class FakeResponse:
    def __init__(self, document):
        self.document = document

    def json(self):
        return self.document

class FakeHttpClient:
    """Serves a JWKS document, or raises ``error`` on every get"""

    def __init__(self, document=None, error=None, delay=0.0):
        self.document = document
        self.error = error
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def get(self, url, headers=None):
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return FakeResponse(self.document)

@dataclass
class SigningKey:
    kid: str
    private_pem: str
    public_jwk: dict

    def sign(self, claims, headers=None, algorithm="RS256"):
        extra = {"kid": self.kid}
        extra.update(headers or {})
        return jwt.encode(claims, self.private_pem, algorithm=algorithm, headers=extra)

def generate_signing_key(kid):
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")
    public_jwk = jwk.construct(public_pem, "RS256").to_dict()
    public_jwk["kid"] = kid
    public_jwk["use"] = "sig"
    return SigningKey(kid=kid, private_pem=private_pem, public_jwk=public_jwk)
