"""
Signature and claims verification.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JOSEError, JWTClaimsError

from .errors import SignatureOrClaimsInvalid


@dataclass(frozen=True)
class Identity:
    """Claims of a token whose signature has been verified"""

    claims: Dict[str, Any]

    @property
    def sub(self) -> str:
        return self.claims["sub"]

    @property
    def azp(self) -> Optional[str]:
        azp = self.claims.get("azp")
        # a non-string azp names no client
        return azp if isinstance(azp, str) and azp else None


class Verifier:
    """Verifies tokens against a resolved key and a fixed algorithm allow-list"""

    def __init__(
        self,
        algorithms: List[str],
        audience: Optional[str] = None,
        issuer: Optional[str] = None,
    ):
        if not algorithms:
            raise ValueError("An algorithm allow-list is required")
        self.algorithms = list(algorithms)
        self.audience = audience
        self.issuer = issuer

    @property
    def options(self) -> Dict[str, bool]:
        return {
            "verify_signature": True,
            "verify_exp": True,
            "verify_iat": True,
            "verify_nbf": True,
            "verify_aud": self.audience is not None,
            "verify_iss": self.issuer is not None,
            # at_hash needs the access token, which an authorizer never sees
            "verify_at_hash": False,
        }

    def verify(self, token: str, key) -> Identity:
        """
        Verify ``token`` with ``key`` and return its identity.

        Raises:
            SignatureOrClaimsInvalid: For any signature, algorithm or claims
                failure; the jose error is chained as ``__cause__``
        """
        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options=self.options,
            )
        except ExpiredSignatureError as e:
            raise SignatureOrClaimsInvalid("Token has expired") from e
        except JWTClaimsError as e:
            raise SignatureOrClaimsInvalid(f"Invalid token claims: {e}") from e
        except JOSEError as e:
            raise SignatureOrClaimsInvalid(f"Token validation failed: {e}") from e

        sub = claims.get("sub")
        if not isinstance(sub, str) or not sub:
            raise SignatureOrClaimsInvalid("Token missing required 'sub' claim")
        return Identity(claims=claims)
