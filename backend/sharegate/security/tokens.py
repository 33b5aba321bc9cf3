import secrets

# 24 random bytes -> 32 url-safe characters, 192 bits of entropy
SHARE_TOKEN_BYTES = 24


class SecretsTokenSource:
    def __init__(self, nbytes: int = SHARE_TOKEN_BYTES) -> None:
        self.nbytes = nbytes

    def new_token(self) -> str:
        return secrets.token_urlsafe(self.nbytes)
