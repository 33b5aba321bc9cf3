import time
import uuid
from datetime import timedelta
from unittest.mock import MagicMock

import jwt
import pytest

from sharegate.config import settings
from sharegate.infra.object_storage import MinioObjectLocator
from sharegate.security.passwords import BcryptPasswordHasher, hash_password, verify_password
from sharegate.security.token_inspection import (
    ExpiredTokenError,
    InvalidTokenError,
    decode_access_token,
)
from sharegate.security.tokens import SecretsTokenSource


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("correct horse", rounds=4)

        assert hashed != "correct horse"
        assert verify_password("correct horse", hashed) is True
        assert verify_password("battery staple", hashed) is False

    def test_overlong_password_never_verifies(self):
        hashed = hash_password("a" * 72, rounds=4)

        assert verify_password("a" * 73, hashed) is False

    def test_malformed_hash_does_not_raise(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    @pytest.mark.anyio
    async def test_async_hasher(self):
        hasher = BcryptPasswordHasher(rounds=4)

        hashed = await hasher.hash("pw")

        assert await hasher.verify("pw", hashed) is True


class TestTokens:
    def test_tokens_are_url_safe_and_unique(self):
        source = SecretsTokenSource()
        tokens = {source.new_token() for _ in range(200)}

        assert len(tokens) == 200
        assert all(len(token) == 32 for token in tokens)
        assert all("/" not in token and "+" not in token for token in tokens)


class TestAccessTokens:
    def _encode(self, **claims):
        return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)

    def test_valid_token(self):
        user_id = str(uuid.uuid4())

        claims = decode_access_token(self._encode(sub=user_id, exp=int(time.time()) + 60))

        assert claims.user_id == uuid.UUID(user_id)
        assert claims.expires_at is not None

    def test_expired_token(self):
        token = self._encode(sub=str(uuid.uuid4()), exp=int(time.time()) - 60)

        with pytest.raises(ExpiredTokenError):
            decode_access_token(token)

    def test_wrong_signature(self):
        token = jwt.encode({"sub": "x"}, "another-secret", algorithm="HS256")

        with pytest.raises(InvalidTokenError):
            decode_access_token(token)

    def test_missing_subject(self):
        with pytest.raises(InvalidTokenError):
            decode_access_token(self._encode(exp=int(time.time()) + 60))

    def test_subject_must_be_a_uuid(self):
        with pytest.raises(InvalidTokenError):
            decode_access_token(self._encode(sub="alice", exp=int(time.time()) + 60))


class TestMinioObjectLocator:
    @pytest.mark.anyio
    async def test_preview_url(self):
        client = MagicMock()
        client.presigned_get_object.return_value = "https://minio.test/assets/p.webp?sig"
        locator = MinioObjectLocator(client, "assets")

        url = await locator.presign("previews/p.webp", expires_in=600)

        assert url == "https://minio.test/assets/p.webp?sig"
        client.presigned_get_object.assert_called_once_with(
            "assets",
            "previews/p.webp",
            expires=timedelta(seconds=600),
            response_headers=None,
        )

    @pytest.mark.anyio
    async def test_download_url_sets_attachment_filename(self):
        client = MagicMock()
        client.presigned_get_object.return_value = "https://minio.test/x"
        locator = MinioObjectLocator(client, "assets")

        await locator.presign(
            "assets/a1.png", expires_in=60, download=True, filename="Résumé final.png"
        )

        headers = client.presigned_get_object.call_args.kwargs["response_headers"]
        assert headers == {
            "response-content-disposition": "attachment; filename*=UTF-8''R%C3%A9sum%C3%A9%20final.png"
        }
