from __future__ import annotations

import pytest

from artifactd.cancel import CancelToken
from artifactd.errors import CancelledError


class TestCancelToken:
    def test_background_never_expires(self) -> None:
        token = CancelToken.background()
        token.check()
        assert token.remaining() is None
        assert token.remaining(5.0) == 5.0
        assert not token.cancelled

    def test_cancel(self) -> None:
        token = CancelToken()
        token.cancel()
        assert token.cancelled
        with pytest.raises(CancelledError, match="cancelled"):
            token.check()

    def test_deadline(self) -> None:
        token = CancelToken(timeout_s=0)
        assert token.expired
        assert token.remaining() == 0.0
        with pytest.raises(CancelledError, match="deadline"):
            token.check()

    def test_remaining_is_capped_by_default(self) -> None:
        token = CancelToken(timeout_s=100)
        assert token.remaining(1.0) == 1.0

    def test_is_a_timeout_error(self) -> None:
        assert issubclass(CancelledError, TimeoutError)
