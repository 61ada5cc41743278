"""
OCI distribution HTTP client (small, urllib-based).

Speaks just enough of the distribution API to pull one artifact:
  - GET /v2/<repo>/manifests/<reference>
  - GET /v2/<repo>/blobs/<digest>

Authentication follows the registry challenge: a 401 carrying a Bearer
challenge is answered by fetching a token from the advertised realm (with
basic credentials when available); a Basic challenge is answered directly.
"""

from __future__ import annotations

import base64
import hashlib
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import HTTPRedirectHandler, OpenerDirector, Request, build_opener

from ..cancel import CancelToken
from ..credentials import Credentials
from ..errors import RegistryError

USER_AGENT = "artifactd"
_CHUNK = 64 * 1024
_CHALLENGE_PARAM_RE = re.compile(r'(\w+)="([^"]*)"')


class _StripAuthOnRedirect(HTTPRedirectHandler):
    """Blob downloads redirect to storage backends that reject registry auth."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):  # type: ignore[override]
        new = super().redirect_request(req, fp, code, msg, headers, newurl)
        if new is not None:
            new.remove_header("Authorization")
        return new


@dataclass(frozen=True)
class RegistryClientConfig:
    plain_http: bool = False
    timeout_s: float = 60.0
    user_agent: str = USER_AGENT


def _basic_header(credentials: Credentials) -> str:
    token = base64.b64encode(f"{credentials.username}:{credentials.password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def parse_challenge(header: str) -> tuple[str, dict[str, str]]:
    """Split a WWW-Authenticate header into (scheme, params)."""
    scheme, _, rest = header.strip().partition(" ")
    return scheme.lower(), dict(_CHALLENGE_PARAM_RE.findall(rest))


class RegistryClient:
    """Minimal OCI registry client bound to one set of credentials."""

    def __init__(
        self,
        credentials: Credentials | None = None,
        cfg: RegistryClientConfig | None = None,
        *,
        opener: OpenerDirector | None = None,
    ) -> None:
        self._credentials = credentials or Credentials.anonymous()
        self._cfg = cfg or RegistryClientConfig()
        self._opener = opener or build_opener(_StripAuthOnRedirect())
        self._auth_header: str | None = None

    def base_url(self, registry: str) -> str:
        scheme = "http" if self._cfg.plain_http else "https"
        host = "registry-1.docker.io" if registry == "docker.io" else registry
        return f"{scheme}://{host}"

    def _timeout(self, token: CancelToken | None) -> float:
        if token is None:
            return self._cfg.timeout_s
        remaining = token.remaining(self._cfg.timeout_s)
        return remaining if remaining else 0.001

    def _open(self, url: str, headers: dict[str, str], token: CancelToken | None):
        if token is not None:
            token.check()
        all_headers = {"User-Agent": self._cfg.user_agent, **headers}
        if self._auth_header:
            all_headers["Authorization"] = self._auth_header
        req = Request(url, headers=all_headers, method="GET")
        return self._opener.open(req, timeout=self._timeout(token))

    def _fetch_bearer_token(self, params: dict[str, str], token: CancelToken | None) -> str:
        realm = params.get("realm")
        if not realm:
            raise RegistryError("bearer challenge without realm")
        query = {k: v for k, v in params.items() if k in ("service", "scope") and v}
        url = f"{realm}?{urlencode(query)}" if query else realm
        headers = {"User-Agent": self._cfg.user_agent}
        if not self._credentials.is_anonymous:
            headers["Authorization"] = _basic_header(self._credentials)
        req = Request(url, headers=headers, method="GET")
        try:
            with self._opener.open(req, timeout=self._timeout(token)) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except HTTPError as e:
            raise RegistryError(f"registry token request failed: HTTP {e.code} {e.reason}") from e
        except URLError as e:
            raise RegistryError(f"registry token request failed: {e.reason}") from e
        except ValueError as e:
            raise RegistryError(f"registry token response is not JSON: {e}") from e

        value = payload.get("token") or payload.get("access_token")
        if not value:
            raise RegistryError("registry token response carries no token")
        return f"Bearer {value}"

    def _authorize(self, err: HTTPError, token: CancelToken | None) -> None:
        challenge = err.headers.get("WWW-Authenticate", "") if err.headers else ""
        scheme, params = parse_challenge(challenge)
        if scheme == "bearer":
            self._auth_header = self._fetch_bearer_token(params, token)
        elif scheme == "basic" and not self._credentials.is_anonymous:
            self._auth_header = _basic_header(self._credentials)
        else:
            raise RegistryError(f"registry authentication required: HTTP {err.code} {err.reason}")

    def get(self, url: str, headers: dict[str, str], token: CancelToken | None = None):
        """
        GET `url`, answering at most one authentication challenge.

        Returns the open response; the caller closes it.
        """
        try:
            return self._open(url, headers, token)
        except HTTPError as e:
            if e.code != 401:
                raise RegistryError(f"registry HTTP error {e.code}: {e.reason} ({url})") from e
            self._authorize(e, token)
        except URLError as e:
            raise RegistryError(f"registry connection error: {e.reason}") from e

        try:
            return self._open(url, headers, token)
        except HTTPError as e:
            raise RegistryError(f"registry HTTP error {e.code}: {e.reason} ({url})") from e
        except URLError as e:
            raise RegistryError(f"registry connection error: {e.reason}") from e

    def get_manifest(
        self,
        registry: str,
        repository: str,
        reference: str,
        accept: list[str],
        token: CancelToken | None = None,
    ) -> tuple[dict[str, Any], str]:
        """
        Fetch and decode a manifest.

        Returns:
            (manifest, digest) where digest is the registry-reported content
            digest, or the sha256 of the body when the header is absent.
        """
        url = f"{self.base_url(registry)}/v2/{repository}/manifests/{reference}"
        with self.get(url, {"Accept": ", ".join(accept)}, token) as resp:
            body = resp.read()
            digest = resp.headers.get("Docker-Content-Digest") or f"sha256:{hashlib.sha256(body).hexdigest()}"
        try:
            manifest = json.loads(body.decode("utf-8"))
        except ValueError as e:
            raise RegistryError(f"unable to decode manifest {repository}:{reference}: {e}") from e
        if not isinstance(manifest, dict):
            raise RegistryError(f"unable to decode manifest {repository}:{reference}: not an object")
        return manifest, digest

    def download_blob(
        self,
        registry: str,
        repository: str,
        digest: str,
        dest: Path,
        token: CancelToken | None = None,
    ) -> int:
        """
        Stream a blob to `dest`, verifying its sha256 digest.

        Returns:
            Number of bytes written.
        """
        algorithm, _, expected = digest.partition(":")
        if algorithm != "sha256" or not expected:
            raise RegistryError(f"unsupported blob digest {digest!r}")

        url = f"{self.base_url(registry)}/v2/{repository}/blobs/{digest}"
        hasher = hashlib.sha256()
        written = 0
        dest.parent.mkdir(parents=True, exist_ok=True)
        with self.get(url, {}, token) as resp, open(dest, "wb") as out:
            while True:
                if token is not None:
                    token.check()
                chunk = resp.read(_CHUNK)
                if not chunk:
                    break
                hasher.update(chunk)
                out.write(chunk)
                written += len(chunk)

        if hasher.hexdigest() != expected:
            raise RegistryError(f"digest mismatch for blob {digest}: got sha256:{hasher.hexdigest()}")
        return written
