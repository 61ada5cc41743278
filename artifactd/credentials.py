"""
Registry credential resolution.

Pull secrets are referenced by name, never embedded in resources. The
resolver turns a reference into Credentials at pull time, so secret values
are never written into manifests, logs or the index.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from .artifact.types import PullSecretRef
from .cancel import CancelToken
from .errors import CredentialsError, ObjectNotFoundError, ObjectStoreError
from .objectstore import ObjectStore


@dataclass(frozen=True)
class Credentials:
    username: str = ""
    password: str = field(default="", repr=False)

    @classmethod
    def anonymous(cls) -> Credentials:
        return cls()

    @property
    def is_anonymous(self) -> bool:
        return not self.username and not self.password


class CredentialResolver(Protocol):
    def resolve(
        self,
        pull_secret: PullSecretRef | None,
        namespace: str,
        token: CancelToken | None = None,
    ) -> Credentials:
        """
        Resolve a pull-secret reference.

        Returns anonymous credentials when no secret is referenced.

        Raises:
            CredentialsError: The secret is missing or lacks the expected keys.
        """
        ...


class SecretCredentialResolver:
    """Resolve pull secrets stored as objects in an ObjectStore."""

    def __init__(self, store: ObjectStore):
        self.store = store

    def resolve(
        self,
        pull_secret: PullSecretRef | None,
        namespace: str,
        token: CancelToken | None = None,
    ) -> Credentials:
        if pull_secret is None or not pull_secret.secret_name:
            return Credentials.anonymous()

        name = pull_secret.secret_name
        try:
            data = self.store.get(name, namespace, token)
        except (ObjectNotFoundError, ObjectStoreError) as e:
            raise CredentialsError(f"failed to get pull secret {name}: {e}") from e

        username_key = pull_secret.username_key or "username"
        password_key = pull_secret.password_key or "password"

        if username_key not in data:
            raise CredentialsError(f"username key {username_key} not found in secret {name}")
        if password_key not in data:
            raise CredentialsError(f"password key {password_key} not found in secret {name}")

        return Credentials(username=data[username_key], password=data[password_key])


class AnonymousCredentialResolver:
    """Resolver for deployments without a secret store: only public pulls succeed."""

    def resolve(
        self,
        pull_secret: PullSecretRef | None,
        namespace: str,
        token: CancelToken | None = None,
    ) -> Credentials:
        if pull_secret is None or not pull_secret.secret_name:
            return Credentials.anonymous()
        raise CredentialsError(
            f"failed to get pull secret {pull_secret.secret_name}: no secret store configured"
        )
