"""GCP Secret Manager client wrapper."""
import logging
import time
from typing import Callable, List, Optional, TypeVar

from google.api_core import exceptions as api_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import resourcemanager_v3, secretmanager
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from . import project_client
from .config_loader import RetryPolicy
from .errors import ClientError, TransientError, classify_error
from .models import Project, Secret, Version, VersionState, short_name
from .validators import (
    require,
    validate_project_id,
    validate_secret_name,
    validate_version_id,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Requests the server provably did not process. Only these are resent for
# calls whose repeat would fail or duplicate once the first attempt landed
# (create secret, add version, delete secret, destroy version).
_REJECTED_BEFORE_PROCESSING = (
    api_exceptions.TooManyRequests,
    api_exceptions.ResourceExhausted,
    api_exceptions.ServiceUnavailable,
)

_STATE_OPERATIONS = {
    VersionState.ENABLED: "enable_secret_version",
    VersionState.DISABLED: "disable_secret_version",
    VersionState.DESTROYED: "destroy_secret_version",
}


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, TransientError)


def _is_resendable(exc: BaseException) -> bool:
    return isinstance(exc, TransientError) and isinstance(exc.cause, _REJECTED_BEFORE_PROCESSING)


def _describe_replication(replication) -> str:
    if replication is not None and "user_managed" in replication:
        locations = [replica.location for replica in replication.user_managed.replicas]
        return f"User-managed ({', '.join(locations)})" if locations else "User-managed"
    return "Automatic"


class GCPSecretClient:
    """Wrapper around GCP Secret Manager client.

    Every public method performs exactly one provider operation, retried on
    TransientError according to the retry policy, and raises a ClientError
    subclass on failure.
    """

    def __init__(
        self,
        retry_policy: Optional[RetryPolicy] = None,
        client_factory: Optional[Callable[[], secretmanager.SecretManagerServiceClient]] = None,
        projects_client_factory: Optional[Callable[[], resourcemanager_v3.ProjectsClient]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.retry_policy = retry_policy or RetryPolicy()
        self._client_factory = client_factory or secretmanager.SecretManagerServiceClient
        self._projects_client_factory = projects_client_factory or resourcemanager_v3.ProjectsClient
        self._sleep = sleep
        self._client = None
        self._projects_client = None

    @property
    def client(self) -> secretmanager.SecretManagerServiceClient:
        """Lazy-initialize client."""
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    @property
    def projects_client(self) -> resourcemanager_v3.ProjectsClient:
        """Lazy-initialize the Resource Manager client (same credentials as Secret Manager)."""
        if self._projects_client is None:
            self._projects_client = self._projects_client_factory()
        return self._projects_client

    def reset(self) -> None:
        """Drop the underlying clients so fresh credentials are picked up."""
        self._client = None
        self._projects_client = None

    # --- Call plumbing ---

    def _invoke(self, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except ClientError:
            raise
        except (api_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
            raise classify_error(e)

    def _log_retry(self, description: str):
        def before_sleep(retry_state):
            error = retry_state.outcome.exception()
            logger.warning(
                f"{description} failed (attempt {retry_state.attempt_number}/"
                f"{self.retry_policy.attempts}), retrying in "
                f"{retry_state.next_action.sleep:.2f}s: {error}"
            )
        return before_sleep

    def _call(self, description: str, fn: Callable[[], T], idempotent: bool = True) -> T:
        policy = self.retry_policy
        retrying = Retrying(
            retry=retry_if_exception(_is_transient if idempotent else _is_resendable),
            stop=stop_after_attempt(policy.attempts),
            wait=wait_exponential(multiplier=policy.base_delay, max=policy.max_delay),
            sleep=self._sleep,
            before_sleep=self._log_retry(description),
            reraise=True,
        )
        logger.debug(f"Calling Secret Manager: {description}")
        return retrying(self._invoke, fn)

    # --- Paths and conversions ---

    @staticmethod
    def _project_path(project_id: str) -> str:
        require(validate_project_id(project_id))
        return f"projects/{project_id}"

    def _secret_path(self, project_id: str, secret_name: str) -> str:
        require(validate_secret_name(secret_name))
        return f"{self._project_path(project_id)}/secrets/{secret_name}"

    def _version_path(self, project_id: str, secret_name: str, version_id: str) -> str:
        require(validate_version_id(version_id))
        return f"{self._secret_path(project_id, secret_name)}/versions/{version_id}"

    @staticmethod
    def _to_secret(project_id: str, secret) -> Secret:
        return Secret(
            name=short_name(secret.name),
            project_id=project_id,
            create_time=secret.create_time or None,
            labels=dict(secret.labels),
            annotations=dict(secret.annotations),
            replication=_describe_replication(secret.replication),
            version_aliases={alias: str(number) for alias, number in secret.version_aliases.items()},
        )

    @staticmethod
    def _to_version(version) -> Version:
        # name: projects/<p>/secrets/<s>/versions/<n>
        parts = version.name.split("/")
        state = getattr(version.state, "name", str(version.state))
        return Version(
            secret_name=parts[3] if len(parts) > 3 else "",
            version_id=parts[-1],
            state=VersionState.from_api(state),
            create_time=version.create_time or None,
            destroy_time=version.destroy_time or None,
        )

    # --- Projects ---

    def list_projects(self) -> List[Project]:
        return self._call("list projects", lambda: project_client.list_projects(self.projects_client))

    # --- Secrets ---

    def list_secrets(self, project_id: str) -> List[Secret]:
        """List secrets in the order the API returns them (all pages)."""
        parent = self._project_path(project_id)

        def fetch():
            pager = self.client.list_secrets(request={"parent": parent})
            return [self._to_secret(project_id, s) for s in pager]

        return self._call(f"list secrets in {project_id}", fetch)

    def get_secret(self, project_id: str, secret_name: str) -> Secret:
        name = self._secret_path(project_id, secret_name)
        return self._call(
            f"get secret {secret_name}",
            lambda: self._to_secret(project_id, self.client.get_secret(request={"name": name})),
        )

    def create_secret(self, project_id: str, secret_name: str) -> Secret:
        """Create a secret with automatic replication and no versions."""
        parent = self._project_path(project_id)
        require(validate_secret_name(secret_name))
        request = {
            "parent": parent,
            "secret_id": secret_name,
            "secret": {"replication": {"automatic": {}}},
        }
        return self._call(
            f"create secret {secret_name}",
            lambda: self._to_secret(project_id, self.client.create_secret(request=request)),
            idempotent=False,
        )

    def delete_secret(self, project_id: str, secret_name: str) -> None:
        name = self._secret_path(project_id, secret_name)
        self._call(f"delete secret {secret_name}",
                   lambda: self.client.delete_secret(request={"name": name}),
                   idempotent=False)

    # --- Versions ---

    def list_versions(self, project_id: str, secret_name: str) -> List[Version]:
        parent = self._secret_path(project_id, secret_name)

        def fetch():
            pager = self.client.list_secret_versions(request={"parent": parent})
            return [self._to_version(v) for v in pager]

        return self._call(f"list versions of {secret_name}", fetch)

    def get_version(self, project_id: str, secret_name: str, version_id: str) -> Version:
        name = self._version_path(project_id, secret_name, version_id)
        return self._call(
            f"get version {secret_name}/{version_id}",
            lambda: self._to_version(self.client.get_secret_version(request={"name": name})),
        )

    def access_version(self, project_id: str, secret_name: str, version_id: str) -> bytes:
        """Fetch the payload of a version. The result is never cached."""
        name = self._version_path(project_id, secret_name, version_id)
        return self._call(
            f"access version {secret_name}/{version_id}",
            lambda: self.client.access_secret_version(request={"name": name}).payload.data,
        )

    def add_version(self, project_id: str, secret_name: str, payload: bytes) -> Version:
        parent = self._secret_path(project_id, secret_name)
        if not payload:
            raise ValueError("Secret value cannot be empty")
        return self._call(
            f"add version to {secret_name}",
            lambda: self._to_version(self.client.add_secret_version(
                request={"parent": parent, "payload": {"data": payload}})),
            idempotent=False,
        )

    def set_version_state(self, project_id: str, secret_name: str, version_id: str,
                          target: VersionState) -> Version:
        """Move a version to ENABLED, DISABLED or DESTROYED."""
        name = self._version_path(project_id, secret_name, version_id)
        method_name = _STATE_OPERATIONS[target]
        return self._call(
            f"set {secret_name}/{version_id} to {target.value}",
            lambda: self._to_version(getattr(self.client, method_name)(request={"name": name})),
            idempotent=target is not VersionState.DESTROYED,
        )
