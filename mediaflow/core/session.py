# core/session.py
"""
Session record: the current credentials plus service clients built from them.

A credential update never mutates a live session. `reload_session` returns a
new Session whose clients were all constructed from the new credentials.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Optional

from mediaflow.core.aws_client import (
    AwsCredentials,
    get_polly_client,
    get_rekognition_client,
    get_s3_client,
    get_transcribe_client,
    get_translate_client,
    resolve_credentials,
    validate_aws_credentials,
)
from mediaflow.core.logger import logger

ClientFactory = Callable[[Optional[AwsCredentials]], Any]

DEFAULT_FACTORIES: Dict[str, ClientFactory] = {
    "s3": get_s3_client,
    "rekognition": get_rekognition_client,
    "transcribe": get_transcribe_client,
    "translate": get_translate_client,
    "polly": get_polly_client,
}


@dataclass(frozen=True)
class Session:
    credentials: AwsCredentials
    clients: Dict[str, Any] = field(default_factory=dict)

    @property
    def region(self) -> Optional[str]:
        return self.credentials.region

    def client(self, service_name: str):
        try:
            return self.clients[service_name]
        except KeyError:
            raise KeyError(f"No '{service_name}' client in this session") from None


def build_session(
    credentials: Optional[AwsCredentials] = None,
    factories: Optional[Dict[str, ClientFactory]] = None
) -> Session:
    """Resolve credentials and construct one client per service."""
    resolved = resolve_credentials(credentials)
    if not validate_aws_credentials(resolved):
        logger.warning("Building a session without explicit credentials; boto3 falls back to its default chain")
    factories = factories or DEFAULT_FACTORIES
    clients = {name: factory(resolved) for name, factory in factories.items()}
    logger.info(f"Session built for region={resolved.region} services={sorted(clients)}")
    return Session(credentials=resolved, clients=clients)


def reload_session(
    session: Session,
    credentials: AwsCredentials,
    factories: Optional[Dict[str, ClientFactory]] = None
) -> Session:
    """
    Return a new Session for `credentials`. Fields left unset in `credentials`
    keep the values of the current session.
    """
    merged = replace(
        session.credentials,
        **{k: v for k, v in vars(credentials).items() if v is not None}
    )
    return build_session(merged, factories)
