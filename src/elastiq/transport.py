"""Elasticsearch transport.

Executes compiled request params with the official ``elasticsearch``
client and reports the outcome as a TransportResponse. Client errors are
caught here and turned into failed responses; nothing above this layer
sees an ``elasticsearch`` exception.

Key Features:
    - Lazy client initialization from ElastiqSettings (hosts, cloud id, auth, TLS)
    - One dispatch entry per Operation
    - Field-mapping lookup flattened to ``{field: type}`` for keyword resolution
"""

from typing import Any, Dict, Optional

from elasticsearch import ApiError, Elasticsearch, TransportError

from .abc import MappingLookup, Transport
from .constants import Operation
from .exceptions import ConfigurationError, ExecutionError, MissingConfigError
from .logger import Logger
from .results import parse_field_map
from .schema import QueryMeta, TransportResponse
from .settings import settings as api_settings

# Request-level keys that stay top-level keyword arguments of the client call
_BODY_KEY_RENAMES = {"_source": "source"}
_PARAM_KEY_RENAMES = {"from": "from_"}


def to_client_kwargs(params: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten ``{index, size, from, body{...}}`` params into client keyword arguments."""
    kwargs: Dict[str, Any] = {}
    for key, value in params.items():
        if key == "body":
            for body_key, body_value in value.items():
                kwargs[_BODY_KEY_RENAMES.get(body_key, body_key)] = body_value
        else:
            kwargs[_PARAM_KEY_RENAMES.get(key, key)] = value
    return kwargs


def error_message(exc: Exception) -> str:
    """Best-effort readable message of an elasticsearch client error."""
    if isinstance(exc, ApiError):
        info = exc.info if isinstance(exc.info, dict) else {}
        reason = info.get("error", {}).get("reason") if isinstance(info.get("error"), dict) else None
        return f"{exc.error}: {reason}" if reason else str(exc.message)
    if isinstance(exc, TransportError):
        # str() of a connection error is a fixed text; the reason is in message / errors
        message = str(exc.message)
        causes = [str(cause) for cause in exc.errors if str(cause) and str(cause) not in message]
        if causes:
            message = f"{message} ({'; '.join(causes)})"
        return message
    return str(exc)


class ElasticsearchTransport(Transport, MappingLookup):
    """Transport and mapping lookup backed by ``elasticsearch.Elasticsearch``.

    Attributes:
        client_params: Extra keyword arguments passed to the client constructor
    """

    _HANDLERS = {
        Operation.SEARCH: "_search",
        Operation.AGGREGATE: "_search",
        Operation.COUNT: "_count",
        Operation.BULK: "_bulk",
        Operation.INDEX: "_index",
        Operation.DELETE_BY_QUERY: "_delete_by_query",
        Operation.UPDATE_BY_QUERY: "_update_by_query",
    }

    def __init__(self, client: Optional[Elasticsearch] = None, **client_params: Any) -> None:
        self._client = client
        self.client_params = client_params
        self.logger = Logger(self.__class__.__name__)

    @property
    def client(self) -> Elasticsearch:
        """Lazily initialize and return the Elasticsearch client.

        Raises:
            MissingConfigError: If neither ES_HOSTS nor ES_CLOUD_ID is configured
            ConfigurationError: If the client rejects the configuration
        """
        if self._client is None:
            try:
                self._client = Elasticsearch(**self._get_client_params())
            except ValueError as e:
                raise ConfigurationError(
                    "Failed to initialize Elasticsearch client", original_error=str(e)
                ) from e
            self.logger.message("Elasticsearch client initialized.")
        return self._client

    def _get_client_params(self) -> Dict[str, Any]:
        def _add_if_not_none(key, value):
            return {key: value} if value is not None else {}

        if not api_settings.ES_HOSTS and not api_settings.ES_CLOUD_ID:
            raise MissingConfigError(
                "Elasticsearch connection is not configured",
                config_key="ES_HOSTS/ES_CLOUD_ID",
                hint="Set ES_HOSTS or ES_CLOUD_ID in the environment or .env file.",
            )
        basic_auth = None
        if api_settings.ES_USERNAME is not None:
            basic_auth = (api_settings.ES_USERNAME, api_settings.ES_PASSWORD or "")

        if api_settings.ES_CLOUD_ID:
            args: Dict[str, Any] = {"cloud_id": api_settings.ES_CLOUD_ID}
        else:
            args = {"hosts": list(api_settings.ES_HOSTS)}
        args.update(
            {
                **_add_if_not_none("api_key", api_settings.ES_API_KEY),
                **_add_if_not_none("basic_auth", basic_auth),
                "verify_certs": api_settings.ES_VERIFY_CERTS,
                **_add_if_not_none("ca_certs", api_settings.ES_CA_CERTS),
            }
        )
        args.update(self.client_params)
        return args

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def execute(self, operation: Operation, params: Dict[str, Any]) -> TransportResponse:
        meta = QueryMeta(query=operation.value, index=params.get("index"), dsl=params)
        handler = self._HANDLERS.get(operation)
        if handler is None:
            return TransportResponse.failure(f"Unsupported operation: {operation}", meta)

        try:
            data = getattr(self, handler)(to_client_kwargs(params))
        except (ApiError, TransportError) as e:
            message = error_message(e)
            self.logger.error("%s failed on index=%s: %s", operation.value, meta.index, message)
            return TransportResponse.failure(message, meta)

        meta.took = int(data.get("took", 0) or 0) if isinstance(data, dict) else 0
        self.logger.request(operation.value, meta.index, meta.took)
        return TransportResponse(is_successful=True, data=data, meta=meta)

    def _search(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.search(**kwargs).body

    def _count(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.count(**kwargs).body

    def _bulk(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.bulk(**kwargs).body

    def _index(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.index(**kwargs).body

    def _delete_by_query(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.delete_by_query(**kwargs).body

    def _update_by_query(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.update_by_query(**kwargs).body

    # ------------------------------------------------------------------
    # MappingLookup
    # ------------------------------------------------------------------
    def get_field_mapping(self, index: str, field_pattern: str = "*") -> Dict[str, str]:
        """Return the flattened field mapping of `index`.

        Raises:
            ExecutionError: If the mapping cannot be fetched
        """
        try:
            response = self.client.indices.get_field_mapping(index=index, fields=field_pattern)
        except (ApiError, TransportError) as e:
            raise ExecutionError(
                "Failed to fetch field mapping", index=index, original_error=error_message(e)
            ) from e
        return parse_field_map(response.body)
