import logging
import re
from collections.abc import Mapping

from gospec.models import AuthInfo, EndpointDescriptor, EnhanceOutcome, HandlerDescriptor

logger = logging.getLogger(__name__)

HANDLER_SUFFIXES = ("Handler", "Func", "API", "Endpoint")

AUTH_DESCRIPTIONS = {
    "guest_only": "Only available to unauthenticated clients",
    "auth": "Requires an authenticated record",
    "superuser_or_owner": "Requires superuser or the owning record",
    "superuser": "Requires superuser authentication",
}

_METHOD_VALUE = re.compile(r"\(\*?(\w+)\)\.(\w+)")


def normalize_handler_reference(reference: str) -> str:
    """``github.com/x/apis.(*API).List-fm`` -> ``apis.API.List``."""
    name = reference.strip().rsplit("/", 1)[-1].removesuffix("-fm")
    return _METHOD_VALUE.sub(r"\1.\2", name)


def handler_name_candidates(reference: str) -> list[str]:
    """Lookup keys to try for a handler reference, most specific first."""
    name = normalize_handler_reference(reference)
    if not name:
        return []
    parts = name.split(".")
    qualified = [".".join(parts[index:]) for index in range(len(parts))]

    candidates: list[str] = []
    for candidate in qualified:
        if candidate not in candidates:
            candidates.append(candidate)
    for candidate in qualified:
        for suffix in HANDLER_SUFFIXES:
            if candidate.endswith(suffix) and len(candidate) > len(suffix):
                stripped = candidate.removesuffix(suffix)
                if stripped not in candidates:
                    candidates.append(stripped)
    return candidates


def find_handler(endpoint: EndpointDescriptor, handlers: Mapping[str, HandlerDescriptor]) -> HandlerDescriptor | None:
    for candidate in handler_name_candidates(endpoint.handler):
        if candidate in handlers:
            return handlers[candidate]
    return None


def auth_info(handler: HandlerDescriptor) -> AuthInfo | None:
    if not handler.auth_category:
        return None
    return AuthInfo(
        required=handler.auth_required,
        type=handler.auth_category,
        collections=list(handler.auth_collections),
        owner_param=handler.owner_param,
        description=AUTH_DESCRIPTIONS.get(handler.auth_category, ""),
    )


def enhance_endpoint(endpoint: EndpointDescriptor, handlers: Mapping[str, HandlerDescriptor]) -> EnhanceOutcome:
    """Fill ``endpoint`` in place from the analyzed handler it names.

    Only the handler reference is consulted; an endpoint whose reference
    names no analyzed handler is left untouched.
    """
    handler = find_handler(endpoint, handlers)
    if handler is None:
        logger.warning("No analyzed handler for %s %s (%s)", endpoint.method, endpoint.path, endpoint.handler)
        return EnhanceOutcome.UNMATCHED

    if handler.description:
        endpoint.description = handler.description
    elif handler.summary and not endpoint.description:
        endpoint.description = handler.summary
    if handler.tags:
        endpoint.tags = list(handler.tags)

    auth = auth_info(handler)
    if auth is not None:
        endpoint.auth = auth

    known = {param.name for param in endpoint.parameters}
    for param in handler.declared_parameters:
        if param.name not in known:
            endpoint.parameters.append(param.model_copy())

    if handler.request_schema is not None:
        endpoint.request = handler.request_schema.clone()
    if handler.response_schema is not None:
        endpoint.response = handler.response_schema.clone()
    handler.enhanced = True

    if endpoint.request is None and endpoint.response is None:
        logger.warning("Handler %s matched %s %s but produced no schema", handler.name, endpoint.method, endpoint.path)
        return EnhanceOutcome.MATCHED_WITHOUT_SCHEMA
    logger.debug("Enhanced %s %s from handler %s", endpoint.method, endpoint.path, handler.name)
    return EnhanceOutcome.MATCHED
