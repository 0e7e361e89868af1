"""
Request dependencies: rate gating, authentication and service lookup.

Route handlers declare the rate dependency before the auth dependency, and
the auth dependency before the JSON body dependency, so that rejected
callers never reach token verification or body parsing.
"""
from typing import Callable, Optional, Type, TypeVar
import logging

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ValidationError

from ..config import RateLimitSettings
from ..exceptions import AccessDenied, RateLimited, Unauthenticated, ValidationFailed
from ..limiter import RateDecision, RateGate, client_address
from ..services import AuthService, EscalationWorkflow, Principal, StatsService
from ..store import SupportStore
from ..utils.telemetry import track_rate_limit

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

ModelT = TypeVar("ModelT", bound=BaseModel)


def get_rate_gate(request: Request) -> RateGate:
    return request.app.state.rate_gate


def get_rate_limit_settings(request: Request) -> RateLimitSettings:
    return request.app.state.rate_limits


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_escalation_workflow(request: Request) -> EscalationWorkflow:
    return request.app.state.escalation_workflow


def get_stats_service(request: Request) -> StatsService:
    return request.app.state.stats_service


def get_store(request: Request) -> SupportStore:
    return request.app.state.store


def rate_limited(route_name: str, policy_name: str) -> Callable:
    """
    Build a dependency that admits or rejects the request.

    Args:
        route_name: Logical route name used in the limiter key
        policy_name: Rate-limit policy to apply

    Returns:
        Dependency returning the RateDecision (raises RateLimited on reject)
    """
    async def check_rate(
        request: Request,
        response: Response,
        gate: RateGate = Depends(get_rate_gate),
        limits: RateLimitSettings = Depends(get_rate_limit_settings)
    ) -> RateDecision:
        decision = gate.check(
            route_name,
            client_address(request, request.app.state.settings.trusted_proxies),
            policy=limits.policy(policy_name)
        )
        track_rate_limit(route_name, decision.success)

        if not decision.success:
            raise RateLimited(decision.reset_in_ms, remaining=decision.remaining)

        for name, value in decision.headers().items():
            response.headers[name] = value

        request.state.rate_decision = decision
        return decision

    return check_rate


async def require_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth: AuthService = Depends(get_auth_service)
) -> Principal:
    """Verified caller, or 401."""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Authentication required")

    principal = auth.verify_token(credentials.credentials)
    if principal is None:
        raise Unauthenticated("Invalid or expired token")

    return principal


def json_body(model: Type[ModelT]) -> Callable:
    """
    Build a dependency that parses the JSON body into model.

    Used in place of a body parameter so parsing happens after the rate
    and auth dependencies; malformed JSON and schema errors both raise
    ValidationFailed.
    """
    async def parse_body(request: Request) -> ModelT:
        raw = await request.body()
        try:
            return model.model_validate_json(raw)
        except ValidationError as e:
            errors = e.errors()
            message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
            raise ValidationFailed(message)

    return parse_body


async def require_admin(
    principal: Principal = Depends(require_principal),
    auth: AuthService = Depends(get_auth_service)
) -> Principal:
    """Verified administrator, or 403."""
    if not auth.is_admin(principal):
        logger.warning(f"Non-admin user {principal.user_id} attempted admin access")
        raise AccessDenied("Admin access required")
    return principal


__all__ = [
    'get_rate_gate',
    'get_rate_limit_settings',
    'get_auth_service',
    'get_escalation_workflow',
    'get_stats_service',
    'get_store',
    'rate_limited',
    'json_body',
    'require_principal',
    'require_admin',
]
