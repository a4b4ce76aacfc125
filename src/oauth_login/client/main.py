"""
OAuth Login Client Application

This FastAPI application implements "Login with a third-party identity
provider" using the OAuth 2.0 authorization code flow with PKCE and
server-side sessions keyed by a ``session_id`` cookie.
"""

from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..shared.logging_utils import ComponentType, OAuthLogger
from ..shared.oauth_models import ErrorResponse
from ..shared.security import SecurityHeaders
from .config import OAuthClientConfig, load_config
from .errors import AuthError, ConfigurationError
from .provider import OAuthProviderClient
from .routes import router
from .session_store import SessionStore

logger = OAuthLogger(ComponentType.CLIENT)


def create_app(config: Optional[OAuthClientConfig] = None,
               session_store: Optional[SessionStore] = None,
               transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """
    Assemble the application.

    Without an explicit ``config`` the environment is read once here. A
    configuration failure does not stop the process: it is logged, and every
    OAuth route answers 500 until the environment is fixed and the process
    restarted.

    Args:
        config: provider configuration (read from the environment if None)
        session_store: store instance to share (a new one if None)
        transport: httpx transport for provider calls (tests)
    """
    app = FastAPI(
        title="OAuth Login Client",
        description="OAuth 2.0 authorization code + PKCE login with server-side sessions",
        version="1.0.0"
    )

    config_problems = []
    if config is None:
        try:
            config = load_config()
        except ConfigurationError as e:
            config_problems = e.problems
            logger.log_error(
                "configuration_error",
                "OAuth client could not be configured; OAuth routes are disabled",
                {"problems": e.problems}
            )

    if config is not None:
        logger.log_info("OAuth client configured", {
            "provider": config.provider,
            "client_id": config.client_id,
            "redirect_url": config.redirect_url,
            "scopes": config.scopes,
            "login_path": config.login_path,
            "session_ttl_seconds": config.session_ttl
        })

    app.state.oauth_client = OAuthProviderClient(config, transport) if config else None
    app.state.config_problems = config_problems
    if session_store is None:
        session_store = SessionStore(ttl_seconds=config.session_ttl if config else None)
    app.state.session_store = session_store

    secure_transport = bool(config and config.cookie_secure)

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        """Add security headers to all HTTP responses."""
        response = await call_next(request)
        return SecurityHeaders.apply(response, secure_transport=secure_transport)

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        logger.log_error(exc.kind.name, exc.message, {
            "path": str(request.url.path),
            "status_code": exc.status_code,
            "detail": exc.detail
        })
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.message).model_dump()
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.log_error("configuration_error", str(exc), {
            "path": str(request.url.path)
        })
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error=ConfigurationError.PUBLIC_MESSAGE).model_dump()
        )

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "oauth-login",
            "oauth_configured": app.state.oauth_client is not None,
            "active_sessions": await app.state.session_store.count()
        }

    app.include_router(router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    logger.log_startup(8080, {
        "oauth_configured": app.state.oauth_client is not None,
        "login_path": app.state.oauth_client.config.login_path if app.state.oauth_client else None
    })
    uvicorn.run(app, host="0.0.0.0", port=8080)
