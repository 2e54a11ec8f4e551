import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response

from . import client_config, config, validation
from .access import AccessContextResolver
from .ca import CertificateAuthority, LocalCa
from .errors import InputValidationError, IssuanceFailure, ProfileAccessDenied, SessionLookupError
from .issuer import CertificateIssuer
from .logging_config import audit_log, configure_logging, set_request_id
from .models import PortalConfig, Principal
from .profiles import eligible_profiles, require_profile
from .storage import Storage
from .tls_crypt import StaticKey, load_or_generate
from .util import SecureRandom, SystemClock, parse_datetime, utc_rfc3339
from .validator import validate_certificate

logger = logging.getLogger(__name__)


@dataclass
class Portal:
    """Everything a request handler needs, wired once at startup."""
    storage: Storage
    portal_config: PortalConfig
    ca: CertificateAuthority
    tls_crypt: StaticKey
    resolver: AccessContextResolver
    issuer: CertificateIssuer
    clock: Any
    shuffle_hosts: bool = True


def build_portal(
    storage: Storage,
    portal_config: PortalConfig,
    ca: CertificateAuthority,
    tls_crypt: StaticKey,
    clock=None,
    random_source=None,
    shuffle_hosts: bool = True
) -> Portal:
    clock = clock or SystemClock()
    resolver = AccessContextResolver(storage, portal_config, clock)
    issuer = CertificateIssuer(resolver, ca, storage, random_source or SecureRandom(), clock=clock)
    return Portal(
        storage=storage,
        portal_config=portal_config,
        ca=ca,
        tls_crypt=tls_crypt,
        resolver=resolver,
        issuer=issuer,
        clock=clock,
        shuffle_hosts=shuffle_hosts,
    )


def portal_from_config() -> Portal:
    storage = Storage(config.DB_PATH)
    storage.init_db()
    return build_portal(
        storage=storage,
        portal_config=config.load_portal_config(),
        ca=LocalCa(config.CA_DIR),
        tls_crypt=load_or_generate(config.TLS_CRYPT_PATH),
        shuffle_hosts=config.SHUFFLE_HOSTS,
    )


# ============================================================
# Dependencies and response helpers
# ============================================================

def get_portal(request: Request) -> Portal:
    return request.app.state.portal


def get_principal(request: Request) -> Principal:
    """The principal placed on the request by the OAuth layer."""
    principal = getattr(request.state, "principal", None)
    if not isinstance(principal, Principal):
        raise HTTPException(401, "NOT_AUTHENTICATED")
    return principal


def api_response(call: str, data: Any) -> JSONResponse:
    return JSONResponse({call: {"ok": True, "data": data}})


def api_error(call: str, error: str, status_code: int = 200) -> JSONResponse:
    return JSONResponse({call: {"ok": False, "error": error}}, status_code=status_code)


router = APIRouter()


@router.get("/profile_list")
def profile_list(principal: Principal = Depends(get_principal), portal: Portal = Depends(get_portal)):
    permissions = portal.resolver.permission_list(principal)
    profiles = [
        {
            "profile_id": profile_id,
            "display_name": profile.display_name,
            # 2FA is handled by the portal itself
            "two_factor": False,
        }
        for profile_id, profile in eligible_profiles(portal.portal_config, permissions)
    ]
    return api_response("profile_list", profiles)


@router.get("/user_info")
def user_info(principal: Principal = Depends(get_principal)):
    return api_response("user_info", {
        "user_id": principal.user_id,
        "two_factor_enrolled": False,
        "two_factor_enrolled_with": [],
        "two_factor_supported_methods": [],
        "is_disabled": False,
    })


@router.post("/create_keypair")
def create_keypair(principal: Principal = Depends(get_principal), portal: Portal = Depends(get_portal)):
    issued = portal.issuer.issue(principal)
    return api_response("create_keypair", {
        "certificate": issued.cert_data,
        "private_key": issued.key_data,
    })


@router.get("/check_certificate")
def check_certificate(
    common_name: str = Query(...),
    principal: Principal = Depends(get_principal),
    portal: Portal = Depends(get_portal)
):
    # any authenticated user can query any CN; ownership is only known
    # once the record has been found
    common_name = validation.common_name(common_name)
    record = portal.storage.get_user_certificate_info(common_name)
    status = validate_certificate(record, portal.clock.now())
    audit_log.certificate_checked(common_name, status.is_valid, status.reason.value if status.reason else None)
    return api_response("check_certificate", status.to_dict())


@router.get("/profile_config")
def profile_config(
    profile_id: str = Query(...),
    principal: Principal = Depends(get_principal),
    portal: Portal = Depends(get_portal)
):
    try:
        requested = validation.profile_id(profile_id)
        permissions = portal.resolver.permission_list(principal)
        profile = require_profile(portal.portal_config, requested, permissions)
    except ProfileAccessDenied as e:
        audit_log.profile_denied(principal.user_id, e.profile_id)
        return api_error("profile_config", e.reason)
    except InputValidationError as e:
        return api_error("profile_config", e.reason)

    rendered = client_config.render(
        profile,
        portal.ca.ca_cert(),
        portal.tls_crypt.raw(),
        shuffle_hosts=portal.shuffle_hosts
    )
    return Response(client_config.to_crlf(rendered), media_type="application/x-openvpn-profile")


@router.get("/user_messages")
def user_messages(principal: Principal = Depends(get_principal), portal: Portal = Depends(get_portal)):
    messages = [
        {
            "type": m["type"],
            "date_time": m["date_time"],
            "message": m["message"],
        }
        for m in portal.storage.user_messages(principal.user_id)
    ]
    return api_response("user_messages", messages)


@router.get("/system_messages")
def system_messages(principal: Principal = Depends(get_principal), portal: Portal = Depends(get_portal)):
    messages = [
        {
            # clients only know the "notification" type
            "type": "notification",
            "date_time": utc_rfc3339(parse_datetime(m["date_time"])),
            "message": m["message"],
        }
        for m in portal.storage.system_messages("motd")
    ]
    return api_response("system_messages", messages)


@router.get("/health")
def health(portal: Portal = Depends(get_portal)):
    return {"status": "ok", "db": portal.storage.get_db_stats(), "config": config.validate_config()}


# ============================================================
# Application
# ============================================================

def create_app(portal: Optional[Portal] = None) -> FastAPI:
    """
    Build the API application.

    Without a `portal`, one is assembled from the environment
    configuration at startup.
    """
    app = FastAPI(title="VPN Portal API")
    app.state.portal = portal
    app.include_router(router)

    @app.on_event("startup")
    def _startup():
        if app.state.portal is None:
            configure_logging(config.LOG_LEVEL, json_format=config.LOG_JSON)
            app.state.portal = portal_from_config()

    @app.middleware("http")
    async def _request_id(request: Request, call_next):
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(InputValidationError)
    async def _input_validation(request: Request, exc: InputValidationError):
        # only /check_certificate lets malformed input through to here
        return api_error("check_certificate", exc.reason, status_code=400)

    @app.exception_handler(IssuanceFailure)
    async def _issuance_failure(request: Request, exc: IssuanceFailure):
        logger.error("Certificate issuance failed at stage %s", exc.stage)
        return api_error("create_keypair", "unable to issue certificate", status_code=500)

    @app.exception_handler(SessionLookupError)
    async def _session_lookup(request: Request, exc: SessionLookupError):
        audit_log.security_event("session_missing", severity="medium", user_id=exc.user_id)
        return JSONResponse({"error": "session not found"}, status_code=401)

    return app


app = create_app()
