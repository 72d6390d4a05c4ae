import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from museum.auth import AuthUser
from museum.backend import Backend
from museum.config import load_settings
from museum.errors import ForbiddenError, MuseumError, NotFoundError, UnauthenticatedError, ValidationError
from museum.schemas import (
    AddToInventoryRequest,
    AnalyzeRequest,
    CaptureRequest,
    ContentRequest,
    InvitationRequest,
    LoginRequest,
    ModifiedCreateRequest,
    ModifiedUpdateRequest,
    OnboardingResponseItem,
    PresetCreateRequest,
    PresetUpdateRequest,
    SignupRequest,
    ThemeMusicRequest,
)
from museum.theme_prompts import ONBOARDING_QUESTIONS

logger = logging.getLogger("museum_backend")

router = APIRouter()


# -----------------------
# Dependencies
# -----------------------

def get_backend(request: Request) -> Backend:
    return request.app.state.backend


def current_user(request: Request, authorization: Optional[str] = Header(None)) -> AuthUser:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise UnauthenticatedError("Authentication required")
    token = authorization.split(" ", 1)[1].strip()
    return get_backend(request).users.authenticate_token(token)


def admin_user(user: AuthUser = Depends(current_user)) -> AuthUser:
    if not user.is_admin:
        raise ForbiddenError("Admin privileges required")
    return user


# -----------------------
# Health / auth
# -----------------------

@router.get("/health")
def health(backend: Backend = Depends(get_backend)):
    db_ok = backend.database_ok()
    return JSONResponse(
        status_code=200 if db_ok else 503,
        content={"status": "ok" if db_ok else "degraded", "database": db_ok},
    )


@router.post("/auth/signup", status_code=201)
def signup(body: SignupRequest, backend: Backend = Depends(get_backend)):
    return backend.users.signup(body.email, body.password, body.name)


@router.post("/auth/login")
def login(body: LoginRequest, backend: Backend = Depends(get_backend)):
    return backend.users.login(body.email, body.password)


@router.get("/auth/profile")
def profile(user: AuthUser = Depends(current_user), backend: Backend = Depends(get_backend)):
    return backend.users.get_profile(user.id)


@router.get("/auth/verify")
def verify(user: AuthUser = Depends(current_user)):
    return {"valid": True, "user": {"id": user.id, "email": user.email, "name": user.name}}


# -----------------------
# Users / theme
# -----------------------

@router.patch("/users/invitation")
def update_invitation(body: InvitationRequest, user: AuthUser = Depends(current_user),
                      backend: Backend = Depends(get_backend)):
    invitation = backend.users.update_invitation(user.id, body.invitation)
    return {"message": "초대 문구가 성공적으로 업데이트되었습니다.", "invitation": invitation}


@router.put("/users/theme/{theme_id}")
def update_theme(theme_id: str, user: AuthUser = Depends(current_user), backend: Backend = Depends(get_backend)):
    try:
        parsed = int(theme_id)
    except ValueError:
        raise ValidationError("Invalid theme ID. Must be between 1 and 5.") from None
    data = backend.users.assign_theme(user.id, parsed)
    return {"success": True, "message": "Theme updated successfully.", "data": data}


@router.patch("/users/theme/music")
def update_theme_music(body: ThemeMusicRequest, user: AuthUser = Depends(current_user),
                       backend: Backend = Depends(get_backend)):
    data = backend.users.update_background_music(user.id, body.theme_id)
    return {"success": True, "message": "User background music updated successfully", "data": data}


# -----------------------
# Onboarding / analysis
# -----------------------

@router.get("/onboarding/theme")
def onboarding_questions(user: AuthUser = Depends(current_user)):
    return {"status": "success", "questions": ONBOARDING_QUESTIONS}


@router.post("/onboarding/theme", status_code=201)
def onboarding_answers(body: List[OnboardingResponseItem], user: AuthUser = Depends(current_user),
                       backend: Backend = Depends(get_backend)):
    if len(body) < len(ONBOARDING_QUESTIONS):
        raise ValidationError("Incomplete responses")
    backend.users.save_onboarding_responses(user.id, [r.model_dump() for r in body])
    return {"status": "success", "message": "Onboarding responses received"}


def _analysis_response(backend: Backend, user_id: str, responses: List[dict]) -> dict:
    result = backend.analysis.analyze_responses(responses)
    info = backend.analysis.theme_info(result["choice"])
    saved = backend.users.save_analysis(user_id, result["choice"], result["reason"], info["name"], responses)
    return {
        "success": True,
        "message": "AI analysis completed successfully",
        "data": {
            "analysis": {"choice": saved["choice"], "reason": saved["reason"], "analyzedAt": saved["analyzedAt"]},
            "theme": info,
            "user": {"id": user_id},
        },
    }


@router.post("/arti/analyze")
def analyze(body: AnalyzeRequest, user: AuthUser = Depends(current_user), backend: Backend = Depends(get_backend)):
    return _analysis_response(backend, user.id, [r.model_dump() for r in body.responses])


@router.post("/arti/analyze-from-profile")
def analyze_from_profile(user: AuthUser = Depends(current_user), backend: Backend = Depends(get_backend)):
    responses = backend.users.get_onboarding_responses(user.id)
    if len(responses) != 5:
        raise ValidationError("User must complete onboarding first (5 responses required)")
    return _analysis_response(backend, user.id, responses)


@router.get("/arti/analysis")
def get_analysis(user: AuthUser = Depends(current_user), backend: Backend = Depends(get_backend)):
    analysis = backend.users.get_analysis(user.id)
    if not analysis:
        raise NotFoundError("No analysis found for this user")
    return {"success": True, "data": {**analysis, "themeInfo": backend.analysis.theme_info(analysis["choice"])}}


# -----------------------
# Catalog objects
# -----------------------

@router.post("/object/followup")
def follow_up(body: ContentRequest, user: AuthUser = Depends(current_user), backend: Backend = Depends(get_backend)):
    return {"question": backend.objects.generate_follow_up_question(body.content)}


@router.post("/object", status_code=201)
def create_object(body: ContentRequest, user: AuthUser = Depends(current_user), backend: Backend = Depends(get_backend)):
    return backend.objects.create_from_text(body.content, user.id)


@router.post("/object/add")
def add_to_inventory(body: AddToInventoryRequest, user: AuthUser = Depends(current_user),
                     backend: Backend = Depends(get_backend)):
    return backend.objects.add_to_inventory(body.object_id, user.id)


@router.get("/object")
def list_user_objects(user: AuthUser = Depends(current_user), backend: Backend = Depends(get_backend)):
    return backend.objects.list_user_objects(user.id)


@router.get("/object/basic")
def list_preset_objects(user: AuthUser = Depends(current_user), backend: Backend = Depends(get_backend)):
    return backend.objects.list_preset_objects()


@router.post("/object/basic", status_code=201)
def create_preset_object(body: PresetCreateRequest, user: AuthUser = Depends(admin_user),
                         backend: Backend = Depends(get_backend)):
    return backend.objects.create_preset_object(body)


@router.patch("/object/{object_id}")
def update_preset_object(object_id: str, body: PresetUpdateRequest, user: AuthUser = Depends(admin_user),
                         backend: Backend = Depends(get_backend)):
    return backend.objects.update_preset_object(object_id, body.model_dump(exclude_unset=True))


@router.delete("/object/{object_id}", status_code=204, response_class=Response)
def delete_preset_object(object_id: str, user: AuthUser = Depends(admin_user), backend: Backend = Depends(get_backend)):
    backend.objects.delete_preset_object(object_id)
    return Response(status_code=204)


# -----------------------
# Modified objects
# -----------------------

@router.post("/modified", status_code=201)
def create_modified(body: ModifiedCreateRequest, user: AuthUser = Depends(current_user),
                    backend: Backend = Depends(get_backend)):
    return backend.modified.create(user.id, body)


@router.patch("/modified/{modified_id}")
def update_modified(modified_id: str, body: ModifiedUpdateRequest, user: AuthUser = Depends(current_user),
                    backend: Backend = Depends(get_backend)):
    return backend.modified.update(modified_id, user.id, body.model_dump(exclude_unset=True))


@router.get("/modified")
def list_modified(user: AuthUser = Depends(current_user), backend: Backend = Depends(get_backend)):
    return backend.modified.list_for_owner(user.id)


@router.delete("/modified/{modified_id}", status_code=204, response_class=Response)
def delete_modified(modified_id: str, user: AuthUser = Depends(current_user), backend: Backend = Depends(get_backend)):
    backend.modified.delete(modified_id, user.id)
    return Response(status_code=204)


# -----------------------
# Capture
# -----------------------

@router.post("/capture-and-generate-qr")
def capture_and_generate_qr(body: CaptureRequest, user: AuthUser = Depends(current_user),
                            backend: Backend = Depends(get_backend)):
    data = backend.captures.capture_and_generate_qr(user.id, body.captured_image_data, body.metadata)
    return {"success": True, "message": "Captured image saved and QR code generated successfully", "data": data}


# -----------------------
# App
# -----------------------

def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    err = errors[0]
    loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "header")]
    field = ".".join(loc)
    return f"{field}: {err.get('msg', 'invalid value')}" if field else err.get("msg", "Invalid request")


def create_app(backend: Optional[Backend] = None) -> FastAPI:
    if backend is None:
        backend = Backend(load_settings())

    app = FastAPI(title="Memorial Museum API", debug=backend.settings.debug)
    app.state.backend = backend

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=backend.settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(MuseumError)
    async def museum_error_handler(request: Request, exc: MuseumError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"message": exc.public_message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"message": _validation_message(exc)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"{request.method} {request.url.path} crashed: {exc}")
        return JSONResponse(status_code=500, content={"message": "Internal server error"})

    app.include_router(router)
    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("server:create_app", factory=True, host="0.0.0.0", port=load_settings().port)
