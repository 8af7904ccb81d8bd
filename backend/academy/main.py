# backend/academy/main.py
import logging
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import auth, config, models, otp_service, progress, schemas, seed, sessions
from .database import SessionLocal, engine, get_db
from .errors import AppError, AuthenticationError, ConflictError, ValidationError
from .models import utcnow
from .routes_admin import router as admin_router
from .routes_public import router as public_router
from .routes_student import router as student_router
from .utils import is_password_valid, normalize_email

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("academy")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    config.validate_environment()
    models.Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed.seed_all(db)
        otp_service.cleanup_expired_otps(db)
        sessions.purge_expired_sessions(db)
    finally:
        db.close()
    logger.info("Academy API ready (env=%s)", config.APP_ENV)
    yield


app = FastAPI(title="Academy Portal API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_api_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    if request.url.path.startswith("/api"):
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info("%s %s %s in %.0fms", request.method, request.url.path, response.status_code, duration_ms)
    return response


# ---------- Error handlers ----------

@app.exception_handler(AppError)
async def app_error_handler(_request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"message": "Validation error", "errors": errors})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal Server Error"})


@app.get("/api/health")
def health():
    return {"status": "ok"}


# ---------- Student authentication ----------

def _student_result(student: models.StudentUser) -> dict:
    return {"user": schemas.StudentOut.model_validate(student), "profile_completed": student.profile_completed}


@app.post("/api/student/request-otp", response_model=schemas.OtpRequestResult, response_model_exclude_none=True)
def request_otp(payload: schemas.OtpRequest, db: Session = Depends(get_db)):
    issue = otp_service.request_otp(db, payload.identifier, payload.name, payload.type)
    debug = issue.code if not issue.delivered and not config.IS_PRODUCTION else None
    return {"message": "OTP sent successfully", "debug": debug}


@app.post("/api/student/verify-otp", response_model=schemas.StudentAuthResult)
def verify_otp(payload: schemas.OtpVerify, response: Response, db: Session = Depends(get_db)):
    student = otp_service.verify_otp(db, payload.identifier, payload.otp, payload.type)
    sessions.create_session(db, response, student=student)
    progress.check_achievements(db, student.id)
    return _student_result(student)


@app.post("/api/student/check-email", response_model=schemas.CheckEmailResult)
def check_email(payload: schemas.CheckEmail, db: Session = Depends(get_db)):
    email = normalize_email(payload.email)
    is_admin = (
        db.query(models.AdminUser)
        .filter(models.AdminUser.username == email, models.AdminUser.is_active.is_(True))
        .first()
        is not None
    )
    student_exists = db.query(models.StudentUser).filter(models.StudentUser.email == email).first() is not None
    return {"exists": is_admin or student_exists, "is_admin": is_admin}


@app.post("/api/student/email-login", response_model=schemas.LoginResult, response_model_exclude_none=True)
def email_login(payload: schemas.EmailLogin, response: Response, db: Session = Depends(get_db)):
    admin = auth.authenticate_admin(db, payload.email, payload.password)
    if admin:
        sessions.create_session(db, response, admin=admin)
        return {"role": "admin", "admin": schemas.AdminOut.model_validate(admin)}

    student = auth.authenticate_student(db, payload.email, payload.password)
    if not student:
        raise AuthenticationError("Invalid email or password")
    student.last_login = utcnow()
    progress.touch_login_streak(db, student.id)
    db.commit()
    sessions.create_session(db, response, student=student)
    progress.check_achievements(db, student.id)
    return {"role": "student", **_student_result(student)}


@app.post("/api/student/email-register", response_model=schemas.StudentAuthResult, status_code=201)
def email_register(payload: schemas.EmailRegister, response: Response, db: Session = Depends(get_db)):
    email = normalize_email(payload.email)
    if not is_password_valid(payload.password):
        raise ValidationError.for_field(
            "password", "Password must be at least 8 characters and include a letter and a number."
        )
    taken = (
        db.query(models.StudentUser).filter(models.StudentUser.email == email).first()
        or db.query(models.AdminUser).filter(models.AdminUser.username == email).first()
    )
    if taken:
        raise ConflictError("Email already registered")
    student = models.StudentUser(
        name=payload.name,
        email=email,
        hashed_password=auth.get_password_hash(payload.password),
        last_login=utcnow(),
    )
    db.add(student)
    db.flush()
    progress.touch_login_streak(db, student.id)
    db.commit()
    db.refresh(student)
    sessions.create_session(db, response, student=student)
    progress.check_achievements(db, student.id)
    return _student_result(student)


@app.post("/api/student/logout", response_model=schemas.Message)
def student_logout(request: Request, response: Response, db: Session = Depends(get_db)):
    sessions.destroy_session(db, request, response)
    return {"message": "Logged out successfully"}


@app.get("/api/student/me")
def student_me(identity: sessions.StudentIdentity = Depends(sessions.require_student)):
    return {"role": "student", "user": identity.to_dict()}


# ---------- Admin authentication ----------

@app.post("/api/admin/login", response_model=schemas.AdminOut)
def admin_login(payload: schemas.AdminLogin, response: Response, db: Session = Depends(get_db)):
    admin = auth.authenticate_admin(db, payload.username, payload.password)
    if not admin:
        raise AuthenticationError("Invalid username or password")
    sessions.create_session(db, response, admin=admin)
    return admin


@app.post("/api/admin/logout", response_model=schemas.Message)
def admin_logout(request: Request, response: Response, db: Session = Depends(get_db)):
    sessions.destroy_session(db, request, response)
    return {"message": "Logged out successfully"}


@app.get("/api/admin/me")
def admin_me(identity: sessions.AdminIdentity = Depends(sessions.require_admin)):
    return {"role": "admin", "admin": identity.to_dict()}


app.include_router(public_router)
app.include_router(student_router)
app.include_router(admin_router)
