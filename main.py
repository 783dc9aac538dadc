import logging
from contextlib import asynccontextmanager
from typing import Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, File, HTTPException, Path, Request, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.concurrency import run_in_threadpool

import config
import mailer
from auth import (
    authorize,
    create_access_token,
    ensure_owner,
    generate_reset_token,
    get_current_user,
    hash_reset_token,
    reset_token_expired,
    set_token_cookie,
    verify_password,
)
from database import connect, ensure_indexes, get_db, serialize_doc, to_object_id
from errors import register_error_handlers
from query import parse_query
from schemas import (
    BootcampCreate,
    BootcampUpdate,
    CourseCreate,
    CourseUpdate,
    Name,
    Password,
    ReviewCreate,
    ReviewUpdate,
    UserCreate,
    UserUpdate,
)
from services import (
    BootcampService,
    CourseService,
    ReviewService,
    UserService,
    update_average_cost,
    update_average_rating,
)

logger = logging.getLogger(__name__)


def setup_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or config.LOG_LEVEL).upper(),
        format="[%(asctime)s] %(levelname)s: %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    client, db = connect()
    app.state.db = db
    try:
        ensure_indexes(db)
    except PyMongoError:
        logger.exception("Could not create indexes on %s", db.name)
    logger.info("DevCamper API running in %s mode", config.ENVIRONMENT)
    yield
    client.close()


setup_logging()

app = FastAPI(title="DevCamper API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    response = await call_next(request)
    logger.info("%s %s -> %s", request.method, request.url, response.status_code)
    return response


router = APIRouter(prefix=config.API_PREFIX)


# -------------------- Models --------------------
class RegisterRequest(UserCreate):
    role: Literal["user", "publisher"] = "user"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: Password


class UpdateDetailsRequest(BaseModel):
    name: Optional[Name] = None
    email: Optional[EmailStr] = None


class UpdatePasswordRequest(BaseModel):
    current_password: str
    new_password: Password


# -------------------- Dependencies --------------------

def get_bootcamp_service(db: Database = Depends(get_db)) -> BootcampService:
    return BootcampService(db)


def get_course_service(db: Database = Depends(get_db)) -> CourseService:
    return CourseService(db)


def get_review_service(db: Database = Depends(get_db)) -> ReviewService:
    return ReviewService(db)


def get_user_service(db: Database = Depends(get_db)) -> UserService:
    return UserService(db)


def _found(doc, resource: str, id: str):
    if not doc:
        raise HTTPException(status_code=404, detail=f"{resource} not found with id of {id}")
    return doc


def _listing(key: str, docs, pagination):
    return {"success": True, "count": len(docs), "pagination": pagination, key: serialize_doc(docs)}


def _token_response(response: Response, user: dict):
    token = create_access_token(str(user["_id"]))
    set_token_cookie(response, token)
    return {"success": True, "user": serialize_doc(user), "token": token}


# -------------------- Health --------------------
@app.get("/")
def root():
    return {"name": "DevCamper API", "status": "ok"}


@app.get("/test")
def database_status(db: Database = Depends(get_db)):
    try:
        collections = sorted(db.list_collection_names())
    except PyMongoError:
        logger.exception("Database %s is unreachable", db.name)
        return {"database": db.name, "status": "unavailable", "collections": []}
    return {"database": db.name, "status": "connected", "collections": collections}


# -------------------- Auth --------------------
@router.post("/auth/register", status_code=201)
def register(payload: RegisterRequest, response: Response, users: UserService = Depends(get_user_service)):
    user = users.create(payload)
    return _token_response(response, user)


@router.post("/auth/login")
def login(payload: LoginRequest, response: Response, users: UserService = Depends(get_user_service)):
    user = users.get_by_email(payload.email, include_password=True)
    # same answer for unknown email and wrong password
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _token_response(response, user)


@router.get("/auth/logout")
def logout(response: Response):
    response.delete_cookie("token")
    return {"success": True, "data": {}}


@router.get("/auth/me")
def me(current_user=Depends(get_current_user)):
    return {"success": True, "user": serialize_doc(current_user)}


@router.post("/auth/forgotpassword")
def forgot_password(payload: ForgotPasswordRequest, request: Request, users: UserService = Depends(get_user_service)):
    user = users.get_by_email(payload.email)
    if not user:
        raise HTTPException(status_code=404, detail="There is no user with that email")

    token, hashed, expire = generate_reset_token()
    users.set_reset_token(user["_id"], hashed, expire)

    reset_url = f"{str(request.base_url).rstrip('/')}{config.API_PREFIX}/auth/resetpassword/{token}"
    message = (
        "You are receiving this email because you (or someone else) has requested the reset of a password. "
        f"Please make a PATCH request to: \n\n{reset_url}"
    )
    try:
        mailer.send_email(to=user["email"], subject="Password reset token", message=message)
    except OSError:
        # smtplib errors are OSErrors too
        logger.exception("Reset email to user %s failed", user["_id"])
        users.clear_reset_token(user["_id"])
        raise HTTPException(status_code=500, detail="Email could not be sent")
    return {"success": True, "data": "Email sent"}


@router.patch("/auth/resetpassword/{resettoken}")
def reset_password(
    resettoken: str,
    payload: ResetPasswordRequest,
    response: Response,
    users: UserService = Depends(get_user_service),
):
    user = users.find_by_reset_token(hash_reset_token(resettoken))
    if not user or reset_token_expired(user.get("reset_password_expire")):
        raise HTTPException(status_code=400, detail="Invalid token")
    user = users.set_password(user["_id"], payload.password)
    return _token_response(response, user)


@router.patch("/auth/updatedetails")
def update_details(
    payload: UpdateDetailsRequest,
    current_user=Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    user = users.update(current_user["_id"], UserUpdate(name=payload.name, email=payload.email))
    return {"success": True, "user": serialize_doc(user)}


@router.patch("/auth/updatepassword")
def update_password(
    payload: UpdatePasswordRequest,
    response: Response,
    current_user=Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    if not verify_password(payload.current_password, current_user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Password is incorrect")
    user = users.set_password(current_user["_id"], payload.new_password)
    return _token_response(response, user)


# -------------------- Bootcamps --------------------
@router.get("/bootcamps")
def list_bootcamps(request: Request, bootcamps: BootcampService = Depends(get_bootcamp_service)):
    docs, pagination = bootcamps.list(parse_query(request.query_params.multi_items(), bootcamps.query_types))
    return _listing("bootcamps", docs, pagination)


@router.get("/bootcamps/radius/{zipcode}/{distance}")
def bootcamps_in_radius(
    zipcode: str,
    distance: float = Path(..., gt=0, description="Radius in miles"),
    bootcamps: BootcampService = Depends(get_bootcamp_service),
):
    docs = bootcamps.within_radius(zipcode, distance)
    return {"success": True, "count": len(docs), "bootcamps": serialize_doc(docs)}


@router.get("/bootcamps/{id}")
def get_bootcamp(id: str, bootcamps: BootcampService = Depends(get_bootcamp_service)):
    doc = _found(bootcamps.get(id), "Bootcamp", id)
    return {"success": True, "bootcamp": serialize_doc(doc)}


@router.post("/bootcamps", status_code=201)
def create_bootcamp(
    payload: BootcampCreate,
    current_user=Depends(authorize("publisher", "admin")),
    bootcamps: BootcampService = Depends(get_bootcamp_service),
):
    doc = bootcamps.create(payload, current_user)
    return {"success": True, "bootcamp": serialize_doc(doc)}


@router.put("/bootcamps/{id}")
def replace_bootcamp(
    id: str,
    payload: BootcampCreate,
    current_user=Depends(authorize("publisher", "admin")),
    bootcamps: BootcampService = Depends(get_bootcamp_service),
):
    existing = _found(bootcamps.find(id), "Bootcamp", id)
    ensure_owner(existing, current_user, f"update bootcamp {id}")
    doc = bootcamps.replace(id, payload)
    return {"success": True, "bootcamp": serialize_doc(doc)}


@router.patch("/bootcamps/{id}")
def update_bootcamp(
    id: str,
    payload: BootcampUpdate,
    current_user=Depends(authorize("publisher", "admin")),
    bootcamps: BootcampService = Depends(get_bootcamp_service),
):
    existing = _found(bootcamps.find(id), "Bootcamp", id)
    ensure_owner(existing, current_user, f"update bootcamp {id}")
    doc = bootcamps.update(id, payload)
    return {"success": True, "bootcamp": serialize_doc(doc)}


@router.delete("/bootcamps/{id}")
def delete_bootcamp(
    id: str,
    current_user=Depends(authorize("publisher", "admin")),
    bootcamps: BootcampService = Depends(get_bootcamp_service),
):
    existing = _found(bootcamps.find(id), "Bootcamp", id)
    ensure_owner(existing, current_user, f"delete bootcamp {id}")
    doc = bootcamps.delete(id)
    return {"success": True, "bootcamp": serialize_doc(doc)}


@router.patch("/bootcamps/{id}/photo")
async def upload_bootcamp_photo(
    id: str,
    file: UploadFile = File(...),
    current_user=Depends(authorize("publisher", "admin")),
    bootcamps: BootcampService = Depends(get_bootcamp_service),
):
    existing = _found(await run_in_threadpool(bootcamps.find, id), "Bootcamp", id)
    ensure_owner(existing, current_user, f"update bootcamp {id}")
    if not (file.content_type or "").startswith("image"):
        raise HTTPException(status_code=400, detail="Please upload an image file")
    content = await file.read()
    if len(content) > config.MAX_FILE_UPLOAD:
        raise HTTPException(status_code=400, detail=f"Please upload an image less than {config.MAX_FILE_UPLOAD} bytes")
    filename = await run_in_threadpool(bootcamps.save_photo, id, file.filename, content)
    return {"success": True, "data": filename}


# -------------------- Courses --------------------
@router.get("/courses")
def list_courses(request: Request, courses: CourseService = Depends(get_course_service)):
    docs, pagination = courses.list(parse_query(request.query_params.multi_items(), courses.query_types))
    return _listing("courses", docs, pagination)


@router.get("/bootcamps/{bootcamp_id}/courses")
def list_bootcamp_courses(bootcamp_id: str, request: Request, courses: CourseService = Depends(get_course_service)):
    to_object_id(bootcamp_id, "bootcamp")
    options = parse_query(request.query_params.multi_items(), courses.query_types)
    docs, pagination = courses.list(options, {"bootcamp_id": bootcamp_id})
    return _listing("courses", docs, pagination)


@router.post("/bootcamps/{bootcamp_id}/courses", status_code=201)
def create_course(
    bootcamp_id: str,
    payload: CourseCreate,
    background_tasks: BackgroundTasks,
    current_user=Depends(authorize("publisher", "admin")),
    bootcamps: BootcampService = Depends(get_bootcamp_service),
    courses: CourseService = Depends(get_course_service),
):
    bootcamp = _found(bootcamps.find(bootcamp_id), "Bootcamp", bootcamp_id)
    ensure_owner(bootcamp, current_user, f"add a course to bootcamp {bootcamp_id}")
    doc = courses.create(bootcamp_id, payload, current_user)
    background_tasks.add_task(update_average_cost, courses.db, bootcamp_id)
    return {"success": True, "course": serialize_doc(doc)}


@router.get("/courses/{id}")
def get_course(id: str, courses: CourseService = Depends(get_course_service)):
    doc = _found(courses.get(id), "Course", id)
    return {"success": True, "course": serialize_doc(doc)}


@router.patch("/courses/{id}")
def update_course(
    id: str,
    payload: CourseUpdate,
    background_tasks: BackgroundTasks,
    current_user=Depends(get_current_user),
    courses: CourseService = Depends(get_course_service),
):
    existing = _found(courses.find(id), "Course", id)
    ensure_owner(existing, current_user, f"update course {id}")
    doc = courses.update(id, payload)
    if payload.tuition is not None:
        background_tasks.add_task(update_average_cost, courses.db, existing["bootcamp_id"])
    return {"success": True, "course": serialize_doc(doc)}


@router.delete("/courses/{id}")
def delete_course(
    id: str,
    background_tasks: BackgroundTasks,
    current_user=Depends(get_current_user),
    courses: CourseService = Depends(get_course_service),
):
    existing = _found(courses.find(id), "Course", id)
    ensure_owner(existing, current_user, f"delete course {id}")
    doc = courses.delete(id)
    background_tasks.add_task(update_average_cost, courses.db, existing["bootcamp_id"])
    return {"success": True, "course": serialize_doc(doc)}


# -------------------- Reviews --------------------
@router.get("/reviews")
def list_reviews(request: Request, reviews: ReviewService = Depends(get_review_service)):
    docs, pagination = reviews.list(parse_query(request.query_params.multi_items(), reviews.query_types))
    return _listing("reviews", docs, pagination)


@router.get("/bootcamps/{bootcamp_id}/reviews")
def list_bootcamp_reviews(bootcamp_id: str, request: Request, reviews: ReviewService = Depends(get_review_service)):
    to_object_id(bootcamp_id, "bootcamp")
    options = parse_query(request.query_params.multi_items(), reviews.query_types)
    docs, pagination = reviews.list(options, {"bootcamp_id": bootcamp_id})
    return _listing("reviews", docs, pagination)


@router.post("/bootcamps/{bootcamp_id}/reviews", status_code=201)
def create_review(
    bootcamp_id: str,
    payload: ReviewCreate,
    background_tasks: BackgroundTasks,
    current_user=Depends(authorize("user", "admin")),
    bootcamps: BootcampService = Depends(get_bootcamp_service),
    reviews: ReviewService = Depends(get_review_service),
):
    _found(bootcamps.find(bootcamp_id), "Bootcamp", bootcamp_id)
    doc = reviews.create(bootcamp_id, payload, current_user)
    background_tasks.add_task(update_average_rating, reviews.db, bootcamp_id)
    return {"success": True, "review": serialize_doc(doc)}


@router.get("/reviews/{id}")
def get_review(id: str, reviews: ReviewService = Depends(get_review_service)):
    doc = _found(reviews.get(id), "Review", id)
    return {"success": True, "review": serialize_doc(doc)}


@router.patch("/reviews/{id}")
def update_review(
    id: str,
    payload: ReviewUpdate,
    background_tasks: BackgroundTasks,
    current_user=Depends(get_current_user),
    reviews: ReviewService = Depends(get_review_service),
):
    existing = _found(reviews.find(id), "Review", id)
    ensure_owner(existing, current_user, f"update review {id}")
    doc = reviews.update(id, payload)
    if payload.rating is not None:
        background_tasks.add_task(update_average_rating, reviews.db, existing["bootcamp_id"])
    return {"success": True, "review": serialize_doc(doc)}


@router.delete("/reviews/{id}")
def delete_review(
    id: str,
    background_tasks: BackgroundTasks,
    current_user=Depends(get_current_user),
    reviews: ReviewService = Depends(get_review_service),
):
    existing = _found(reviews.find(id), "Review", id)
    ensure_owner(existing, current_user, f"delete review {id}")
    doc = reviews.delete(id)
    background_tasks.add_task(update_average_rating, reviews.db, existing["bootcamp_id"])
    return {"success": True, "review": serialize_doc(doc)}


# -------------------- Users (admin) --------------------
@router.get("/users")
def list_users(request: Request, admin=Depends(authorize("admin")), users: UserService = Depends(get_user_service)):
    docs, pagination = users.list(parse_query(request.query_params.multi_items(), users.query_types))
    return _listing("users", docs, pagination)


@router.post("/users", status_code=201)
def create_user(payload: UserCreate, admin=Depends(authorize("admin")), users: UserService = Depends(get_user_service)):
    return {"success": True, "user": serialize_doc(users.create(payload))}


@router.get("/users/{id}")
def get_user(id: str, admin=Depends(authorize("admin")), users: UserService = Depends(get_user_service)):
    doc = _found(users.get(id), "User", id)
    return {"success": True, "user": serialize_doc(doc)}


@router.patch("/users/{id}")
def update_user(
    id: str,
    payload: UserUpdate,
    admin=Depends(authorize("admin")),
    users: UserService = Depends(get_user_service),
):
    _found(users.find(id), "User", id)
    return {"success": True, "user": serialize_doc(users.update(id, payload))}


@router.delete("/users/{id}")
def delete_user(id: str, admin=Depends(authorize("admin")), users: UserService = Depends(get_user_service)):
    doc = _found(users.delete(id), "User", id)
    return {"success": True, "user": serialize_doc(doc)}


app.include_router(router)

# Uploaded bootcamp photos
app.mount("/uploads", StaticFiles(directory=config.FILE_UPLOAD_PATH, check_dir=False), name="uploads")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
