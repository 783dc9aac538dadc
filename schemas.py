"""
Database Schemas for DevCamper

Each Pydantic model represents a MongoDB collection. The collection name is the
lowercased class name (e.g., Bootcamp -> "bootcamp").

The annotated field types below are shared by the stored documents, the
create payloads and the partial-update payloads, so every constraint is
declared once and applies to all three.
"""
import re
from datetime import datetime
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, EmailStr, Field, StringConstraints

CAREERS = (
    "Web Development",
    "Mobile Development",
    "UI/UX",
    "Data Science",
    "Business",
    "Other",
)

WEBSITE_REGEX = re.compile(
    r"https?://(www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b([-a-zA-Z0-9()@:%_+.~#?&/=]*)"
)


def _check_career(value: str) -> str:
    if value not in CAREERS:
        raise ValueError(f'Invalid career: "{value}". Must be one of: {", ".join(CAREERS)}')
    return value


def _check_website(value: str) -> str:
    if not WEBSITE_REGEX.match(value):
        raise ValueError("Please use a valid URL with HTTP or HTTPS")
    return value


# -------------------- Shared field types --------------------
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
Description = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=250)]
Text = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
Phone = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=20)]
Website = Annotated[str, StringConstraints(strip_whitespace=True), AfterValidator(_check_website)]
Career = Annotated[str, AfterValidator(_check_career)]
Careers = Annotated[List[Career], Field(min_length=1)]
Weeks = Annotated[int, Field(gt=0)]
Tuition = Annotated[float, Field(ge=0)]
Rating = Annotated[int, Field(ge=1, le=10)]
Password = Annotated[str, Field(min_length=6)]
SkillLevel = Literal["beginner", "intermediate", "advanced"]
Role = Literal["user", "publisher", "admin"]


class Location(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: List[float] = Field(..., description="[longitude, latitude]")
    formatted_address: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None
    country: Optional[str] = None


# -------------------- Bootcamp --------------------
class BootcampCreate(BaseModel):
    name: Name
    description: Description
    website: Optional[Website] = None
    phone: Optional[Phone] = None
    email: Optional[EmailStr] = None
    address: Text
    careers: Careers
    housing: bool = False
    job_assistance: bool = False
    job_guarantee: bool = False
    accept_gi: bool = False


class BootcampUpdate(BaseModel):
    name: Optional[Name] = None
    description: Optional[Description] = None
    website: Optional[Website] = None
    phone: Optional[Phone] = None
    email: Optional[EmailStr] = None
    address: Optional[Text] = None
    careers: Optional[Careers] = None
    housing: Optional[bool] = None
    job_assistance: Optional[bool] = None
    job_guarantee: Optional[bool] = None
    accept_gi: Optional[bool] = None


class Bootcamp(BootcampCreate):
    user_id: str = Field(..., description="ObjectId as string")
    slug: str
    location: Optional[Location] = None
    average_rating: Optional[float] = Field(None, ge=1, le=10)
    average_cost: Optional[float] = None
    photo: str = "no-photo.jpg"


# -------------------- Course --------------------
class CourseCreate(BaseModel):
    title: Text
    description: Description
    weeks: Weeks
    tuition: Tuition
    minimum_skill: SkillLevel
    scholarships_available: bool = False


class CourseUpdate(BaseModel):
    title: Optional[Text] = None
    description: Optional[Description] = None
    weeks: Optional[Weeks] = None
    tuition: Optional[Tuition] = None
    minimum_skill: Optional[SkillLevel] = None
    scholarships_available: Optional[bool] = None


class Course(CourseCreate):
    bootcamp_id: str = Field(..., description="ObjectId as string")
    user_id: str = Field(..., description="ObjectId as string")


# -------------------- Review --------------------
class ReviewCreate(BaseModel):
    title: Title
    text: Text
    rating: Rating


class ReviewUpdate(BaseModel):
    title: Optional[Title] = None
    text: Optional[Text] = None
    rating: Optional[Rating] = None


class Review(ReviewCreate):
    bootcamp_id: str = Field(..., description="ObjectId as string")
    user_id: str = Field(..., description="ObjectId as string")


# -------------------- User --------------------
class UserCreate(BaseModel):
    name: Name
    email: EmailStr
    password: Password
    role: Role = "user"


class UserUpdate(BaseModel):
    name: Optional[Name] = None
    email: Optional[EmailStr] = None
    password: Optional[Password] = None
    role: Optional[Role] = None


class User(BaseModel):
    name: Name
    email: EmailStr
    role: Role = "user"
    password_hash: str = Field(..., description="Hashed password (bcrypt)")
    reset_password_token: Optional[str] = Field(None, description="SHA-256 of the emailed reset token")
    reset_password_expire: Optional[datetime] = None
