"""
quizmize.api.routes.universities — Universities, faculties, courses
=====================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from quizmize.api.deps import CurrentAccount, EngineDep, OptionalAccount
from quizmize.database.engine import run_db
from quizmize.services import university_service as svc

router = APIRouter(prefix="/universities", tags=["universities"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class UniversityCreate(BaseModel):
    name: str
    location: str
    website: str = ""
    description: str = ""
    is_public: bool = Field(False, alias="isPublic")
    allow_student_registration: bool = Field(True, alias="allowStudentRegistration")


class RoleUpdate(BaseModel):
    role: str


class ContentBody(BaseModel):
    content: str


class CoursePostBody(BaseModel):
    content: str
    post_type: str = Field("general", alias="postType")


class FacultyCreate(BaseModel):
    name: str
    description: str = ""
    contact_email: str | None = Field(None, alias="contactEmail")
    dean_id: int | None = Field(None, alias="deanId")


class CourseCreate(BaseModel):
    course_code: str = Field(alias="courseCode")
    course_name: str = Field(alias="courseName")
    description: str = ""
    credits: int = 3
    level: int = 1
    teacher_id: int | None = Field(None, alias="teacherId")


class ScheduleBody(BaseModel):
    day: str | None = None
    time: str | None = None
    location: str | None = None


class ClassroomCreate(BaseModel):
    name: str
    section: str = ""
    schedule: ScheduleBody = Field(default_factory=ScheduleBody)


def _viewer(account) -> int | None:
    return account.id if account else None


# ---------------------------------------------------------------------------
# Universities
# ---------------------------------------------------------------------------
@router.get("")
async def list_universities(account: OptionalAccount, engine: EngineDep):
    return await run_db(svc.list_universities, engine, _viewer(account))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_university(body: UniversityCreate, account: CurrentAccount, engine: EngineDep):
    university = await run_db(
        svc.create_university, engine, account.id,
        name=body.name,
        location=body.location,
        website=body.website,
        description=body.description,
        is_public=body.is_public,
        allow_student_registration=body.allow_student_registration,
    )
    return {"message": "University registered successfully!", "university": university}


@router.post("/join/{code}")
async def join_by_code(code: str, account: CurrentAccount, engine: EngineDep):
    return await run_db(svc.join_by_code, engine, code, account.id)


@router.get("/{university_id}")
async def get_university(university_id: int, account: OptionalAccount, engine: EngineDep):
    return await run_db(svc.get_university, engine, university_id, _viewer(account))


@router.post("/{university_id}/join")
async def join_university(university_id: int, account: CurrentAccount, engine: EngineDep):
    return await run_db(svc.join_university, engine, university_id, account.id)


@router.post("/{university_id}/leave")
async def leave_university(university_id: int, account: CurrentAccount, engine: EngineDep):
    await run_db(svc.leave_university, engine, university_id, account.id)
    return {"message": "Left university"}


@router.patch("/{university_id}/members/{account_id}")
async def set_member_role(
    university_id: int, account_id: int, body: RoleUpdate,
    account: CurrentAccount, engine: EngineDep,
):
    return await run_db(
        svc.set_member_role, engine, university_id, account.id, account_id, body.role
    )


# ---------------------------------------------------------------------------
# Timeline posts
# ---------------------------------------------------------------------------
@router.get("/{university_id}/posts")
async def list_posts(university_id: int, account: OptionalAccount, engine: EngineDep):
    posts = await run_db(svc.list_posts, engine, university_id, _viewer(account))
    return {"posts": posts}


@router.post("/{university_id}/posts", status_code=status.HTTP_201_CREATED)
async def create_post(
    university_id: int, body: ContentBody, account: CurrentAccount, engine: EngineDep
):
    post = await run_db(svc.create_post, engine, university_id, account.id, body.content)
    return {"message": "Post created successfully!", "post": post}


@router.post("/{university_id}/posts/{post_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_post_comment(
    university_id: int, post_id: int, body: ContentBody,
    account: CurrentAccount, engine: EngineDep,
):
    comment = await run_db(
        svc.add_post_comment, engine, university_id, post_id, account.id, body.content
    )
    return {"message": "Comment added successfully!", "comment": comment}


@router.post("/{university_id}/posts/{post_id}/like")
async def like_post(university_id: int, post_id: int, account: CurrentAccount, engine: EngineDep):
    return await run_db(svc.like_post, engine, university_id, post_id, account.id)


@router.delete("/{university_id}/posts/{post_id}")
async def delete_post(university_id: int, post_id: int, account: CurrentAccount, engine: EngineDep):
    await run_db(svc.delete_post, engine, university_id, post_id, account.id)
    return {"message": "Post deleted"}


# ---------------------------------------------------------------------------
# Faculties & courses
# ---------------------------------------------------------------------------
@router.get("/{university_id}/faculties")
async def list_faculties(university_id: int, engine: EngineDep):
    return {"faculties": await run_db(svc.list_faculties, engine, university_id)}


@router.post("/{university_id}/faculties", status_code=status.HTTP_201_CREATED)
async def create_faculty(
    university_id: int, body: FacultyCreate, account: CurrentAccount, engine: EngineDep
):
    faculty = await run_db(
        svc.create_faculty, engine, university_id, account.id,
        name=body.name,
        description=body.description,
        contact_email=body.contact_email,
        dean_id=body.dean_id,
    )
    return {"message": "Faculty created successfully!", "faculty": faculty}


@router.get("/{university_id}/faculties/{faculty_id}/courses")
async def list_courses(university_id: int, faculty_id: int, engine: EngineDep):
    return {"courses": await run_db(svc.list_courses, engine, university_id, faculty_id)}


@router.post(
    "/{university_id}/faculties/{faculty_id}/courses", status_code=status.HTTP_201_CREATED
)
async def create_course(
    university_id: int, faculty_id: int, body: CourseCreate,
    account: CurrentAccount, engine: EngineDep,
):
    course = await run_db(
        svc.create_course, engine, university_id, faculty_id, account.id,
        course_code=body.course_code,
        course_name=body.course_name,
        description=body.description,
        credits=body.credits,
        level=body.level,
        teacher_id=body.teacher_id,
    )
    return {"message": "Course created successfully!", "course": course}


@router.get("/{university_id}/courses/{course_id}")
async def get_course(university_id: int, course_id: int, engine: EngineDep):
    return await run_db(svc.get_course, engine, university_id, course_id)


@router.get("/{university_id}/courses/{course_id}/participants")
async def course_participants(university_id: int, course_id: int, engine: EngineDep):
    participants = await run_db(svc.course_participants, engine, university_id, course_id)
    return {"participants": participants}


# ---------------------------------------------------------------------------
# Classrooms
# ---------------------------------------------------------------------------
@router.post(
    "/{university_id}/courses/{course_id}/classrooms", status_code=status.HTTP_201_CREATED
)
async def create_classroom(
    university_id: int, course_id: int, body: ClassroomCreate,
    account: CurrentAccount, engine: EngineDep,
):
    return await run_db(
        svc.create_classroom, engine, university_id, course_id, account.id,
        name=body.name,
        section=body.section,
        schedule_day=body.schedule.day,
        schedule_time=body.schedule.time,
        schedule_location=body.schedule.location,
    )


@router.post("/{university_id}/courses/{course_id}/classrooms/{classroom_id}/join")
async def join_classroom(
    university_id: int, course_id: int, classroom_id: int,
    account: CurrentAccount, engine: EngineDep,
):
    return await run_db(
        svc.join_classroom, engine, university_id, course_id, classroom_id, account.id
    )


@router.post("/{university_id}/courses/{course_id}/classrooms/{classroom_id}/leave")
async def leave_classroom(
    university_id: int, course_id: int, classroom_id: int,
    account: CurrentAccount, engine: EngineDep,
):
    return await run_db(
        svc.leave_classroom, engine, university_id, course_id, classroom_id, account.id
    )


# ---------------------------------------------------------------------------
# Course posts
# ---------------------------------------------------------------------------
@router.get("/{university_id}/courses/{course_id}/posts")
async def list_course_posts(
    university_id: int, course_id: int, account: CurrentAccount, engine: EngineDep
):
    posts = await run_db(svc.list_course_posts, engine, university_id, course_id, account.id)
    return {"posts": posts}


@router.post("/{university_id}/courses/{course_id}/posts", status_code=status.HTTP_201_CREATED)
async def create_course_post(
    university_id: int, course_id: int, body: CoursePostBody,
    account: CurrentAccount, engine: EngineDep,
):
    post = await run_db(
        svc.create_course_post, engine, university_id, course_id, account.id,
        body.content, body.post_type,
    )
    return {"message": "Post created successfully!", "post": post}


@router.post(
    "/{university_id}/courses/{course_id}/posts/{post_id}/comments",
    status_code=status.HTTP_201_CREATED,
)
async def add_course_post_comment(
    university_id: int, course_id: int, post_id: int, body: ContentBody,
    account: CurrentAccount, engine: EngineDep,
):
    comment = await run_db(
        svc.add_course_post_comment, engine, university_id, course_id, post_id,
        account.id, body.content,
    )
    return {"message": "Comment added successfully!", "comment": comment}


@router.post("/{university_id}/courses/{course_id}/posts/{post_id}/like")
async def like_course_post(
    university_id: int, course_id: int, post_id: int,
    account: CurrentAccount, engine: EngineDep,
):
    return await run_db(
        svc.like_course_post, engine, university_id, course_id, post_id, account.id
    )
