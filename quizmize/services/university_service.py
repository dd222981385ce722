"""
quizmize.services.university_service — Universities, Faculties & Courses
=========================================================================

The institution tree::

    University ─┬─ members (admin | teacher | student)
                ├─ posts ── likes, comments
                └─ faculties ── courses ─┬─ classrooms ── students
                                         └─ posts ── likes, comments

Permission rules:

* university admins create timeline posts, faculties, courses and manage
  roles;
* a course's teacher (or a university admin) creates classrooms and course
  posts;
* any university member comments, likes, and enrolls in classrooms.
"""

from __future__ import annotations

import logging
import re
import secrets
from typing import TYPE_CHECKING

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quizmize.constants import (
    COMMENT_MAX_LENGTH,
    JOIN_CODE_ALPHABET,
    JOIN_CODE_LENGTH,
    POST_MAX_LENGTH,
    UNIVERSITY_LOCATIONS,
    WEEKDAYS,
)
from quizmize.database.engine import get_session
from quizmize.database.models import (
    Account,
    Classroom,
    ClassroomStudent,
    Course,
    CourseComment,
    CoursePost,
    CoursePostLike,
    CoursePostType,
    Faculty,
    University,
    UniversityComment,
    UniversityMember,
    UniversityPost,
    UniversityPostLike,
    UniversityRole,
)
from quizmize.engine import membership, voting
from quizmize.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

NOT_MEMBER = "You must be a member of this university"
ADMIN_ONLY = "Only university admins can do that"
NAME_TAKEN = "University with this name already exists"
ALREADY_MEMBER = "You are already a member of this university"

_WEBSITE_RE = re.compile(r"^https?://.+\..+")

NAME_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 500
FACULTY_DESCRIPTION_MAX_LENGTH = 300


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------
def _iso(dt) -> str | None:
    return dt.isoformat() if dt else None


def _display_name(account: Account) -> str:
    return account.full_name or account.email


def _comment_dict(c: UniversityComment | CourseComment) -> dict:
    return {
        "id": str(c.id),
        "content": c.content,
        "authorId": str(c.author_id),
        "authorName": c.author_name,
        "createdAt": _iso(c.created_at),
    }


def _post_dict(post: UniversityPost | CoursePost, viewer_id: int | None) -> dict:
    data = {
        "id": str(post.id),
        "content": post.content,
        "authorId": str(post.author_id),
        "authorName": post.author_name,
        "likesCount": len(post.likes),
        "isLiked": viewer_id is not None
        and any(str(like.account_id) == str(viewer_id) for like in post.likes),
        "comments": [_comment_dict(c) for c in post.comments],
        "createdAt": _iso(post.created_at),
    }
    if isinstance(post, CoursePost):
        data["postType"] = post.post_type
    return data


def _member_dict(m: UniversityMember) -> dict:
    return {
        "accountId": str(m.account_id),
        "fullName": m.account.full_name if m.account else "",
        "role": m.role,
        "joinedAt": _iso(m.joined_at),
    }


def _classroom_dict(c: Classroom) -> dict:
    return {
        "id": str(c.id),
        "name": c.name,
        "section": c.section,
        "schedule": {
            "day": c.schedule_day,
            "time": c.schedule_time,
            "location": c.schedule_location,
        },
        "studentCount": len(c.students),
    }


def _course_dict(c: Course, *, detail: bool = False) -> dict:
    data = {
        "id": str(c.id),
        "facultyId": str(c.faculty_id),
        "courseCode": c.course_code,
        "courseName": c.course_name,
        "description": c.description,
        "credits": c.credits,
        "level": c.level,
        "teacherId": str(c.teacher_id),
    }
    if detail:
        data["facultyName"] = c.faculty.name
        data["classrooms"] = [_classroom_dict(room) for room in c.classrooms]
    return data


def _faculty_dict(f: Faculty) -> dict:
    return {
        "id": str(f.id),
        "name": f.name,
        "description": f.description,
        "contactEmail": f.contact_email,
        "deanId": str(f.dean_id) if f.dean_id else None,
        "courses": [_course_dict(c) for c in f.courses],
    }


def university_dict(u: University, viewer_id: int | None = None, *, detail: bool = False) -> dict:
    role = membership.get_role(u.members, viewer_id) if viewer_id is not None else None
    data = {
        "id": str(u.id),
        "name": u.name,
        "description": u.description,
        "location": u.location,
        "website": u.website,
        "logoUrl": u.logo_url,
        "isPublic": u.is_public,
        "allowStudentRegistration": u.allow_student_registration,
        "maxMembers": u.max_members,
        "memberCount": len(u.members),
        "myRole": role,
        "createdAt": _iso(u.created_at),
    }
    if role == UniversityRole.ADMIN:
        data["joinCode"] = u.join_code
    if detail:
        data["members"] = [_member_dict(m) for m in u.members]
        data["faculties"] = [_faculty_dict(f) for f in u.faculties]
        data["posts"] = [_post_dict(p, viewer_id) for p in u.posts]
    return data


# ---------------------------------------------------------------------------
# Loaders & gates
# ---------------------------------------------------------------------------
def _load(session: Session, university_id: int, *, lock: bool = False) -> University:
    query = select(University).where(University.id == university_id)
    if lock:
        query = query.with_for_update()
    university = session.scalar(query)
    if university is None:
        raise NotFoundError("University not found")
    return university


def _require_member(u: University, account_id: int | None, message: str = NOT_MEMBER):
    return membership.require_member(u.members, account_id, message=message)


def _require_admin(u: University, account_id: int | None, message: str = ADMIN_ONLY):
    return membership.require_member(
        u.members, account_id, roles={UniversityRole.ADMIN},
        message=NOT_MEMBER, role_message=message,
    )


def _load_faculty(u: University, faculty_id: int) -> Faculty:
    faculty = next((f for f in u.faculties if str(f.id) == str(faculty_id)), None)
    if faculty is None:
        raise NotFoundError("Faculty not found")
    return faculty


def _load_course(session: Session, u: University, course_id: int) -> Course:
    course = session.scalar(
        select(Course)
        .join(Faculty, Course.faculty_id == Faculty.id)
        .where(Course.id == course_id, Faculty.university_id == u.id)
    )
    if course is None:
        raise NotFoundError("Course not found")
    return course


def _load_post(u: University, post_id: int) -> UniversityPost:
    post = next((p for p in u.posts if str(p.id) == str(post_id)), None)
    if post is None:
        raise NotFoundError("Post not found")
    return post


def _load_course_post(course: Course, post_id: int) -> CoursePost:
    post = next((p for p in course.posts if str(p.id) == str(post_id)), None)
    if post is None:
        raise NotFoundError("Post not found")
    return post


def _load_classroom(course: Course, classroom_id: int) -> Classroom:
    room = next((c for c in course.classrooms if str(c.id) == str(classroom_id)), None)
    if room is None:
        raise NotFoundError("Classroom not found")
    return room


def _account(session: Session, account_id: int) -> Account:
    account = session.get(Account, account_id)
    if account is None:
        raise NotFoundError("Account not found")
    return account


def _text(content: str | None, what: str, max_length: int) -> str:
    text = (content or "").strip()
    if not text:
        raise ValidationError(f"{what} cannot be empty")
    if len(text) > max_length:
        raise ValidationError(f"{what} cannot exceed {max_length} characters")
    return text


def generate_join_code(rng: secrets.SystemRandom | None = None) -> str:
    """Eight characters from ``A-Z0-9``."""
    rng = rng or secrets.SystemRandom()
    return "".join(rng.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))


def _unique_join_code(session: Session) -> str:
    while True:
        code = generate_join_code()
        if session.scalar(select(University.id).where(University.join_code == code)) is None:
            return code


# ---------------------------------------------------------------------------
# Universities
# ---------------------------------------------------------------------------
def list_universities(engine: Engine, viewer_id: int | None = None) -> list[dict]:
    """Newest first."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(University).order_by(University.created_at.desc(), University.id.desc())
        ).all()
        return [university_dict(u, viewer_id) for u in rows]


def get_university(engine: Engine, university_id: int, viewer_id: int | None = None) -> dict:
    with get_session(engine) as session:
        return university_dict(_load(session, university_id), viewer_id, detail=True)


def create_university(
    engine: Engine,
    creator_id: int,
    *,
    name: str,
    location: str,
    website: str = "",
    description: str = "",
    is_public: bool = False,
    allow_student_registration: bool = True,
) -> dict:
    """Register a university; the creator becomes its first admin."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("University name is required")
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"University name cannot exceed {NAME_MAX_LENGTH} characters")
    description = (description or "").strip()
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")
    if location not in UNIVERSITY_LOCATIONS:
        raise ValidationError("Please choose a valid location")
    website = (website or "").strip()
    if website and not _WEBSITE_RE.match(website):
        raise ValidationError("Please enter a valid website URL")

    try:
        with get_session(engine) as session:
            taken = session.scalar(
                select(University.id).where(func.lower(University.name) == name.lower())
            )
            if taken is not None:
                raise ConflictError(NAME_TAKEN)
            university = University(
                name=name,
                description=description,
                location=location,
                website=website,
                join_code=_unique_join_code(session),
                is_public=is_public,
                allow_student_registration=allow_student_registration,
            )
            university.members.append(
                UniversityMember(account_id=creator_id, role=UniversityRole.ADMIN.value)
            )
            session.add(university)
            session.flush()
            session.refresh(university)
            data = university_dict(university, creator_id)
    except IntegrityError:
        raise ConflictError(NAME_TAKEN) from None

    logger.info("University %s (%s) created by account %s", data["id"], name, creator_id)
    return data


def _join(session: Session, university: University, account_id: int) -> dict:
    if not university.allow_student_registration:
        raise AuthorizationError("This university is not accepting new students")
    if len(university.members) >= university.max_members:
        raise ValidationError("This university has reached its member limit")
    try:
        membership.add_member(
            university.members,
            UniversityMember(account_id=account_id, role=UniversityRole.STUDENT.value),
        )
    except ConflictError:
        raise ConflictError(ALREADY_MEMBER) from None
    session.flush()
    return {
        "message": f"Successfully joined {university.name}!",
        "university": university_dict(university, account_id),
    }


def join_university(engine: Engine, university_id: int, account_id: int) -> dict:
    try:
        with get_session(engine) as session:
            return _join(session, _load(session, university_id, lock=True), account_id)
    except IntegrityError:
        raise ConflictError(ALREADY_MEMBER) from None


def join_by_code(engine: Engine, code: str, account_id: int) -> dict:
    code = (code or "").strip().upper()
    try:
        with get_session(engine) as session:
            university = session.scalar(
                select(University).where(University.join_code == code).with_for_update()
            )
            if university is None:
                raise NotFoundError("Invalid university code")
            return _join(session, university, account_id)
    except IntegrityError:
        raise ConflictError(ALREADY_MEMBER) from None


def _admin_count(u: University) -> int:
    return sum(1 for m in u.members if m.role == UniversityRole.ADMIN)


def _require_no_held_posts(university: University, account_id: int) -> None:
    """A dean or course teacher must stay a member until replaced."""
    for faculty in university.faculties:
        if faculty.dean_id == account_id:
            raise ValidationError(
                f"Appoint another dean of {faculty.name} before leaving the university"
            )
        for course in faculty.courses:
            if course.teacher_id == account_id:
                raise ValidationError(
                    f"Assign another teacher to {course.course_code} before leaving the university"
                )


def leave_university(engine: Engine, university_id: int, account_id: int) -> None:
    with get_session(engine) as session:
        university = _load(session, university_id, lock=True)
        member = _require_member(university, account_id)
        if member.role == UniversityRole.ADMIN and _admin_count(university) == 1:
            raise ValidationError("Promote another admin before leaving the university")
        _require_no_held_posts(university, account_id)
        membership.remove_member(university.members, account_id)


def set_member_role(
    engine: Engine, university_id: int, actor_id: int, target_id: int, role: str
) -> dict:
    try:
        new_role = UniversityRole(role)
    except ValueError:
        raise ValidationError(f"Unknown role '{role}'") from None

    with get_session(engine) as session:
        university = _load(session, university_id, lock=True)
        _require_admin(university, actor_id)
        target = membership.find_member(university.members, target_id)
        if target is None:
            raise NotFoundError("That account is not a member of this university")
        if (
            target.role == UniversityRole.ADMIN
            and new_role != UniversityRole.ADMIN
            and _admin_count(university) == 1
        ):
            raise ValidationError("A university needs at least one admin")
        target.role = new_role.value
        session.flush()
        return _member_dict(target)


# ---------------------------------------------------------------------------
# Timeline posts
# ---------------------------------------------------------------------------
def list_posts(engine: Engine, university_id: int, viewer_id: int | None = None) -> list[dict]:
    with get_session(engine) as session:
        university = _load(session, university_id)
        return [_post_dict(p, viewer_id) for p in university.posts]


def create_post(engine: Engine, university_id: int, account_id: int, content: str) -> dict:
    text = _text(content, "Post content", POST_MAX_LENGTH)
    with get_session(engine) as session:
        university = _load(session, university_id)
        _require_admin(university, account_id, "Only university admins can create posts")
        author = _account(session, account_id)
        post = UniversityPost(
            university_id=university.id,
            author_id=author.id,
            author_name=_display_name(author),
            content=text,
        )
        session.add(post)
        session.flush()
        session.refresh(post)
        return _post_dict(post, account_id)


def add_post_comment(
    engine: Engine, university_id: int, post_id: int, account_id: int, content: str
) -> dict:
    text = _text(content, "Comment", COMMENT_MAX_LENGTH)
    with get_session(engine) as session:
        university = _load(session, university_id)
        _require_member(university, account_id, "You must be a member of this university to comment")
        post = _load_post(university, post_id)
        author = _account(session, account_id)
        comment = UniversityComment(
            author_id=author.id, author_name=_display_name(author), content=text
        )
        post.comments.append(comment)
        session.flush()
        session.refresh(comment)
        return _comment_dict(comment)


def like_post(engine: Engine, university_id: int, post_id: int, account_id: int) -> dict:
    with get_session(engine) as session:
        university = _load(session, university_id)
        _require_member(university, account_id, "You must be a member of this university to like posts")
        post = _load_post(university, post_id)
        liked = voting.toggle_like(
            post.likes, account_id, lambda aid: UniversityPostLike(account_id=aid)
        )
        session.flush()
        return {
            "message": "Post liked!" if liked else "Post unliked!",
            "likesCount": len(post.likes),
            "isLiked": liked,
        }


def delete_post(engine: Engine, university_id: int, post_id: int, account_id: int) -> None:
    with get_session(engine) as session:
        university = _load(session, university_id)
        _require_admin(university, account_id, "Only university admins can delete posts")
        session.delete(_load_post(university, post_id))


# ---------------------------------------------------------------------------
# Faculties & courses
# ---------------------------------------------------------------------------
def list_faculties(engine: Engine, university_id: int) -> list[dict]:
    with get_session(engine) as session:
        return [_faculty_dict(f) for f in _load(session, university_id).faculties]


def create_faculty(
    engine: Engine,
    university_id: int,
    account_id: int,
    *,
    name: str,
    description: str = "",
    contact_email: str | None = None,
    dean_id: int | None = None,
) -> dict:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Faculty name is required")
    description = (description or "").strip()
    if len(description) > FACULTY_DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Faculty description cannot exceed {FACULTY_DESCRIPTION_MAX_LENGTH} characters"
        )
    email = (contact_email or "").strip().lower() or None
    if email:
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            raise ValidationError("Please enter a valid contact email") from None

    with get_session(engine) as session:
        university = _load(session, university_id)
        _require_admin(university, account_id, "Only university admins can create faculties")
        if any(f.name.lower() == name.lower() for f in university.faculties):
            raise ConflictError("Faculty with this name already exists")
        if dean_id is not None and not membership.is_member(university.members, dean_id):
            raise ValidationError("The dean must be a member of this university")

        faculty = Faculty(
            name=name, description=description, contact_email=email, dean_id=dean_id
        )
        university.faculties.append(faculty)
        session.flush()
        return _faculty_dict(faculty)


def create_course(
    engine: Engine,
    university_id: int,
    faculty_id: int,
    account_id: int,
    *,
    course_code: str,
    course_name: str,
    description: str = "",
    credits: int = 3,
    level: int = 1,
    teacher_id: int | None = None,
) -> dict:
    code = (course_code or "").strip().upper()
    if not code:
        raise ValidationError("Course code is required")
    course_name = (course_name or "").strip()
    if not course_name:
        raise ValidationError("Course name is required")
    if not 1 <= credits <= 10:
        raise ValidationError("Credits must be between 1 and 10")
    if not 1 <= level <= 5:
        raise ValidationError("Level must be between 1 and 5")

    with get_session(engine) as session:
        university = _load(session, university_id)
        _require_admin(university, account_id, "Only university admins can create courses")
        faculty = _load_faculty(university, faculty_id)
        if any(c.course_code == code for c in faculty.courses):
            raise ConflictError("Course with this code already exists in the selected faculty")
        teacher = teacher_id if teacher_id is not None else account_id
        if not membership.is_member(university.members, teacher):
            raise ValidationError("The teacher must be a member of this university")

        course = Course(
            course_code=code,
            course_name=course_name,
            description=(description or "").strip(),
            credits=credits,
            level=level,
            teacher_id=teacher,
        )
        faculty.courses.append(course)
        session.flush()
        return _course_dict(course)


def list_courses(engine: Engine, university_id: int, faculty_id: int) -> list[dict]:
    with get_session(engine) as session:
        faculty = _load_faculty(_load(session, university_id), faculty_id)
        return [_course_dict(c) for c in faculty.courses]


def get_course(engine: Engine, university_id: int, course_id: int) -> dict:
    with get_session(engine) as session:
        university = _load(session, university_id)
        data = _course_dict(_load_course(session, university, course_id), detail=True)
        data["universityName"] = university.name
        return data


def course_participants(engine: Engine, university_id: int, course_id: int) -> list[dict]:
    """Every student enrolled in any of the course's classrooms."""
    with get_session(engine) as session:
        course = _load_course(session, _load(session, university_id), course_id)
        return [
            {
                "userId": str(s.account_id),
                "classroom": room.name,
                "classroomId": str(room.id),
                "status": s.status,
                "joinedAt": _iso(s.joined_at),
            }
            for room in course.classrooms
            for s in room.students
        ]


def _require_course_manager(u: University, course: Course, account_id: int) -> None:
    role = membership.get_role(u.members, account_id)
    if role is None:
        raise AuthorizationError(NOT_MEMBER)
    if role != UniversityRole.ADMIN and str(course.teacher_id) != str(account_id):
        raise AuthorizationError("Only the course teacher or a university admin can do that")


# ---------------------------------------------------------------------------
# Classrooms
# ---------------------------------------------------------------------------
def create_classroom(
    engine: Engine,
    university_id: int,
    course_id: int,
    account_id: int,
    *,
    name: str,
    section: str = "",
    schedule_day: str | None = None,
    schedule_time: str | None = None,
    schedule_location: str | None = None,
) -> dict:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Classroom name is required")
    if schedule_day is not None and schedule_day not in WEEKDAYS:
        raise ValidationError("Schedule day must be a weekday name")

    with get_session(engine) as session:
        university = _load(session, university_id)
        course = _load_course(session, university, course_id)
        _require_course_manager(university, course, account_id)
        room = Classroom(
            name=name,
            section=(section or "").strip(),
            schedule_day=schedule_day,
            schedule_time=schedule_time,
            schedule_location=schedule_location,
        )
        course.classrooms.append(room)
        session.flush()
        return _classroom_dict(room)


def join_classroom(
    engine: Engine, university_id: int, course_id: int, classroom_id: int, account_id: int
) -> dict:
    with get_session(engine) as session:
        university = _load(session, university_id)
        _require_member(university, account_id)
        room = _load_classroom(_load_course(session, university, course_id), classroom_id)
        if any(str(s.account_id) == str(account_id) for s in room.students):
            raise ConflictError("You are already enrolled in this classroom")
        room.students.append(ClassroomStudent(account_id=account_id))
        session.flush()
        return _classroom_dict(room)


def leave_classroom(
    engine: Engine, university_id: int, course_id: int, classroom_id: int, account_id: int
) -> dict:
    with get_session(engine) as session:
        university = _load(session, university_id)
        _require_member(university, account_id)
        room = _load_classroom(_load_course(session, university, course_id), classroom_id)
        student = next((s for s in room.students if str(s.account_id) == str(account_id)), None)
        if student is None:
            raise ValidationError("You are not enrolled in this classroom")
        room.students.remove(student)
        session.flush()
        return _classroom_dict(room)


# ---------------------------------------------------------------------------
# Course posts
# ---------------------------------------------------------------------------
def list_course_posts(
    engine: Engine, university_id: int, course_id: int, account_id: int
) -> list[dict]:
    with get_session(engine) as session:
        university = _load(session, university_id)
        _require_member(university, account_id)
        course = _load_course(session, university, course_id)
        return [_post_dict(p, account_id) for p in course.posts]


def create_course_post(
    engine: Engine,
    university_id: int,
    course_id: int,
    account_id: int,
    content: str,
    post_type: str = CoursePostType.GENERAL.value,
) -> dict:
    text = _text(content, "Post content", POST_MAX_LENGTH)
    try:
        kind = CoursePostType(post_type)
    except ValueError:
        raise ValidationError("Unknown post type") from None

    with get_session(engine) as session:
        university = _load(session, university_id)
        course = _load_course(session, university, course_id)
        _require_course_manager(university, course, account_id)
        author = _account(session, account_id)
        post = CoursePost(
            author_id=author.id,
            author_name=_display_name(author),
            content=text,
            post_type=kind.value,
        )
        course.posts.append(post)
        session.flush()
        session.refresh(post)
        return _post_dict(post, account_id)


def add_course_post_comment(
    engine: Engine,
    university_id: int,
    course_id: int,
    post_id: int,
    account_id: int,
    content: str,
) -> dict:
    text = _text(content, "Comment", COMMENT_MAX_LENGTH)
    with get_session(engine) as session:
        university = _load(session, university_id)
        _require_member(university, account_id)
        post = _load_course_post(_load_course(session, university, course_id), post_id)
        author = _account(session, account_id)
        comment = CourseComment(
            author_id=author.id, author_name=_display_name(author), content=text
        )
        post.comments.append(comment)
        session.flush()
        session.refresh(comment)
        return _comment_dict(comment)


def like_course_post(
    engine: Engine, university_id: int, course_id: int, post_id: int, account_id: int
) -> dict:
    with get_session(engine) as session:
        university = _load(session, university_id)
        _require_member(university, account_id)
        post = _load_course_post(_load_course(session, university, course_id), post_id)
        liked = voting.toggle_like(
            post.likes, account_id, lambda aid: CoursePostLike(account_id=aid)
        )
        session.flush()
        return {
            "message": "Post liked!" if liked else "Post unliked!",
            "likesCount": len(post.likes),
            "isLiked": liked,
        }
