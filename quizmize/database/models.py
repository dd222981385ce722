"""
quizmize.database.models — SQLAlchemy 2.0 Data Models
======================================================

One aggregate per top-level entity.  Sub-lists a parent owns (members,
votes, comments, participants, faculties → courses → classrooms → students)
are child tables with ``cascade="all, delete-orphan"``; every reference to
an account is a plain foreign key.

Tables:
- accounts              — Registered people (XP, level, lifetime XP)
- quiz_attempts         — Per-account quiz history
- mission_completions   — Per-account completed-mission history
- groups / group_members — Study groups and their (account, role) members
- posts / post_votes / comments — Group feed
- missions / mission_participants / mission_answers — Timed quiz challenges
- universities / university_members / university_posts /
  university_post_likes / university_comments — University timeline
- faculties / courses / classrooms / classroom_students — Institution tree
- course_posts / course_post_likes / course_comments — Course feed
- chat_messages         — Persisted group chat
- xp_log                — Append-only XP award journal
- topics / subjects / quiz_topics / quiz_cards / quizzes — Quiz catalog
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Quizmize ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class GroupRole(enum.StrEnum):
    ADMIN = "Admin"
    STRATEGIST = "Strategist"
    CONTRIBUTOR = "Contributor"
    CHALLENGER = "Challenger"
    MEMBER = "Member"


class UniversityRole(enum.StrEnum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class MissionType(enum.StrEnum):
    SYSTEM = "system"
    CUSTOM = "custom"


class MissionStatus(enum.StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    PENDING = "pending"


class CoursePostType(enum.StrEnum):
    ANNOUNCEMENT = "announcement"
    ASSIGNMENT = "assignment"
    MATERIAL = "material"
    GENERAL = "general"


class StudentStatus(enum.StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class XpEntity(enum.StrEnum):
    """Which aggregate an xp_log row belongs to."""
    GROUP = "group"
    ACCOUNT = "account"


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------
class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(254), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    xp: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=1)
    total_xp: Mapped[int] = mapped_column(Integer, default=0)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    quiz_attempts: Mapped[list[QuizAttempt]] = relationship(
        back_populates="account",
        cascade="all, delete-orphan",
        order_by="QuizAttempt.id",
    )
    mission_completions: Mapped[list[MissionCompletion]] = relationship(
        back_populates="account",
        cascade="all, delete-orphan",
        order_by="MissionCompletion.id",
    )

    def __repr__(self) -> str:
        return f"<Account id={self.id} email={self.email!r} lvl={self.level}>"


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    quiz_topic: Mapped[str] = mapped_column(String(200), default="")
    subject: Mapped[str] = mapped_column(String(200), default="")
    quiz_list: Mapped[str] = mapped_column(String(200), default="")
    score: Mapped[int] = mapped_column(Integer, default=0)
    total_questions: Mapped[int] = mapped_column(Integer, default=0)
    xp: Mapped[int] = mapped_column(Integer, default=0)
    taken_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    account: Mapped[Account] = relationship(back_populates="quiz_attempts")

    def __repr__(self) -> str:
        return f"<QuizAttempt id={self.id} account={self.account_id} score={self.score}>"


class MissionCompletion(Base):
    __tablename__ = "mission_completions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    mission_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("missions.id", ondelete="SET NULL"), nullable=True
    )
    group_id: Mapped[int] = mapped_column(Integer, nullable=False)
    mission_title: Mapped[str] = mapped_column(String(200), nullable=False)
    score: Mapped[int] = mapped_column(Integer, default=0)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    account: Mapped[Account] = relationship(back_populates="mission_completions")


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------
class Group(Base):
    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    specialization: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    level: Mapped[int] = mapped_column(Integer, default=1)
    xp: Mapped[int] = mapped_column(Integer, default=0)
    total_xp: Mapped[int] = mapped_column(Integer, default=0)
    required_xp: Mapped[int] = mapped_column(Integer, default=3000)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    members: Mapped[list[GroupMember]] = relationship(
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="GroupMember.id",
    )

    def __repr__(self) -> str:
        return f"<Group id={self.id} name={self.name!r} lvl={self.level}>"


class GroupMember(Base):
    __tablename__ = "group_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False
    )
    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=GroupRole.MEMBER.value
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    group: Mapped[Group] = relationship(back_populates="members")
    account: Mapped[Account] = relationship()

    __table_args__ = (
        UniqueConstraint("group_id", "account_id", name="uq_group_members_group_account"),
    )

    def __repr__(self) -> str:
        return f"<GroupMember group={self.group_id} account={self.account_id} role={self.role}>"


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    author: Mapped[Account] = relationship()
    voters: Mapped[list[PostVote]] = relationship(
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="PostVote.voted_at",
    )
    comments: Mapped[list[Comment]] = relationship(
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="Comment.id",
    )

    __table_args__ = (
        Index("ix_posts_group_created", "group_id", "created_at"),
    )

    @property
    def upvotes(self) -> int:
        return sum(1 for v in self.voters if v.value == 1)

    @property
    def downvotes(self) -> int:
        return sum(1 for v in self.voters if v.value == -1)

    @property
    def vote_count(self) -> int:
        return sum(v.value for v in self.voters)

    def __repr__(self) -> str:
        return f"<Post id={self.id} group={self.group_id} votes={self.vote_count}>"


class PostVote(Base):
    __tablename__ = "post_votes"

    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True
    )
    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True
    )
    value: Mapped[int] = mapped_column(Integer, nullable=False)  # +1 up, -1 down
    voted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    post: Mapped[Post] = relationship(back_populates="voters")


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    votes: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    post: Mapped[Post] = relationship(back_populates="comments")
    author: Mapped[Account] = relationship()


# ---------------------------------------------------------------------------
# Missions — timed quiz challenges scoped to a group
# ---------------------------------------------------------------------------
class Mission(Base):
    __tablename__ = "missions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False
    )
    created_by: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    # [{"text", "choices": [4], "correct_answer", "explanation"}]; fixed at creation
    questions: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    points: Mapped[int] = mapped_column(Integer, default=100)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MissionStatus.ACTIVE.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    participants: Mapped[list[MissionParticipant]] = relationship(
        back_populates="mission",
        cascade="all, delete-orphan",
        order_by="MissionParticipant.id",
    )

    __table_args__ = (
        Index("ix_missions_group_created", "group_id", "created_at"),
        Index("ix_missions_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Mission id={self.id} title={self.title!r} type={self.type}>"


class MissionParticipant(Base):
    __tablename__ = "mission_participants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mission_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("missions.id", ondelete="CASCADE"), nullable=False
    )
    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    current_question: Mapped[int] = mapped_column(Integer, default=0)
    score: Mapped[int] = mapped_column(Integer, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    mission: Mapped[Mission] = relationship(back_populates="participants")
    answers: Mapped[list[MissionAnswer]] = relationship(
        back_populates="participant",
        cascade="all, delete-orphan",
        order_by="MissionAnswer.id",
    )

    __table_args__ = (
        UniqueConstraint(
            "mission_id", "account_id", name="uq_mission_participants_mission_account"
        ),
        Index("ix_mission_participants_account", "account_id"),
    )


class MissionAnswer(Base):
    __tablename__ = "mission_answers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    participant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("mission_participants.id", ondelete="CASCADE"),
        nullable=False,
    )
    question_index: Mapped[int] = mapped_column(Integer, nullable=False)
    selected_answer: Mapped[int] = mapped_column(Integer, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    answered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    participant: Mapped[MissionParticipant] = relationship(back_populates="answers")


# ---------------------------------------------------------------------------
# Universities
# ---------------------------------------------------------------------------
class University(Base):
    __tablename__ = "universities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(String(500), default="")
    location: Mapped[str] = mapped_column(String(30), nullable=False)
    website: Mapped[str] = mapped_column(String(300), default="")
    logo_url: Mapped[str] = mapped_column(
        String(300), default="/assets/default-university-logo.png"
    )
    join_code: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    allow_student_registration: Mapped[bool] = mapped_column(Boolean, default=True)
    max_members: Mapped[int] = mapped_column(Integer, default=10000)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    members: Mapped[list[UniversityMember]] = relationship(
        back_populates="university",
        cascade="all, delete-orphan",
        order_by="UniversityMember.id",
    )
    posts: Mapped[list[UniversityPost]] = relationship(
        back_populates="university",
        cascade="all, delete-orphan",
        order_by="UniversityPost.id.desc()",
    )
    faculties: Mapped[list[Faculty]] = relationship(
        back_populates="university",
        cascade="all, delete-orphan",
        order_by="Faculty.id",
    )

    def __repr__(self) -> str:
        return f"<University id={self.id} name={self.name!r}>"


class UniversityMember(Base):
    __tablename__ = "university_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    university_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("universities.id", ondelete="CASCADE"), nullable=False
    )
    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    university: Mapped[University] = relationship(back_populates="members")
    account: Mapped[Account] = relationship()

    __table_args__ = (
        UniqueConstraint(
            "university_id", "account_id", name="uq_university_members_univ_account"
        ),
    )


class UniversityPost(Base):
    __tablename__ = "university_posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    university_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("universities.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    author_name: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(String(1000), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    university: Mapped[University] = relationship(back_populates="posts")
    likes: Mapped[list[UniversityPostLike]] = relationship(
        back_populates="post", cascade="all, delete-orphan"
    )
    comments: Mapped[list[UniversityComment]] = relationship(
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="UniversityComment.id",
    )


class UniversityPostLike(Base):
    __tablename__ = "university_post_likes"

    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("university_posts.id", ondelete="CASCADE"), primary_key=True
    )
    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True
    )
    liked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    post: Mapped[UniversityPost] = relationship(back_populates="likes")


class UniversityComment(Base):
    __tablename__ = "university_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("university_posts.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    author_name: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    post: Mapped[UniversityPost] = relationship(back_populates="comments")


class Faculty(Base):
    __tablename__ = "faculties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    university_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("universities.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(String(300), default="")
    contact_email: Mapped[str | None] = mapped_column(String(254), nullable=True)
    dean_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )

    university: Mapped[University] = relationship(back_populates="faculties")
    courses: Mapped[list[Course]] = relationship(
        back_populates="faculty",
        cascade="all, delete-orphan",
        order_by="Course.id",
    )


class Course(Base):
    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    faculty_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("faculties.id", ondelete="CASCADE"), nullable=False
    )
    course_code: Mapped[str] = mapped_column(String(20), nullable=False)
    course_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    credits: Mapped[int] = mapped_column(Integer, default=3)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    teacher_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )

    faculty: Mapped[Faculty] = relationship(back_populates="courses")
    classrooms: Mapped[list[Classroom]] = relationship(
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="Classroom.id",
    )
    posts: Mapped[list[CoursePost]] = relationship(
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="CoursePost.id.desc()",
    )

    __table_args__ = (
        UniqueConstraint("faculty_id", "course_code", name="uq_courses_faculty_code"),
    )


class Classroom(Base):
    __tablename__ = "classrooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    section: Mapped[str] = mapped_column(String(50), default="")
    schedule_day: Mapped[str | None] = mapped_column(String(10), nullable=True)
    schedule_time: Mapped[str | None] = mapped_column(String(50), nullable=True)
    schedule_location: Mapped[str | None] = mapped_column(String(200), nullable=True)

    course: Mapped[Course] = relationship(back_populates="classrooms")
    students: Mapped[list[ClassroomStudent]] = relationship(
        back_populates="classroom",
        cascade="all, delete-orphan",
        order_by="ClassroomStudent.joined_at",
    )


class ClassroomStudent(Base):
    __tablename__ = "classroom_students"

    classroom_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("classrooms.id", ondelete="CASCADE"), primary_key=True
    )
    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=StudentStatus.ACTIVE.value
    )

    classroom: Mapped[Classroom] = relationship(back_populates="students")


class CoursePost(Base):
    __tablename__ = "course_posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    author_name: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(String(1000), nullable=False)
    post_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CoursePostType.GENERAL.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    course: Mapped[Course] = relationship(back_populates="posts")
    likes: Mapped[list[CoursePostLike]] = relationship(
        back_populates="post", cascade="all, delete-orphan"
    )
    comments: Mapped[list[CourseComment]] = relationship(
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="CourseComment.id",
    )


class CoursePostLike(Base):
    __tablename__ = "course_post_likes"

    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("course_posts.id", ondelete="CASCADE"), primary_key=True
    )
    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True
    )
    liked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    post: Mapped[CoursePost] = relationship(back_populates="likes")


class CourseComment(Base):
    __tablename__ = "course_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("course_posts.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    author_name: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    post: Mapped[CoursePost] = relationship(back_populates="comments")


# ---------------------------------------------------------------------------
# Chat — persisted group chat, replayable
# ---------------------------------------------------------------------------
class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    author_name: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_chat_messages_group_created", "group_id", "created_at"),
    )


# ---------------------------------------------------------------------------
# XpLog — append-only award journal
# ---------------------------------------------------------------------------
class XpLog(Base):
    __tablename__ = "xp_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String(10), nullable=False)
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    level_before: Mapped[int] = mapped_column(Integer, nullable=False)
    level_after: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_xp_log_entity", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<XpLog id={self.id} {self.entity_type}={self.entity_id} "
            f"amount={self.amount} source={self.source!r}>"
        )


# ---------------------------------------------------------------------------
# Quiz catalog
# ---------------------------------------------------------------------------
class Topic(Base):
    """Top-level catalog heading (e.g. "Science")."""

    __tablename__ = "topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)


class Subject(Base):
    __tablename__ = "subjects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    url: Mapped[str] = mapped_column(String(300), default="")

    __table_args__ = (
        UniqueConstraint("category", "name", name="uq_subjects_category_name"),
    )


class Quiz(Base):
    __tablename__ = "quizzes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    quiz_topic: Mapped[str] = mapped_column(String(200), nullable=False)
    quiz_list: Mapped[str] = mapped_column(String(200), nullable=False)
    # [{"question", "choices", "answer"}]
    questions: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)

    __table_args__ = (
        UniqueConstraint(
            "subject", "quiz_topic", "quiz_list", name="uq_quizzes_subject_topic_list"
        ),
    )


class QuizTopic(Base):
    """A topic inside a subject, with the learner-facing progress counters."""

    __tablename__ = "quiz_topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    url: Mapped[str] = mapped_column(String(300), default="")
    total: Mapped[int] = mapped_column(Integer, default=0)
    done: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint("subject", "name", name="uq_quiz_topics_subject_name"),
    )


class QuizCard(Base):
    """One card of a quiz list; position within the list is insertion order."""

    __tablename__ = "quiz_cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quiz_topic: Mapped[str] = mapped_column(String(200), nullable=False)
    list_name: Mapped[str] = mapped_column(String(200), nullable=False)
    card_title: Mapped[str] = mapped_column(String(200), nullable=False)
    card_difficulty: Mapped[str] = mapped_column(String(50), default="")
    card_background: Mapped[str] = mapped_column(String(300), default="")
    url: Mapped[str] = mapped_column(String(300), default="")

    __table_args__ = (
        Index("ix_quiz_cards_topic_list", "quiz_topic", "list_name"),
    )
