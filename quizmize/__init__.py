"""
Quizmize — Quiz & Study-Group Platform Backend
===============================================
Accounts, a quiz catalog, study groups with posts/comments/voting, timed
group missions, and a university/course module, all tied together by an
XP/level gamification layer and a realtime group channel.

Package layout::

    quizmize/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Leveling policies (group + account)
    ├── errors.py          # Error taxonomy → HTTP status
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # All ORM models
    ├── engine/
    │   ├── events.py      # GroupEvent + XP amounts
    │   ├── leveling.py    # Carry-propagation level-up loop
    │   ├── membership.py  # Member / role predicates and gates
    │   ├── missions.py    # Mission progress tracker + question generator
    │   └── voting.py      # Vote / like toggles
    ├── realtime/
    │   └── hub.py         # Room registry, presence, fan-out
    ├── services/
    │   ├── award_service.py      # XP persistence + notification fan-out
    │   ├── account_service.py    # Signup, login, quiz history
    │   ├── group_service.py      # Groups, posts, comments, votes
    │   ├── mission_service.py    # Missions and participants
    │   ├── university_service.py # Universities, faculties, courses
    │   ├── chat_service.py       # Persisted group chat
    │   └── quiz_service.py       # Subject / quiz catalog
    └── api/
        ├── main.py        # FastAPI app
        ├── auth.py        # Signup/login → JWT cookie
        └── routes/        # Groups, missions, universities, quizzes, pages
"""

__version__ = "0.1.0"
