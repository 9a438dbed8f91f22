# shaka/models/user.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List

@dataclass
class UserPublic:
    """다른 사용자에게 공개되는 프로필 정보 ('users/{uid}.public')"""
    displayName: str
    photoURL: Optional[str] = None
    bio: Optional[str] = None
    links: Optional[List[str]] = None

@dataclass
class UserPrivate:
    """본인만 읽는 정보 ('users/{uid}.private')"""
    joinedAt: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    email: Optional[str] = None

@dataclass
class UserStats:
    worksCount: int = 0
    questionsCount: int = 0

@dataclass
class User:
    """
    Firestore 'users' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    문서 ID는 Firebase Auth uid 입니다.
    """
    public: UserPublic
    private: UserPrivate = field(default_factory=UserPrivate)
    stats: UserStats = field(default_factory=UserStats)

def default_display_name(user_id: str) -> str:
    """표시 이름이 없는 사용자에게 붙이는 기본 이름"""
    return f"User_{user_id[:6]}"
