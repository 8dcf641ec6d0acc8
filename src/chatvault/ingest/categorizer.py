"""Session categorizer — ``metadata.mainCategory`` assignment and enhancement.

At ingest the generator picks one of ``CATEGORIES``; later,
``enhance_categories()`` re-scores uncategorized sessions with a cheap
keyword match and records the result through the narrow metadata update.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone

from chatvault.db.models import Session

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "other"

_CATEGORY_DESCRIPTIONS: dict[str, str] = {
    "development": "programming, coding, debugging, APIs, frameworks, databases",
    "creative": "writing, design, drawing, music or video production, content creation",
    "learning": "school, studying, lectures, courses, exams, homework, self-improvement",
    "work": "business, project management, meetings, collaboration, reports",
    "hobby": "games, movies, reading, sports, leisure",
    "life": "daily life, home, cooking, shopping, relationships",
    "health": "exercise, diet, medical topics, mental health",
    "travel": "trip planning, sightseeing, lodging, transport",
    "finance": "money, investing, stocks, real estate, budgeting",
    "technology": "IT trends, new technology, devices, AI, blockchain",
    DEFAULT_CATEGORY: "anything that clearly fits none of the above",
}

CATEGORIES: tuple[str, ...] = tuple(_CATEGORY_DESCRIPTIONS)

_KEYWORDS: dict[str, tuple[str, ...]] = {
    "development": ("coding", "code", "programming", "javascript", "python", "react", "api", "server", "코딩", "개발", "프로그래밍", "서버"),
    "learning": ("study", "learning", "lecture", "course", "homework", "학습", "공부", "교육", "강의", "과제"),
    "work": ("business", "meeting", "project", "report", "planning", "비즈니스", "업무", "회의", "프로젝트", "보고서"),
    "creative": ("design", "writing", "content", "art", "디자인", "창작", "콘텐츠", "예술"),
    "hobby": ("game", "movie", "hobby", "reading", "게임", "영화", "취미", "독서"),
    "life": ("cooking", "recipe", "shopping", "요리", "쇼핑", "일상"),
    "health": ("exercise", "workout", "health", "diet", "medical", "운동", "건강", "다이어트", "의료"),
    "travel": ("travel", "trip", "vacation", "hotel", "여행", "관광", "휴가", "숙소"),
    "finance": ("finance", "invest", "investing", "stock", "economy", "금융", "투자", "주식", "경제"),
    "technology": ("ai", "artificial intelligence", "blockchain", "iot", "인공지능", "블록체인"),
}

_CLASSIFY_SYSTEM = (
    "You classify conversations into exactly one category. Categories:\n"
    + "\n".join(f"- {name}: {desc}" for name, desc in _CATEGORY_DESCRIPTIONS.items())
    + "\nAnswer with the category name only."
)


def validate_category(suggested: str) -> str:
    """Map a free-form model reply onto a known category name."""
    normalized = suggested.strip().lower()
    for category in CATEGORIES:
        if category in normalized:
            return category
    return DEFAULT_CATEGORY


def _mentions(keyword: str, content: str) -> bool:
    # Latin keywords match whole words; Hangul keywords may carry attached particles.
    if keyword.isascii():
        return re.search(rf"\b{re.escape(keyword)}\b", content) is not None
    return keyword in content


def keyword_category(title: str, summary: str) -> str:
    """Return the category whose keywords occur most often in title + summary."""
    content = f"{title} {summary}".lower()
    best, best_hits = DEFAULT_CATEGORY, 0
    for category, keywords in _KEYWORDS.items():
        hits = sum(1 for keyword in keywords if _mentions(keyword, content))
        if hits > best_hits:
            best, best_hits = category, hits
    return best


def _classification_input(session: Session) -> str:
    transcript = "\n".join(f"{m.role}: {m.content}" for m in session.messages[:10])
    tags = session.metadata.get("tags") or session.metadata.get("keywords") or []
    tag_line = f"Tags: {', '.join(str(t) for t in tags)}\n" if tags else ""
    return f"Title: {session.title}\nSummary: {session.summary}\n{tag_line}---\n{transcript}"


class SessionCategorizer:
    """LLM-backed category classifier.

    Args:
        generator: Object with ``async generate(messages, max_tokens=, temperature=)``.
    """

    def __init__(self, generator) -> None:
        self._generator = generator

    async def classify(self, session: Session) -> str:
        """Return a category for *session*; ``DEFAULT_CATEGORY`` on any failure."""
        try:
            reply = await self._generator.generate(
                [
                    {"role": "system", "content": _CLASSIFY_SYSTEM},
                    {"role": "user", "content": _classification_input(session)},
                ],
                max_tokens=10,
                temperature=0.3,
            )
        except Exception as exc:
            logger.warning("Category classification failed for '%s': %s", session.title, exc)
            return DEFAULT_CATEGORY
        return validate_category(reply)


@dataclass
class EnhanceResult:
    enhanced: int
    errors: int
    total: int


def enhance_categories(repo, session_ids: list[str], batch_size: int = 10) -> EnhanceResult:
    """Re-score sessions whose category is missing or ``DEFAULT_CATEGORY``.

    Sessions are fetched in batches of *batch_size*; a session is updated only
    when the keyword score yields a different category. Unknown ids count as
    errors.
    """
    enhanced = errors = 0
    for start in range(0, len(session_ids), batch_size):
        batch = session_ids[start : start + batch_size]
        found = repo.get_sessions(batch)
        errors += sum(1 for sid in batch if sid not in found)
        for session in found.values():
            current = session.metadata.get("mainCategory")
            if current and current != DEFAULT_CATEGORY:
                continue
            improved = keyword_category(session.title, session.summary)
            if improved == current:
                continue
            repo.update_metadata(
                session.id,
                {
                    "mainCategory": improved,
                    "enhancedAt": datetime.now(timezone.utc).isoformat(),
                },
            )
            enhanced += 1
    logger.info("Enhanced %d of %d sessions (%d errors)", enhanced, len(session_ids), errors)
    return EnhanceResult(enhanced=enhanced, errors=errors, total=len(session_ids))
