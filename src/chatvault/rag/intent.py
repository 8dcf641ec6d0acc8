"""Query intent classification.

Small talk never reaches the vector store, and questions about "this
conversation" are answered from the latest session summary instead of a
chunk search. Everything else is a knowledge query.
"""

from __future__ import annotations

import re
from enum import Enum


class Intent(str, Enum):
    CONVERSATIONAL = "conversational"
    META = "meta"
    KNOWLEDGE = "knowledge"


# Trailing punctuation allowed after a whole-query small-talk phrase.
_END = r"[\s!.?~,]*$"

# Every pattern must cover the whole query: "안녕하세요, Docker 설정 어떻게 했지?"
# and "감사 보고서 작성법" are knowledge queries.
_CONVERSATIONAL_PATTERNS: list[re.Pattern[str]] = [
    # greetings
    re.compile(r"^(안녕|안녕하세요|안녕하십니까|하이|헬로|반가워요?|반갑습니다)" + _END),
    re.compile(r"^(hi|hello|hey|yo|good (morning|afternoon|evening))(\s+there)?" + _END, re.IGNORECASE),
    # thanks
    re.compile(r"^(고마워요?|고맙습니다|감사해요|감사합니다|땡큐)" + _END),
    re.compile(
        r"^(thanks|thank you|thx|ty)(\s+(so much|very much|a lot|for (the|your) help))?" + _END,
        re.IGNORECASE,
    ),
    # identity
    re.compile(r"^(너는?|넌|당신은?)\s*(누구|뭐)(야|니|세요|예요|에요)?" + _END),
    re.compile(r"^(who|what) are you" + _END, re.IGNORECASE),
    # praise
    re.compile(r"^(잘했어요?|대단해요?|최고야|최고예요|최고다|멋져요?|훌륭해요?)" + _END),
    re.compile(r"^(great|awesome|nice|good) (job|work)" + _END, re.IGNORECASE),
    # small talk
    re.compile(r"^(잘 ?지내(요|니|셨어요)?|뭐 ?해요?|심심해요?|날씨 (어때요?|좋다))" + _END),
    re.compile(r"^(how are you( doing)?|how's it going|what's up)" + _END, re.IGNORECASE),
    # goodbye
    re.compile(r"^(잘 ?가요?|안녕히 (가세요|계세요))" + _END),
    re.compile(r"^(bye|goodbye|see you( later| soon)?)" + _END, re.IGNORECASE),
]

# English patterns must name the conversation itself: "the key point of the
# Raft paper" is a knowledge query.
_META_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"이\s*대화의?\s*(핵심|요약|내용|주제)"),
    re.compile(r"대화를?\s*(요약|정리)"),
    re.compile(r"요약해\s*줘"),
    re.compile(r"핵심\s*(내용|포인트)"),
    re.compile(r"주요\s*(내용|포인트)"),
    re.compile(r"summari[sz]e\s+(this|the|our)\s+(conversation|chat)", re.IGNORECASE),
    re.compile(
        r"(core|main|key)\s+points?\s+(of|in|from)\s+(this|the|our)\s+(conversation|chat)",
        re.IGNORECASE,
    ),
    re.compile(r"^what (are|were) the (core|main|key) points" + _END, re.IGNORECASE),
]


def is_conversational(query: str) -> bool:
    text = query.strip()
    return any(p.search(text) for p in _CONVERSATIONAL_PATTERNS)


def is_meta_question(query: str) -> bool:
    return any(p.search(query) for p in _META_PATTERNS)


def classify_intent(query: str) -> Intent:
    """Conversational patterns are checked before meta patterns."""
    if is_conversational(query):
        return Intent.CONVERSATIONAL
    if is_meta_question(query):
        return Intent.META
    return Intent.KNOWLEDGE
