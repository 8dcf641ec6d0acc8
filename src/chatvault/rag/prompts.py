"""Prompt templates and fixed replies for the query pipeline."""

from __future__ import annotations

ASSISTANT_SYSTEM = "You are an accurate, helpful question-answering assistant for a personal chat archive."

GROUNDED_TEMPLATE = """\
Answer the user's question using the context below, taken from archived conversations.

- If the context answers the question, answer from it accurately and in detail.
- If the context has no exact answer but contains related information, reason
  from that related information and say that you are doing so.
- Only when nothing in the context is relevant, reply "This information was not
  found in the provided context."

Context:
{context}

Question: {query}

Answer:"""

CONVERSATIONAL_SYSTEM = (
    "You are ChatVault, a friendly assistant that answers questions from the "
    "user's archived chat conversations. Reply briefly and naturally to small talk, "
    "in the user's language."
)

SUMMARY_SYSTEM = "Summarize the given answer in exactly one sentence, in the answer's language."

FALLBACK_SYSTEM = (
    "Answer the user's question from your general knowledge. The user's archive "
    "had no closely matching conversation, so do not refer to any context."
)

NO_INFORMATION_ANSWER = (
    "No relevant information was found. Try another or a more specific question; "
    "the archive may contain only limited information on this topic."
)

NO_SUMMARY_ANSWER = "No stored conversation summary was found. Save a conversation first."

UNKNOWN_TITLE = "Unknown"


def grounded_messages(query: str, context: str) -> list[dict]:
    return [
        {"role": "system", "content": ASSISTANT_SYSTEM},
        {"role": "user", "content": GROUNDED_TEMPLATE.format(context=context, query=query)},
    ]


def conversational_messages(query: str) -> list[dict]:
    return [
        {"role": "system", "content": CONVERSATIONAL_SYSTEM},
        {"role": "user", "content": query},
    ]


def summary_messages(answer: str) -> list[dict]:
    return [
        {"role": "system", "content": SUMMARY_SYSTEM},
        {"role": "user", "content": answer},
    ]


def fallback_messages(query: str) -> list[dict]:
    return [
        {"role": "system", "content": FALLBACK_SYSTEM},
        {"role": "user", "content": query},
    ]
