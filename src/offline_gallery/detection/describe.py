"""Image descriptions and image chat built on top of detected labels.

A templated description is always available; an optional language provider
may rewrite it into more natural prose. Any provider failure falls back to
the templated text.
"""

import logging
import threading
from collections import Counter
from typing import Protocol

from offline_gallery.config import LANGUAGE_MODEL_NAME
from offline_gallery.exceptions import ModelNotLoadedError

logger = logging.getLogger(__name__)

NO_OBJECTS_DESCRIPTION = "This image does not contain any recognisable objects."
CHAT_UNAVAILABLE_REPLY = (
    "I apologise, but I'm having trouble processing your question. Please try again."
)

DESCRIPTION_SYSTEM_PROMPT = (
    "You are a helpful assistant that creates detailed image descriptions. "
    "Use UK English spelling."
)


class LanguageProvider(Protocol):
    def complete(self, messages: list[dict[str, str]]) -> str:
        """Return the assistant reply to a chat-formatted conversation."""
        ...


def _pluralize(label: str) -> str:
    return label if label.endswith("s") else f"{label}s"


def build_basic_description(labels: list[str]) -> str:
    """Describe an image from its detected labels.

    >>> build_basic_description(["dog", "cat", "dog"])
    'This image contains 2 dogs and a cat.'
    """
    if not labels:
        return NO_OBJECTS_DESCRIPTION

    counts = Counter(labels).most_common()
    phrases = []
    for label, count in counts:
        if count > 1:
            phrases.append(f"{count} {_pluralize(label)}")
        else:
            article = "an" if label[0].lower() in "aeiou" else "a"
            phrases.append(f"{article} {label}")

    if len(phrases) == 1:
        body = phrases[0]
    else:
        body = ", ".join(phrases[:-1]) + " and " + phrases[-1]
    return f"This image contains {body}."


def _clean(text: str, max_length: int) -> str:
    cleaned = text.replace('"', "").strip()
    if len(cleaned) > max_length:
        cleaned = cleaned[: max_length - 3] + "..."
    return cleaned


def describe(
    labels: list[str],
    provider: LanguageProvider | None = None,
    max_length: int = 500,
) -> str:
    """Return an (optionally enhanced) description for the detected labels."""
    basic = build_basic_description(labels)
    if provider is None or not labels:
        return basic

    objects = ", ".join(dict.fromkeys(labels))
    prompt = (
        "You are an AI assistant that creates detailed image descriptions based on "
        "detected objects. Use UK English spelling.\n\n"
        f"Objects detected in this image: {objects}\n\n"
        f"Basic description: {basic}\n\n"
        "Please enhance this description to make it more detailed and natural sounding. "
        "Include possible relationships between objects, their positioning, and context. "
        "Keep it concise but informative:"
    )
    messages = [
        {"role": "system", "content": DESCRIPTION_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]
    try:
        enhanced = provider.complete(messages)
    except Exception:
        logger.exception("Description enhancement failed; using basic description")
        return basic
    enhanced = _clean(enhanced or "", max_length)
    return enhanced or basic


def chat_about_image(
    labels: list[str],
    face_count: int,
    conversation: list[dict[str, str]],
    provider: LanguageProvider | None,
) -> str:
    """Answer the last user message of ``conversation`` about an image."""
    if provider is None:
        return "Sorry, the chat model is not loaded properly."

    objects = ", ".join(dict.fromkeys(labels)) or "nothing recognisable"
    faces = (
        f"The image contains {face_count} human face(s)."
        if face_count > 0
        else "The image does not contain any human faces."
    )
    system_prompt = (
        "You are an AI assistant that can answer questions about an image.\n"
        "Use UK English spelling in all your responses.\n"
        f"The image contains the following objects: {objects}.\n"
        f"{faces}\n"
        "Answer questions based on this information. "
        "If you don't know the answer, say so honestly."
    )
    messages = [{"role": "system", "content": system_prompt}]
    for message in conversation:
        role = message.get("role", "").lower()
        if role in ("user", "assistant"):
            messages.append({"role": role, "content": message.get("content", "")})

    try:
        return provider.complete(messages).strip()
    except Exception:
        logger.exception("Chat response failed")
        return CHAT_UNAVAILABLE_REPLY


class TransformersLanguageProvider:
    """Local chat model served through a transformers text-generation pipeline."""

    def __init__(
        self,
        model_name: str = LANGUAGE_MODEL_NAME,
        device: str = "cpu",
        max_new_tokens: int = 512,
        temperature: float = 0.7,
        top_p: float = 0.95,
    ) -> None:
        self.model_name = model_name
        self.device = device
        self.max_new_tokens = max_new_tokens
        self.temperature = temperature
        self.top_p = top_p
        self._pipe = None
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._pipe is not None

    def load(self) -> None:
        import torch
        from transformers import pipeline

        device = 0 if self.device == "cuda" and torch.cuda.is_available() else -1
        self._pipe = pipeline("text-generation", model=self.model_name, device=device)
        logger.info("Loaded language model: %s", self.model_name)

    def complete(self, messages: list[dict[str, str]]) -> str:
        if self._pipe is None:
            raise ModelNotLoadedError(f"{self.model_name} is not loaded")
        with self._lock:
            output = self._pipe(
                messages,
                max_new_tokens=self.max_new_tokens,
                do_sample=True,
                temperature=self.temperature,
                top_p=self.top_p,
            )
        generated = output[0]["generated_text"]
        if isinstance(generated, list):
            return generated[-1]["content"]
        return str(generated)
