"""Heuristic call quality scoring.

A lexical scorer used until a model-backed one replaces it. Thresholds and
rounding are fixed: stored scores of past calls were produced with them.
"""

import math
from typing import Callable, List

from callcontrol.schemas import CallAnalysis, Transcript, TranscriptSegment

MANAGER_SPEAKER = "speaker_0"

POSITIVE_WORDS = ("спасибо", "отлично", "хорошо", "понятно", "согласен", "да", "подходит", "интересно", "удобно")
NEGATIVE_WORDS = ("нет", "не подходит", "дорого", "не интересно", "плохо", "не понимаю", "отказываюсь")
SALES_WORDS = ("предложение", "скидка", "акция", "условия", "цена", "стоимость", "бронирование", "услуга")
QUALITY_WORDS = ("здравствуйте", "до свидания", "пожалуйста", "извините", "понимаю", "помогу")

DEFAULT_SUMMARY = "Стандартный разговор с клиентом"
DEFAULT_FEEDBACK = "Менеджер провел разговор профессионально"
DEFAULT_ADVICE = "Продолжайте работать в том же ключе"
LOW_SCORE_FEEDBACK = "Разговор требует улучшения качества коммуникации"
LOW_SCORE_ADVICE = (
    "Рекомендуется больше слушать клиента, использовать вежливые обороты "
    "и четче презентовать услуги"
)
HIGH_SCORE_FEEDBACK = "Отличная работа менеджера, высокое качество общения"
HIGH_SCORE_ADVICE = "Поделитесь успешными техниками с коллегами"
TALK_RATIO_ADVICE = ". Старайтесь больше слушать клиента и меньше говорить самостоятельно"

Scorer = Callable[[Transcript], CallAnalysis]


def count_matches(text: str, words) -> int:
    return sum(1 for word in words if word in text)


def talk_time(segments: List[TranscriptSegment]) -> float:
    return sum(segment.end - segment.start for segment in segments)


def compute_talk_ratio(segments: List[TranscriptSegment]) -> float:
    manager = [segment for segment in segments if segment.speaker == MANAGER_SPEAKER]
    customer = [segment for segment in segments if segment.speaker != MANAGER_SPEAKER]
    customer_time = talk_time(customer)
    if customer_time <= 0:
        return 1.0
    return talk_time(manager) / customer_time


def finalize_score(value: float) -> int:
    # Half-up rounding, not Python's banker's rounding.
    return int(math.floor(min(10.0, max(1.0, value)) + 0.5))


def build_summary(segments: List[TranscriptSegment], positive: int, negative: int) -> str:
    speakers = {segment.speaker for segment in segments}
    if len(speakers) < 2:
        return DEFAULT_SUMMARY
    summary = f"Диалог между {len(speakers)} участниками"
    if positive > negative:
        return summary + ", клиент проявил интерес к предложению"
    if negative > positive:
        return summary + ", клиент выразил возражения"
    return summary + ", нейтральное обсуждение услуг"


def analyze_transcript(transcript: Transcript) -> CallAnalysis:
    text = (transcript.text or "").lower()
    segments = list(transcript.segments or [])

    positive = count_matches(text, POSITIVE_WORDS)
    negative = count_matches(text, NEGATIVE_WORDS)
    sales = count_matches(text, SALES_WORDS)
    quality = count_matches(text, QUALITY_WORDS)
    talk_ratio = compute_talk_ratio(segments)

    general_score = 7.0
    general_score += min(2, positive * 0.5)
    general_score -= min(2, negative * 0.5)
    general_score += min(1, quality * 0.3)
    general_score = finalize_score(general_score)

    satisfaction = 7.0
    satisfaction += min(2, positive * 0.6)
    satisfaction -= min(3, negative * 0.8)
    satisfaction = finalize_score(satisfaction)

    communication = 7.0
    communication += min(2, quality * 0.4)
    if talk_ratio > 2:
        communication -= 1
    elif talk_ratio < 0.5:
        communication += 1
    communication = finalize_score(communication)

    sales_technique = 6.0
    sales_technique += min(2, sales * 0.5)
    if len(segments) > 4:
        sales_technique += 1
    sales_technique = finalize_score(sales_technique)

    transcription_score = 10 if len(transcript.text or "") > 50 else 7

    feedback = DEFAULT_FEEDBACK
    advice = DEFAULT_ADVICE
    if general_score < 6:
        feedback = LOW_SCORE_FEEDBACK
        advice = LOW_SCORE_ADVICE
    elif general_score >= 8:
        feedback = HIGH_SCORE_FEEDBACK
        advice = HIGH_SCORE_ADVICE
    if talk_ratio > 3:
        advice += TALK_RATIO_ADVICE

    return CallAnalysis(
        summary=build_summary(segments, positive, negative),
        general_score=general_score,
        user_satisfaction_index=satisfaction,
        communication_skills=communication,
        sales_technique=sales_technique,
        transcription_score=transcription_score,
        feedback=feedback,
        advice=advice,
    )
