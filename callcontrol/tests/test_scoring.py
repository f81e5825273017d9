from callcontrol.schemas import Transcript, TranscriptSegment
from callcontrol.services.scoring import (
    DEFAULT_ADVICE,
    DEFAULT_FEEDBACK,
    DEFAULT_SUMMARY,
    HIGH_SCORE_FEEDBACK,
    TALK_RATIO_ADVICE,
    analyze_transcript,
    compute_talk_ratio,
    finalize_score,
)


def _segment(speaker, start, end, text=""):
    return TranscriptSegment(speaker=speaker, start=start, end=end, text=text)


def test_empty_transcript_gets_baseline_scores():
    analysis = analyze_transcript(Transcript(text="", segments=[]))
    assert analysis.general_score == 7
    assert analysis.user_satisfaction_index == 7
    assert analysis.communication_skills == 7
    assert analysis.sales_technique == 6
    assert analysis.transcription_score == 7
    assert analysis.summary == DEFAULT_SUMMARY
    assert analysis.feedback == DEFAULT_FEEDBACK
    assert analysis.advice == DEFAULT_ADVICE


def test_missing_segments_are_treated_as_empty():
    analysis = analyze_transcript(Transcript(text="Алло"))
    assert analysis.communication_skills == 7
    assert analysis.summary == DEFAULT_SUMMARY


def test_scoring_is_deterministic():
    transcript = Transcript(
        text="Здравствуйте! Спасибо, цена подходит, скидка интересно",
        segments=[_segment("speaker_0", 0, 5), _segment("speaker_1", 5, 9)],
    )
    assert analyze_transcript(transcript) == analyze_transcript(transcript)


def test_positive_words_raise_scores():
    analysis = analyze_transcript(Transcript(text="Спасибо, отлично, хорошо, понятно."))
    assert analysis.general_score == 9
    assert analysis.user_satisfaction_index == 9
    assert analysis.feedback == HIGH_SCORE_FEEDBACK


def test_negative_words_lower_satisfaction():
    text = "нет плохо дорого отказываюсь не понимаю не интересно не подходит"
    analysis = analyze_transcript(Transcript(text=text))
    assert analysis.general_score == 6
    assert analysis.user_satisfaction_index == 5
    assert analysis.feedback == DEFAULT_FEEDBACK


def test_scores_stay_within_bounds():
    text = " ".join(["спасибо отлично хорошо здравствуйте пожалуйста помогу понимаю"] * 10)
    analysis = analyze_transcript(Transcript(text=text))
    for score in (
        analysis.general_score,
        analysis.user_satisfaction_index,
        analysis.communication_skills,
        analysis.sales_technique,
        analysis.transcription_score,
    ):
        assert 1 <= score <= 10
    assert analysis.transcription_score == 10


def test_finalize_score_rounds_half_up_and_clamps():
    assert finalize_score(6.5) == 7
    assert finalize_score(7.49) == 7
    assert finalize_score(12.4) == 10
    assert finalize_score(-3) == 1


def test_talk_ratio_without_customer_speech_is_neutral():
    segments = [_segment("speaker_0", 0, 30), _segment("speaker_1", 30, 30)]
    assert compute_talk_ratio(segments) == 1.0
    assert compute_talk_ratio([]) == 1.0


def test_dominating_manager_gets_listening_advice():
    transcript = Transcript(
        text="Расскажу вам про тариф",
        segments=[_segment("speaker_0", 0, 40), _segment("speaker_1", 40, 50)],
    )
    analysis = analyze_transcript(transcript)
    assert analysis.communication_skills == 6
    assert analysis.advice.endswith(TALK_RATIO_ADVICE)
    assert analysis.summary == "Диалог между 2 участниками, нейтральное обсуждение услуг"


def test_long_dialogue_adds_sales_bonus():
    segments = [_segment(f"speaker_{i % 2}", i, i + 1) for i in range(5)]
    analysis = analyze_transcript(Transcript(text="цена", segments=segments))
    # one sales word (+0.5) and the dialogue bonus (+1) on top of 6
    assert analysis.sales_technique == 8


def test_summary_reflects_customer_interest():
    transcript = Transcript(
        text="Спасибо, отлично",
        segments=[_segment("speaker_0", 0, 2), _segment("speaker_1", 2, 4)],
    )
    summary = analyze_transcript(transcript).summary
    assert summary == "Диалог между 2 участниками, клиент проявил интерес к предложению"
