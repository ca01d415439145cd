"""HKDSE examiner prompts and the per-route prompt variants."""

from __future__ import annotations

import json
from dataclasses import dataclass

from dsegrader.grading.policy import ScoreScale


@dataclass(frozen=True)
class PromptVariant:
    """Knobs that differ between the first grading run and a regeneration."""

    name: str
    score_scale: ScoreScale
    score_temperature: float = 0.3
    segment_temperature: float = 0.3
    comment_temperature: float = 0.3
    fallback_sentence_count: int = 5
    segment_focus: str = (
        "Choose segments that are most representative of the student's writing abilities - "
        "both strengths and areas for improvement."
    )


STANDARD = PromptVariant(name="standard", score_scale=ScoreScale.RAW)

REGENERATE = PromptVariant(
    name="regenerate",
    score_scale=ScoreScale.PERCENTAGE,
    segment_temperature=0.4,
    fallback_sentence_count=8,
    segment_focus="Focus on both strengths that should be reinforced and weaknesses that need improvement.",
)

VARIANTS = {variant.name: variant for variant in (STANDARD, REGENERATE)}


_CRITERIA = """1. Content ({range}):
   - Relevance to the topic/task
   - Development of ideas (depth and originality)
   - Use of examples and supporting details
   - Task completion

2. Language ({range}):
   - Grammatical accuracy and complexity
   - Vocabulary range and appropriateness
   - Spelling and punctuation
   - Style and tone

3. Organization ({range}):
   - Coherence and cohesion
   - Paragraph structure and development
   - Use of discourse markers and transitions
   - Overall structure (introduction, body, conclusion)"""


def score_system_prompt(scale: ScoreScale) -> str:
    if scale is ScoreScale.RAW:
        criteria = _CRITERIA.format(range="0-7")
        combine = "Calculate the total score as the sum of the three categories (out of 21)."
    else:
        criteria = _CRITERIA.format(range="0-100")
        combine = "Calculate the overall score as an average of these three categories."
    return (
        "You are an expert HKDSE English Language Paper 2 (Writing) examiner with 15+ years of experience.\n"
        "You assess essays based on:\n\n"
        f"{criteria}\n\n"
        f"{combine}\n"
        "Respond with ONLY a JSON object containing the scores - no additional text."
    )


def score_prompt(essay_prompt: str, content: str, scale: ScoreScale) -> str:
    if scale is ScoreScale.RAW:
        fields = (
            '  "content": [score 0-7],\n'
            '  "language": [score 0-7],\n'
            '  "organization": [score 0-7],\n'
            '  "overall": [sum of the above, 0-21]'
        )
    else:
        fields = (
            '  "content": [score 0-100],\n'
            '  "language": [score 0-100],\n'
            '  "organization": [score 0-100],\n'
            '  "overall": [average of the above, 0-100]'
        )
    return (
        "Grade this essay according to HKDSE English Language Paper 2 (Writing) criteria.\n\n"
        f"Question/Prompt: {essay_prompt}\n\n"
        f"Essay content:\n{content}\n\n"
        "Return ONLY a JSON object with the following fields:\n"
        f"{{\n{fields}\n}}"
    )


SEGMENT_SYSTEM_PROMPT_TEMPLATE = """You are an expert HKDSE English Language examiner with a keen eye for meaningful text analysis.
Your task is to identify specific segments in the essay (5-15 words each) that demonstrate:

1. Grammatical strengths or weaknesses (verb tense, subject-verb agreement, article usage)
2. Vocabulary usage (word choice, collocations, idioms)
3. Sentence structure (complexity, variety, flow)
4. Content elements (key arguments, examples, evidence)
5. Organizational features (topic sentences, transitions, concluding statements)
6. Spelling and punctuation issues

{focus}"""


def segment_system_prompt(variant: PromptVariant) -> str:
    return SEGMENT_SYSTEM_PROMPT_TEMPLATE.format(focus=variant.segment_focus)


def segment_prompt(essay_prompt: str, content: str) -> str:
    return (
        "Analyze this essay and identify 10-15 specific text segments that demonstrate the student's writing skills.\n\n"
        f"Question/Prompt: {essay_prompt}\n\n"
        f"Essay:\n{content}\n\n"
        "Choose segments that:\n"
        "- Are 5-15 words in length\n"
        "- Appear exactly as written in the essay\n"
        "- Represent both strengths and weaknesses\n"
        "- Cover a range of assessment criteria (grammar, vocabulary, organization, content)\n\n"
        "Respond with ONLY a JSON array of text segments, exactly as they appear in the essay:\n"
        '["segment 1", "segment 2", "segment 3", ...]'
    )


COMMENT_SYSTEM_PROMPT = """You are an expert HKDSE English Language examiner providing detailed, constructive feedback on student writing.
Your feedback should:
1. Be specific and targeted to the exact text segment
2. Include both strengths and areas for improvement
3. Provide clear explanations of linguistic concepts when relevant
4. Offer practical suggestions for improvement
5. Use a supportive, encouraging tone
6. Reference HKDSE assessment criteria where appropriate

Classify each feedback item using EXACTLY ONE of these feedback types:
- Grammar: For issues related to syntax, tense, subject-verb agreement, articles, etc.
- Spelling: For misspelled words or typos
- Word Choice: For vocabulary usage, word precision, formality, or register
- Sentence Flow: For issues with sentence structure, variety, or transitions between sentences
- Clarity: For unclear expressions or ambiguous meaning
- Style: For tone, voice, or overall writing style
- Content Requirement: For addressing the essay prompt requirements
- Relevance: For staying on topic and providing relevant examples/evidence
- Idea Development: For expanding on ideas, depth of analysis, or critical thinking
- Organization: For paragraph structure, transitions, or overall essay organization"""


def comment_prompt(essay_prompt: str, segments: list[str]) -> str:
    return (
        "For each of the following text segments from a student essay, provide specific feedback.\n\n"
        f"Essay prompt: {essay_prompt}\n\n"
        "For each segment, create a feedback item with:\n"
        '1. Type - Classify as EXACTLY ONE of: "Grammar", "Spelling", "Word Choice", "Sentence Flow", '
        '"Clarity", "Style", "Content Requirement", "Relevance", "Idea Development", or "Organization"\n'
        "2. Segment - The exact text from the essay (unchanged)\n"
        "3. Suggestion - A specific, constructive comment (15-35 words, under 200 characters) that explains "
        "the issue or strength and offers an improvement\n\n"
        f"Segments to analyze: {json.dumps(segments)}\n\n"
        "IMPORTANT: Use the exact type categories listed above. Be specific in your feedback. "
        'Generic comments like "Review this section" are not helpful.\n\n'
        "Return ONLY a JSON array with feedback items in this format:\n"
        "[\n"
        '  {"type": "Grammar", "segment": "exact text segment", "suggestion": "specific feedback"},\n'
        "  ...\n"
        "]"
    )


OCR_CLEANUP_PROMPT = "give me the original essay from this post-OCR text, with no commentary:"
