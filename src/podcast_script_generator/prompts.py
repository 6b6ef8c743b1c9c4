"""Prompt builders for outline and dialogue generation, verification and improvement.

Every function here is pure: it formats domain context into a prompt string.
"""

from __future__ import annotations

import json

from .models import CharacterProfile, GenerationContext, Issue, PartType, Section
from .tools.outline_parser import extract_carryover, extract_key_facts, extract_unique_focus
from .tools.text_metrics import target_words

# ---------------------------------------------------------------------------
# Shared fragments
# ---------------------------------------------------------------------------

SCRIPT_FORMAT_RULES = """\
# Output format (CRITICAL)
- Use blocks starting with '---' on a line by itself.
- Each block is immediately followed by 'HOST:' or 'GUEST:' on its own line, then that speaker's dialogue.
- No stage directions, sound cues, section headers, metadata or code fences.
"""

ISSUE_SCHEMA = """\
{
  "isValid": boolean,
  "issues": [
    {
      "category": string,
      "severity": "critical" | "major" | "minor",
      "description": string,
      "evidence": string,
      "fix": string,
      "actions": [string],
      "notes": string
    }
  ],
  "feedback": string,
  "summary": string
}"""


def _language_line(language: str, what: str) -> str:
    return f"\n\nGenerate the {what} in {language or 'english'} language."


def _persona(label: str, profile: CharacterProfile) -> str:
    lines = [f"## {label}", f"**Name**: {profile.name}"]
    if profile.personality:
        lines.append(f"**Personality**: {profile.personality}")
    if profile.speaking_style:
        lines.append(f"**Speaking style**: {profile.speaking_style}")
    if profile.backstory:
        lines.append(f"\n### Backstory\n{profile.backstory}")
    return "\n".join(lines)


def format_feedback(issues: list[Issue], feedback: str = "") -> str:
    """Render issues as JSON for an improvement prompt; free text when there are none."""
    if not issues:
        return feedback or "No specific issues reported."
    payload = {
        "feedback": feedback,
        "issues": [issue.model_dump(mode="json") for issue in issues],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Outline
# ---------------------------------------------------------------------------

def outline_system(ctx: GenerationContext) -> str:
    return (
        "You are a podcast outline generator.\n\n"
        f"Create a structured outline for a discussion between a host named \"{ctx.host.name}\" "
        f"and a guest named \"{ctx.guest.name}\". The whole podcast lasts "
        f"{ctx.total_duration_minutes:g} minutes; section durations must add up to that total.\n\n"
        "Use EXACTLY this format, with a '---' line between sections:\n\n"
        "---\n"
        "1. <Section title>\n"
        "Duration: <minutes>\n"
        "Overview: <one-line summary of the discussion>\n"
        "KEY FACTS:\n- <3-5 specific facts or concepts>\n"
        "UNIQUE FOCUS: <what distinguishes this section>\n"
        "CARRYOVER: <topics building on earlier sections, or None>\n"
        "---\n\n"
        "Number sections hierarchically (1, 1.1, 2, ...). Begin with an introduction that "
        "introduces the guest and end with an outro that thanks the guest and signs off. "
        "Do NOT write dialogue."
        + _language_line(ctx.language, "outline")
    )


def outline_user(ctx: GenerationContext) -> str:
    focus = f'Focus and overall instructions: "{ctx.podcast_focus.strip()}"\n\n' if ctx.podcast_focus.strip() else ""
    return (
        f"{focus}Generate a podcast outline from the following document.\n\n"
        f"--- DOCUMENT ---\n{ctx.document_text}\n\n"
        f"Total duration: exactly {ctx.total_duration_minutes:g} minutes."
    )


OUTLINE_VERIFY_SYSTEM = f"""\
You are a podcast outline quality reviewer. Check:
1. STRUCTURE: logical ordering, introduction first and outro last
2. TIMING: section durations add up to the target duration
3. COVERAGE: the main topics of the document get appropriate emphasis
4. FOCUS: the outline follows any requested focus
5. FORMAT: numbered titles, Duration/Overview lines and '---' separators

Respond with JSON ONLY:
{ISSUE_SCHEMA}
"""


def outline_verify_user(outline_text: str, ctx: GenerationContext, measured_minutes: float) -> str:
    focus = f"Podcast focus: {ctx.podcast_focus}\n" if ctx.podcast_focus else ""
    return (
        "Review this podcast outline and return JSON only.\n\n"
        f"Target duration: {ctx.total_duration_minutes:g} minutes\n"
        f"Section durations currently add up to: {measured_minutes:g} minutes\n{focus}\n"
        f"--- GENERATED OUTLINE ---\n{outline_text}\n\n"
        f"--- ORIGINAL DOCUMENT ---\n{ctx.document_text}"
    )


def outline_improve_system(ctx: GenerationContext) -> str:
    return (
        outline_system(ctx)
        + "\n\nWhen editing an existing outline: change only the sections named in the feedback, "
        "keep the numbering scheme and '---' separators, keep overviews as detailed as before, "
        "and keep the total duration on target."
    )


def outline_improve_user(outline_text: str, feedback: str, ctx: GenerationContext, history: str = "") -> str:
    sections = max(outline_text.count("---") - 1, 1)
    return (
        "Make precise edits to this outline to address the feedback. Return the COMPLETE outline.\n\n"
        f"Target duration: {ctx.total_duration_minutes:g} minutes\n"
        f"Keep approximately {sections} sections.\n\n"
        f"--- ORIGINAL OUTLINE ---\n{outline_text}\n\n"
        f"--- FEEDBACK ---\n{feedback}\n\n"
        f"--- ORIGINAL DOCUMENT ---\n{ctx.document_text}"
        + (f"\n\n{history}" if history else "")
    )


# ---------------------------------------------------------------------------
# Section generation
# ---------------------------------------------------------------------------

def script_system(ctx: GenerationContext) -> str:
    parts = [
        "# Role\nYou are an expert podcast dialogue writer. You write vivid, natural "
        "dialogue between a host and a guest.",
        "# Personas",
        _persona("HOST", ctx.host)
        + "\n**Knows**: the outline and what was said so far; relies on the GUEST for specifics.",
        _persona("GUEST", ctx.guest)
        + "\n**Knows**: the document's facts, used naturally as personal knowledge "
        "(never \"the document says\").",
    ]
    if ctx.document_text:
        parts.append(f"# Ground truth (GUEST only)\n{ctx.document_text}")
    if ctx.podcast_focus:
        parts.append(f"# Focus\n{ctx.podcast_focus}")
    parts.append(SCRIPT_FORMAT_RULES)
    parts.append(
        f"# Duration discipline\nWrite enough words to fill the section at "
        f"{ctx.words_per_minute} words per minute."
    )
    return "\n\n".join(parts) + _language_line(ctx.language, "dialogue")


_PART_INSTRUCTIONS = {
    PartType.INTRO: (
        "- This is the opening segment. Start with HOST.\n"
        "- Welcome listeners and state the overall topic succinctly.\n"
        "- Introduce the GUEST with 1-2 relevant credentials; the GUEST thanks briefly.\n"
        "- Do not end with a conclusion or sign-off; the next segment continues from here."
    ),
    PartType.SECTION: (
        "- This is a middle segment; the guest is already introduced.\n"
        "- Continue directly from the previous dialogue, steering toward this section's outline.\n"
        "- Do not end with a conclusion or sign-off; the next segment continues from here."
    ),
    PartType.OUTRO: (
        "- This is the closing segment. Continue naturally from the previous dialogue.\n"
        "- Recap 2-3 concise takeaways; HOST thanks GUEST; GUEST gives a short closing remark.\n"
        "- End with a clear HOST sign-off to listeners."
    ),
}


def section_user(
    section: Section,
    part_type: PartType,
    ctx: GenerationContext,
    *,
    previous_dialogue: str = "",
    summaries: str = "",
    topics: str = "",
    history: str = "",
) -> str:
    words = target_words(section.duration_minutes, ctx.words_per_minute)
    blocks = [
        f"# Task\nWrite the {part_type.value} of a podcast conversation following the system rules.",
        f"## Outline (reference only; do NOT copy wording)\n{section.raw_content}",
        f"## Section instructions\n{_PART_INSTRUCTIONS[part_type]}",
        f"## Title\n{section.title}",
        f"## Overview\n{section.overview}",
        f"## Duration\nThis section: {section.duration_minutes:g} minutes (~{words} words)\n"
        f"Total podcast: {ctx.total_duration_minutes:g} minutes",
    ]
    key_facts = extract_key_facts(section.raw_content)
    if key_facts:
        blocks.append(f"## Key facts to convey (in your own words)\n{key_facts}")
    unique_focus = extract_unique_focus(section.raw_content)
    if unique_focus:
        blocks.append(f"## What only this section covers\n{unique_focus}")
    carryover = extract_carryover(section.raw_content)
    if carryover:
        blocks.append(f"## Carry over from earlier sections (build on it, do not repeat)\n{carryover}")
    if previous_dialogue.strip():
        blocks.append(f"## Previous dialogue (continue directly from here)\n{previous_dialogue}")
    if summaries.strip():
        blocks.append(f"## Conversation so far (summaries)\n{summaries}")
    if topics.strip():
        blocks.append(
            "## Topics already covered\n"
            f"{topics}\n"
            "Acknowledge these when building on them; never present them as new."
        )
    if history.strip():
        blocks.append(f"## Problems seen in earlier sections (avoid repeating them)\n{history}")
    blocks.append(
        f"## Strict requirements\n- Reach ~{words} words with substantive, grounded detail.\n"
        "- HOST asks curious layperson questions; GUEST answers with grounded expertise.\n"
        "- Output ONLY the dialogue in the specified format."
    )
    return "\n\n".join(blocks)


SUMMARY_SYSTEM = (
    "You are a structured analyzer of podcast conversations, producing concise summaries "
    "that keep later sections consistent and free of repetition."
)


def summary_user(section_text: str) -> str:
    return (
        "Summarize the following conversation section.\n\n"
        "Format exactly:\n"
        "SUMMARY: <at most 150 words>\n\n"
        "TOPICS COVERED:\n- <topic 1>\n- <topic 2>\n\n"
        f"Section:\n{section_text}"
    )


# ---------------------------------------------------------------------------
# Section verification & improvement
# ---------------------------------------------------------------------------

SECTION_VERIFY_SYSTEM = f"""\
You are a strict podcast script section reviewer. Check one generated section against
its outline section and the source document:
1) FACTS: claims are grounded in the document
2) OUTLINE: the section covers its overview and key facts without copying wording
3) CONVERSATION: natural flow, clear alternating turns, no stage directions
4) CONTINUITY: continues from the previous section without repeating covered material
5) CHARACTER: HOST asks layperson questions, GUEST answers as the expert
6) FORMAT: only '---' separators and HOST:/GUEST: labels

Do NOT assess duration or word count; it is measured separately.
Categories: FACTS, OUTLINE, CONVERSATION, SPEAKER_TURN, CONTINUITY, CHARACTER, FORMAT.

Respond with JSON ONLY:
{ISSUE_SCHEMA}
"""


def section_verify_user(
    text: str,
    section: Section,
    ctx: GenerationContext,
    previous_section: str = "",
) -> str:
    words = target_words(section.duration_minutes, ctx.words_per_minute)
    previous = f"--- PREVIOUS SECTION ---\n{previous_section}\n\n" if previous_section.strip() else ""
    return (
        "Review a generated script section. Return JSON only.\n\n"
        f"--- OUTLINE SECTION (reference) ---\n{section.raw_content}\n\n"
        f"Target duration: {section.duration_minutes:g} minutes (~{words} words)\n\n"
        f"--- DOCUMENT (ground truth) ---\n{ctx.document_text}\n\n"
        f"{previous}"
        f"--- GENERATED SECTION ---\n{text}"
    )


SECTION_IMPROVE_SYSTEM = """\
You are a targeted podcast script section editor.
- Apply precise, minimal edits that fully address each issue; keep unaffected dialogue.
- Fix DURATION issues first: expand with grounded depth and examples when short, condense when long.
- Use each issue's evidence to locate the edit and apply its actions.
- Keep natural alternation; no three consecutive turns by the same speaker.
- Keep '---' separators and HOST:/GUEST: labels; never use character names as labels.
- Output ONLY the complete improved section, without explanations or code fences.
"""


def section_improve_user(
    text: str,
    feedback: str,
    section: Section | None,
    ctx: GenerationContext,
    history: str = "",
) -> str:
    head = "Improve the section using the feedback. Output ONLY the improved dialogue.\n\n"
    if section is not None:
        words = target_words(section.duration_minutes, ctx.words_per_minute)
        head += (
            f"Target duration: {section.duration_minutes:g} minutes (~{words} words)\n\n"
            f"--- OUTLINE SECTION (reference) ---\n{section.raw_content}\n\n"
        )
    return (
        head
        + f"--- DOCUMENT (ground truth) ---\n{ctx.document_text}\n\n"
        + f"--- ORIGINAL SECTION ---\n{text}\n\n"
        + f"--- FEEDBACK ---\n{feedback}"
        + (f"\n\n{history}" if history else "")
    )


# ---------------------------------------------------------------------------
# Whole-document (cross-section) verification & improvement
# ---------------------------------------------------------------------------

DOCUMENT_VERIFY_SYSTEM = f"""\
You are a podcast script cross-section reviewer.
Scope: ONLY issues spanning multiple sections. Do not fact-check and do not judge length.
1) REDUNDANCY: the same material repeated in different sections without new value
2) TRANSITION: abrupt resets or the same speaker talking on both sides of a section boundary
3) CONTINUITY: "as we discussed" claims not supported by earlier dialogue
4) FLOW / CHARACTER: a natural overall arc and consistent voices

Categories: REDUNDANCY, TRANSITION, CONTINUITY, FLOW, CHARACTER.

Respond with JSON ONLY:
{ISSUE_SCHEMA}
"""


def document_verify_user(script_text: str, ctx: GenerationContext, handoff_notes: str = "") -> str:
    notes = f"--- DETECTED SPEAKER HANDOFFS ---\n{handoff_notes}\n\n" if handoff_notes else ""
    return (
        "Review ONLY cross-section issues and return JSON.\n\n"
        f"--- OUTLINE ---\n{ctx.outline_text}\n\n"
        f"{notes}"
        f"--- FULL SCRIPT ---\n{script_text}\n\n"
        f"Total podcast duration: {ctx.total_duration_minutes:g} minutes"
    )


DOCUMENT_IMPROVE_SYSTEM = """\
You are a cross-section script editor.
- Fix ONLY cross-section issues: redundancy, transitions, continuity, speaker handoffs, flow.
- When removing redundancy keep any new information and compensate with grounded depth
  so the overall length stays the same.
- Keep unaffected dialogue, '---' separators and HOST:/GUEST: labels.
- Output ONLY the full improved script, without explanations or code fences.
"""


def document_improve_user(script_text: str, feedback: str, ctx: GenerationContext, history: str = "") -> str:
    return (
        "Apply cross-section improvements. Output ONLY the full improved script.\n\n"
        f"--- OUTLINE ---\n{ctx.outline_text}\n\n"
        f"--- DOCUMENT (ground truth) ---\n{ctx.document_text}\n\n"
        f"--- ORIGINAL SCRIPT ({len(script_text)} characters; keep a comparable length) ---\n"
        f"{script_text}\n\n"
        f"--- FEEDBACK ---\n{feedback}"
        + (f"\n\n{history}" if history else "")
    )
