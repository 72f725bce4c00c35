"""
Prompt templates for AI-backed feedback analysis, one per analysis type.
"""
from __future__ import annotations

from dataclasses import dataclass
from textwrap import dedent
from typing import Any, Dict, List

from feedback_insights.models import AnalysisType, FeedbackItem


@dataclass(frozen=True)
class PromptTemplate:
    system_message: str
    user_message_template: str


RESPONSE_FORMAT = dedent("""
Respond with a single JSON object only (no prose, no Markdown) with these keys:
- "mainPoints": list of strings
- "technicalAreas": list of strings
- "severity": one of "high", "medium", "low"
- "actionItems": list of strings
- "confidence": number between 0 and 1
You may add further keys specific to this kind of analysis.
""").strip()


def _system(focus: str) -> str:
    return f"{dedent(focus).strip()}\n\n{RESPONSE_FORMAT}"


GENERAL_PROMPT = PromptTemplate(
    system_message=_system("""
        You are an expert feedback analyzer for Microsoft Teams development. Your task is to analyze feedback from developers and extract key insights.
        Focus on:
        1. Main pain points and challenges
        2. Feature requests or suggestions
        3. Technical areas affected
        4. Severity and impact
        5. Potential solutions mentioned
    """),
    user_message_template=dedent("""
        Analyze the following feedback from {{source}}:

        {{feedback}}

        Provide a detailed analysis including:
        - Main issues or requests
        - Technical areas affected
        - Severity (high/medium/low)
        - Type (bug/feature-request/question/documentation)
        - Action items or recommendations
    """).strip(),
)

BUG_PROMPT = PromptTemplate(
    system_message=_system("""
        You are a technical bug analyzer for Microsoft Teams development. Your role is to analyze bug reports and identify key technical details.
        Focus on:
        1. Root cause analysis
        2. Affected components
        3. Reproduction steps
        4. Impact and scope
        5. Potential fixes
    """),
    user_message_template=dedent("""
        Analyze the following bug report from {{source}}:

        TITLE: {{title}}
        DESCRIPTION: {{body}}

        Extract and structure the following information:
        - Bug description
        - Affected components
        - Steps to reproduce
        - Impact level
        - Suggested fixes
    """).strip(),
)

FEATURE_PROMPT = PromptTemplate(
    system_message=_system("""
        You are a product analyst for Microsoft Teams development. Your task is to analyze feature requests and provide structured insights.
        Focus on:
        1. Core user need
        2. Use case scenarios
        3. Technical feasibility
        4. Priority assessment
        5. Implementation suggestions
    """),
    user_message_template=dedent("""
        Analyze the following feature request from {{source}}:

        TITLE: {{title}}
        DESCRIPTION: {{body}}

        Extract and structure the following information:
        - Core requirement
        - Use cases
        - Technical implications
        - Priority level
        - Implementation recommendations
    """).strip(),
)

SENTIMENT_PROMPT = PromptTemplate(
    system_message=_system("""
        You are a sentiment analysis expert for developer feedback. Your task is to analyze the emotional tone and satisfaction level in developer feedback.
        Focus on:
        1. Overall sentiment
        2. Specific pain points
        3. Satisfaction indicators
        4. Urgency signals
        5. Developer experience impact
    """),
    user_message_template=dedent("""
        Analyze the sentiment in the following feedback from {{source}}:

        {{feedback}}

        Provide a detailed sentiment analysis including:
        - Overall sentiment (positive/negative/neutral)
        - Emotional indicators
        - Satisfaction level
        - Urgency level
        - Key phrases indicating sentiment
    """).strip(),
)

PROMPT_TEMPLATES: Dict[AnalysisType, PromptTemplate] = {
    AnalysisType.BUG: BUG_PROMPT,
    AnalysisType.FEATURE: FEATURE_PROMPT,
    AnalysisType.SENTIMENT: SENTIMENT_PROMPT,
    AnalysisType.GENERAL: GENERAL_PROMPT,
}


def get_template(analysis_type: Any) -> PromptTemplate:
    """Template for an analysis type; unknown types get the general template."""
    return PROMPT_TEMPLATES[AnalysisType.normalize(analysis_type)]


def render(template: str, item: FeedbackItem) -> str:
    """Literal placeholder substitution for one feedback item."""
    feedback = "\n\n".join(part for part in (item.title, item.body) if part)
    replacements = {
        "{{source}}": item.source.value,
        "{{title}}": item.title,
        "{{body}}": item.body,
        "{{feedback}}": feedback,
    }
    for placeholder, value in replacements.items():
        template = template.replace(placeholder, value)
    return template


def build_messages(item: FeedbackItem, analysis_type: Any) -> List[Dict[str, str]]:
    """Chat messages (system + user) for analysing ``item``."""
    template = get_template(analysis_type)
    return [
        {"role": "system", "content": template.system_message},
        {"role": "user", "content": render(template.user_message_template, item)},
    ]
